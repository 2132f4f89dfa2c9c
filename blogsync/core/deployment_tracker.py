"""DeploymentTracker — follows a hosting-platform build to its outcome.

Talks to the Cloudflare Pages deployments API.  The platform offers no
commit -> deployment lookup, so ``find_by_commit`` scans the most recent
deployments and is best-effort only.

``wait_for_deployment`` enforces a hard timeout measured from the start of
the call: an in-flight poll is cancelled when the deadline passes.  Only
local tracking stops; the remote deployment is left alone.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx

from blogsync.core.errors import (
    DeploymentFailedError,
    DeploymentTimeoutError,
    TransportError,
)
from blogsync.models.blogs import BlogTarget
from blogsync.models.deployments import Deployment

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudflare.com/client/v4"

_CLOUDFLARE_MESSAGES: dict[int, str] = {
    401: "Invalid Cloudflare API token",
    403: "Access denied. Token may lack Cloudflare Pages permissions.",
    404: "Project not found. Check account ID and project name.",
}

# (stage name, stage status) -> display percentage; None matches any status.
_STAGE_PROGRESS: dict[str, dict[str | None, int]] = {
    "queued": {None: 10},
    "initialize": {None: 20},
    "clone_repo": {None: 30},
    "build": {"active": 50, None: 60},
    "deploy": {"active": 80, None: 90},
    "success": {None: 100},
}


class DeploymentTracker:
    """Read-only client for one hosting account.

    Parameters
    ----------
    token:
        API token with Pages read access.
    account_id:
        Hosting account that owns the projects.
    client:
        Shared ``httpx.AsyncClient``; a short-lived one is used otherwise.
    """

    def __init__(
        self,
        token: str,
        account_id: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        scan_limit: int = 20,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._account_id = account_id
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._scan_limit = scan_limit
        self._client = client

    @classmethod
    def for_blog(cls, blog: BlogTarget, **kwargs: Any) -> DeploymentTracker | None:
        """Tracker for a blog, or None when it has no hosting project."""
        if blog.cloudflare is None:
            return None
        return cls(blog.cloudflare.token, blog.cloudflare.account_id, **kwargs)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _project_url(self, project: str) -> str:
        return f"{self._api_url}/accounts/{self._account_id}/pages/projects/{project}"

    async def _get(self, url: str, action: str) -> Any:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to {action}: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"Failed to {action}: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
                status_messages=_CLOUDFLARE_MESSAGES,
            )
        data = response.json()
        if not data.get("success", False):
            raise TransportError(f"Cloudflare API error: {data.get('errors')}")
        return data.get("result")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_deployments(self, project: str, limit: int = 10) -> list[Deployment]:
        """Most recent deployments first, at most ``limit``."""
        result = await self._get(
            f"{self._project_url(project)}/deployments", "get deployments"
        )
        return [Deployment.model_validate(item) for item in (result or [])[:limit]]

    async def get_deployment(self, project: str, deployment_id: str) -> Deployment:
        result = await self._get(
            f"{self._project_url(project)}/deployments/{deployment_id}",
            "get deployment",
        )
        return Deployment.model_validate(result)

    async def find_by_commit(self, project: str, commit_hash: str) -> Deployment | None:
        """Scan recent deployments for one triggered by ``commit_hash``."""
        deployments = await self.list_deployments(project, self._scan_limit)
        for deployment in deployments:
            if deployment.commit_hash == commit_hash:
                logger.debug("Deployment %s matches commit %s", deployment.id, commit_hash)
                return deployment
        logger.debug(
            "No deployment for commit %s among %d recent", commit_hash, len(deployments)
        )
        return None

    async def test_project(self, project: str) -> str | None:
        """Verify credentials and project; returns the project's pages.dev URL."""
        result = await self._get(self._project_url(project), "get project")
        subdomain = (result or {}).get("subdomain")
        if not subdomain:
            return None
        if not subdomain.endswith(".pages.dev"):
            subdomain = f"{subdomain}.pages.dev"
        return f"https://{subdomain}"

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def wait_for_deployment(
        self,
        project: str,
        deployment_id: str,
        *,
        poll_interval: float = 3.0,
        timeout: float = 600.0,
        on_progress: Callable[[Deployment], Any] | None = None,
    ) -> Deployment:
        """Poll until the deployment succeeds; raise on failure or timeout."""
        try:
            return await asyncio.wait_for(
                self._poll_until_terminal(project, deployment_id, poll_interval, on_progress),
                timeout,
            )
        except asyncio.TimeoutError as exc:
            raise DeploymentTimeoutError(
                f"Deployment {deployment_id} did not finish within {timeout:g}s"
            ) from exc

    async def _poll_until_terminal(
        self,
        project: str,
        deployment_id: str,
        poll_interval: float,
        on_progress: Callable[[Deployment], Any] | None,
    ) -> Deployment:
        while True:
            deployment = await self.get_deployment(project, deployment_id)
            if on_progress is not None:
                on_progress(deployment)

            stage = deployment.latest_stage
            if stage.name == "success" or (stage.name == "deploy" and stage.status == "success"):
                return deployment
            if stage.status == "failure" or stage.name == "failure":
                raise DeploymentFailedError(f"Deployment failed at stage {stage.name}")
            if stage.status == "canceled" or stage.name == "canceled":
                raise DeploymentFailedError("Deployment canceled")

            await asyncio.sleep(poll_interval)

    @staticmethod
    def progress_percent(deployment: Deployment) -> int:
        """Rough 0-100 display estimate from the latest stage."""
        stage = deployment.latest_stage
        if stage.status == "failure" or stage.name == "failure":
            return 0
        by_status = _STAGE_PROGRESS.get(stage.name)
        if by_status is None:
            return 0
        return by_status.get(stage.status, by_status[None])
