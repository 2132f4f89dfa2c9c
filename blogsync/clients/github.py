"""GitHub contents-API implementation of the RepositoryClient contract.

File bodies travel base64-encoded.  A sha mismatch comes back as 409
(update/delete) or 422 (create over an existing file, or update without a
sha) and is raised as ``RemoteConflictError``; every other non-success
status becomes a ``TransportError`` carrying the status code and body.

GitHub has no rename endpoint, so ``rename_file`` reads the old file,
creates the new path, then deletes the old one.  A failure after the
create raises ``PartialRenameError`` so the caller can tell the two paths
now both exist.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from blogsync.core.errors import (
    NotFoundError,
    PartialRenameError,
    RemoteConflictError,
    TransportError,
)
from blogsync.models.blogs import BlogTarget
from blogsync.models.repository import (
    FileContent,
    RemoteFile,
    RenameResult,
    WriteResult,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def _encode(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _decode(encoded: str) -> str:
    return base64.b64decode(encoded).decode("utf-8")


class GitHubClient:
    """Async client for one GitHub token.

    Parameters
    ----------
    token:
        Personal access token with contents read/write scope.
    api_url:
        API root, overridable for GitHub Enterprise.
    client:
        An existing ``httpx.AsyncClient`` to share; one is created per
        request when omitted.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    @classmethod
    def for_blog(cls, blog: BlogTarget, **kwargs: Any) -> GitHubClient:
        return cls(blog.github.token, **kwargs)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _contents_url(self, repo: str, path: str) -> str:
        return f"{self._api_url}/repos/{repo}/contents/{path.strip('/')}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(
                    method, url, params=params, json=json, headers=self._headers()
                )
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(
                    method, url, params=params, json=json, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"GitHub request failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str, path: str = "") -> None:
        if response.is_success:
            return
        body = response.text
        status = response.status_code
        if status == 409 or (status == 422 and "sha" in body.lower()):
            raise RemoteConflictError(path, detail=f"{status} {body[:200]}")
        raise TransportError(
            f"Failed to {action}: {status} {body}",
            status_code=status,
            body=body,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_directory(self, repo: str, path: str, branch: str) -> list[RemoteFile]:
        """List one directory; raises on 404 or permission errors."""
        response = await self._request(
            "GET", self._contents_url(repo, path), params={"ref": branch}
        )
        self._raise_for_status(response, f"list {path}", path)
        data = response.json()
        if not isinstance(data, list):
            raise TransportError(f"{path} is not a directory")
        return [
            RemoteFile(
                name=item["name"],
                path=item["path"],
                sha=item["sha"],
                type="dir" if item.get("type") == "dir" else "file",
            )
            for item in data
        ]

    async def get_file_content(
        self, repo: str, path: str, branch: str
    ) -> FileContent | None:
        """Return the decoded file, or None when it does not exist."""
        response = await self._request(
            "GET", self._contents_url(repo, path), params={"ref": branch}
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"fetch {path}", path)
        data = response.json()
        encoded = (data.get("content") or "").replace("\n", "")
        return FileContent(content=_decode(encoded), sha=data["sha"])

    async def get_latest_commit_sha(self, repo: str, branch: str) -> str:
        response = await self._request(
            "GET", f"{self._api_url}/repos/{repo}/commits/{branch}"
        )
        self._raise_for_status(response, f"read branch {branch}")
        return response.json()["sha"]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_or_update_file(
        self,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        expected_sha: str | None = None,
    ) -> WriteResult:
        """Create ``path`` (no sha) or update it (sha must match)."""
        payload: dict[str, Any] = {
            "message": message,
            "content": _encode(content),
            "branch": branch,
        }
        if expected_sha:
            payload["sha"] = expected_sha
        response = await self._request(
            "PUT", self._contents_url(repo, path), json=payload
        )
        self._raise_for_status(response, f"write {path}", path)
        data = response.json()
        commit = data.get("commit") or {}
        logger.debug("Wrote %s@%s (commit %s)", repo, path, commit.get("sha"))
        return WriteResult(sha=data["content"]["sha"], commit_sha=commit.get("sha"))

    async def delete_file(
        self, repo: str, path: str, message: str, branch: str, expected_sha: str
    ) -> None:
        response = await self._request(
            "DELETE",
            self._contents_url(repo, path),
            json={"message": message, "sha": expected_sha, "branch": branch},
        )
        self._raise_for_status(response, f"delete {path}", path)

    async def rename_file(
        self, repo: str, old_path: str, new_path: str, branch: str, expected_sha: str
    ) -> RenameResult:
        current = await self.get_file_content(repo, old_path, branch)
        if current is None:
            raise NotFoundError(f"{old_path} not found in {repo}@{branch}")
        if current.sha != expected_sha:
            raise RemoteConflictError(old_path, expected_sha)

        old_name = old_path.rsplit("/", 1)[-1]
        new_name = new_path.rsplit("/", 1)[-1]
        created = await self.create_or_update_file(
            repo, new_path, current.content, f"Rename {old_name} to {new_name}", branch
        )
        try:
            await self.delete_file(
                repo, old_path, f"Remove {old_name} after rename", branch, expected_sha
            )
        except (TransportError, RemoteConflictError) as exc:
            raise PartialRenameError(old_path, new_path, str(exc)) from exc
        return RenameResult(
            new_path=new_path, new_sha=created.sha, commit_sha=created.commit_sha
        )

    # ------------------------------------------------------------------
    # Connection check
    # ------------------------------------------------------------------

    async def test_connection(
        self, repo: str, branch: str, content_path: str | None = None
    ) -> None:
        """Verify token, repository, branch and (optionally) content path.

        Raises ``TransportError`` whose ``user_message`` explains the cause.
        """
        await self.get_latest_commit_sha(repo, branch)
        if content_path:
            path = content_path.rstrip("/")
            try:
                await self.list_directory(repo, path, branch)
            except TransportError as exc:
                if exc.status_code == 404:
                    raise TransportError(
                        f"Content path {content_path!r} not found in repository",
                        status_code=404,
                        status_messages={
                            404: f'Content path "{content_path}" not found in repository'
                        },
                    ) from exc
                raise
