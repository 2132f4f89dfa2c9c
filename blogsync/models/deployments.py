"""Hosting-platform deployment views.

These mirror the Cloudflare Pages deployment JSON closely enough to read
stage progress and the triggering commit.  Unknown keys are ignored so
new API fields do not break parsing.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DeploymentStage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    status: str = "idle"  # idle | active | success | failure | canceled
    started_on: str | None = None
    ended_on: str | None = None


class TriggerMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None


class DeploymentTrigger(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str | None = None
    metadata: TriggerMetadata | None = None


class Deployment(BaseModel):
    """Transient snapshot of one deployment while it is being tracked."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    url: str | None = None
    environment: str | None = None
    latest_stage: DeploymentStage
    deployment_trigger: DeploymentTrigger | None = None

    @property
    def commit_hash(self) -> str | None:
        trigger = self.deployment_trigger
        if trigger is None or trigger.metadata is None:
            return None
        return trigger.metadata.commit_hash
