"""Publish job models — status machine, steps, and kind-specific variants.

A job is an immutable snapshot; the PublishCoordinator replaces it with a
``model_copy`` on every change, so anything handed to a subscriber can
never be mutated underneath it.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from blogsync.models.results import ErrorKind


class JobStatus(str, Enum):
    """Overall job status; strictly forward-moving."""

    PENDING = "pending"
    PREPARING = "preparing"
    PUSHING = "pushing"
    BUILDING = "building"
    DEPLOYING = "deploying"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED}
)

# Valid job transitions, enforced by JobMachine.
# BUILDING -> COMPLETED covers a push whose deployment could not be found.
VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PREPARING, JobStatus.FAILED},
    JobStatus.PREPARING: {JobStatus.PUSHING, JobStatus.FAILED},
    JobStatus.PUSHING: {JobStatus.BUILDING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.BUILDING: {JobStatus.DEPLOYING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.DEPLOYING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),  # terminal
    JobStatus.FAILED: set(),  # terminal
}

# Progress attached when a status is entered.
STATUS_PROGRESS: dict[JobStatus, int] = {
    JobStatus.PENDING: 0,
    JobStatus.PREPARING: 10,
    JobStatus.PUSHING: 40,
    JobStatus.BUILDING: 60,
    JobStatus.DEPLOYING: 85,
    JobStatus.COMPLETED: 100,
}


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


STEP_ORDER: dict[StepStatus, int] = {
    StepStatus.PENDING: 0,
    StepStatus.IN_PROGRESS: 1,
    StepStatus.COMPLETED: 2,
    StepStatus.FAILED: 2,
}


class JobKind(str, Enum):
    TAG_POST = "tag_post"
    DIRECT_POST = "direct_post"
    FILE_UPDATE = "file_update"
    FILE_RENAME = "file_rename"


class PublishStep(BaseModel):
    """One checklist line of a job."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: StepStatus = StepStatus.PENDING
    message: str | None = None


class JobBase(BaseModel):
    """Fields shared by every job kind."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    blog_id: str
    status: JobStatus = JobStatus.PENDING
    steps: tuple[PublishStep, ...] = ()
    progress: int = 0
    error: str | None = None
    error_kind: ErrorKind | None = None
    deployment_id: str | None = None
    created_at: float = 0.0
    finished_at: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TagPostJob(JobBase):
    """New post assembled from tagged note sections."""

    kind: Literal[JobKind.TAG_POST] = JobKind.TAG_POST
    tag: str
    slug: str | None = None
    post_url: str | None = None


class DirectPostJob(JobBase):
    """New post from fully formed content."""

    kind: Literal[JobKind.DIRECT_POST] = JobKind.DIRECT_POST
    slug: str | None = None
    post_url: str | None = None


class FileUpdateJob(JobBase):
    """Edit of an existing remote post, guarded by the caller's sha."""

    kind: Literal[JobKind.FILE_UPDATE] = JobKind.FILE_UPDATE
    path: str
    new_sha: str | None = None


class FileRenameJob(JobBase):
    """Rename of an existing remote post within its directory."""

    kind: Literal[JobKind.FILE_RENAME] = JobKind.FILE_RENAME
    old_path: str
    new_path: str
    new_sha: str | None = None


PublishJob = Annotated[
    Union[TagPostJob, DirectPostJob, FileUpdateJob, FileRenameJob],
    Field(discriminator="kind"),
]
