"""blogsync data models — all Pydantic v2; snapshots are frozen."""

from blogsync.models.blogs import (
    BlogTarget,
    CloudflareTarget,
    ContentSettings,
    GitHubTarget,
)
from blogsync.models.cache import (
    BlogCacheEntry,
    BlogInfo,
    CachedPost,
    PostContent,
    RemoteNode,
)
from blogsync.models.deployments import (
    Deployment,
    DeploymentStage,
    DeploymentTrigger,
    TriggerMetadata,
)
from blogsync.models.drafts import Draft
from blogsync.models.jobs import (
    STATUS_PROGRESS,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    DirectPostJob,
    FileRenameJob,
    FileUpdateJob,
    JobKind,
    JobStatus,
    PublishJob,
    PublishStep,
    StepStatus,
    TagPostJob,
)
from blogsync.models.repository import (
    FileContent,
    RemoteFile,
    RenameResult,
    WriteResult,
)
from blogsync.models.results import ErrorKind, OperationResult
from blogsync.models.tags import TaggedContent

__all__ = [
    # blogs
    "BlogTarget",
    "CloudflareTarget",
    "ContentSettings",
    "GitHubTarget",
    # cache
    "BlogCacheEntry",
    "BlogInfo",
    "CachedPost",
    "PostContent",
    "RemoteNode",
    # deployments
    "Deployment",
    "DeploymentStage",
    "DeploymentTrigger",
    "TriggerMetadata",
    # drafts
    "Draft",
    # jobs
    "JobKind",
    "JobStatus",
    "StepStatus",
    "PublishStep",
    "PublishJob",
    "TagPostJob",
    "DirectPostJob",
    "FileUpdateJob",
    "FileRenameJob",
    "VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "STATUS_PROGRESS",
    # repository
    "RemoteFile",
    "FileContent",
    "WriteResult",
    "RenameResult",
    # results
    "ErrorKind",
    "OperationResult",
    # tags
    "TaggedContent",
]
