"""Error taxonomy shared by every blogsync component.

Each exception carries an ``ErrorKind`` so the service facade and the
publish coordinator can report a category without isinstance chains.
"""

from __future__ import annotations

from blogsync.models.results import ErrorKind


class BlogSyncError(RuntimeError):
    """Base class for all blogsync failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    @property
    def user_message(self) -> str:
        return str(self)


class NotFoundError(BlogSyncError):
    """Unknown blog, path, or job id."""

    kind = ErrorKind.NOT_FOUND


class NotInitializedError(BlogSyncError):
    """An operation ran before its owning manager was initialized."""

    kind = ErrorKind.NOT_INITIALIZED


class RemoteConflictError(BlogSyncError):
    """The remote file's sha no longer matches the caller's."""

    kind = ErrorKind.CONFLICT

    def __init__(self, path: str, expected_sha: str | None = None, detail: str = "") -> None:
        self.path = path
        self.expected_sha = expected_sha
        message = f"Conflict on {path}: the remote file changed since it was loaded"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return (
            f"Someone else changed {self.path} on the remote. "
            "Refresh to load the latest version before publishing again."
        )


_STATUS_MESSAGES: dict[int, str] = {
    401: "Invalid token or token lacks required permissions",
    403: "Access denied. The token may lack permissions for this resource.",
    404: "Repository or branch not found. Check the repo name and branch.",
}


class TransportError(BlogSyncError):
    """Network failure or non-success HTTP status from a remote API."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
        status_messages: dict[int, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self._status_messages = status_messages or _STATUS_MESSAGES
        super().__init__(message)

    @property
    def user_message(self) -> str:
        if self.status_code in self._status_messages:
            return self._status_messages[self.status_code]
        return str(self)


class PartialRenameError(TransportError):
    """Rename created the new file but could not remove the old one."""

    def __init__(self, old_path: str, new_path: str, cause: str) -> None:
        self.old_path = old_path
        self.new_path = new_path
        super().__init__(
            f"Partial rename: {new_path} was created but {old_path} could not be "
            f"removed: {cause}"
        )

    @property
    def user_message(self) -> str:
        return str(self)


class DeploymentFailedError(BlogSyncError):
    """The hosting platform reported a failed or canceled deployment."""

    kind = ErrorKind.DEPLOYMENT


class DeploymentTimeoutError(BlogSyncError):
    """Deployment tracking exceeded its bound."""

    kind = ErrorKind.TIMEOUT


class InvalidTransitionError(BlogSyncError):
    """A job status change that the state machine does not allow."""


def error_kind_of(exc: BaseException) -> ErrorKind:
    """Return the category of any exception (INTERNAL for foreign ones)."""
    if isinstance(exc, BlogSyncError):
        return exc.kind
    return ErrorKind.INTERNAL


def user_message_of(exc: BaseException) -> str:
    if isinstance(exc, BlogSyncError):
        return exc.user_message
    return str(exc) or exc.__class__.__name__
