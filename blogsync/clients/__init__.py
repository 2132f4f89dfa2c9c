"""Protocols for the external collaborators blogsync talks to.

``RepositoryClient`` is the contract for the remote content repository;
``GitHubClient`` is the shipped implementation.  ``TagIndex`` is the
boundary of the note-indexing engine, which lives outside this package.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from blogsync.models.blogs import BlogTarget
from blogsync.models.repository import (
    FileContent,
    RemoteFile,
    RenameResult,
    WriteResult,
)
from blogsync.models.tags import TaggedContent


@runtime_checkable
class RepositoryClient(Protocol):
    """Stateless client for a Git-hosted content repository.

    Every write that takes ``expected_sha`` must fail with
    ``RemoteConflictError`` when the remote file's sha differs.
    """

    async def list_directory(self, repo: str, path: str, branch: str) -> list[RemoteFile]:
        ...

    async def get_file_content(
        self, repo: str, path: str, branch: str
    ) -> FileContent | None:
        ...

    async def create_or_update_file(
        self,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        expected_sha: str | None = None,
    ) -> WriteResult:
        ...

    async def delete_file(
        self, repo: str, path: str, message: str, branch: str, expected_sha: str
    ) -> None:
        ...

    async def rename_file(
        self, repo: str, old_path: str, new_path: str, branch: str, expected_sha: str
    ) -> RenameResult:
        ...

    async def get_latest_commit_sha(self, repo: str, branch: str) -> str:
        ...


@runtime_checkable
class TagIndex(Protocol):
    """Read side of the tag-extraction engine."""

    def get_tagged_content(self, tag: str) -> list[TaggedContent]:
        ...


RepositoryFactory = Callable[[BlogTarget], RepositoryClient]
