"""Boundary types exchanged with the remote content repository."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class RemoteFile(BaseModel):
    """One entry of a directory listing."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    sha: str
    type: Literal["file", "dir"] = "file"


class FileContent(BaseModel):
    """Decoded body of a remote file together with its content hash."""

    model_config = ConfigDict(frozen=True)

    content: str
    sha: str


class WriteResult(BaseModel):
    """Outcome of a create/update: the new blob sha and the commit it landed in."""

    model_config = ConfigDict(frozen=True)

    sha: str
    commit_sha: str | None = None


class RenameResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    new_path: str
    new_sha: str
    commit_sha: str | None = None
