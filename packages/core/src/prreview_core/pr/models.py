"""Pull request snapshot models.

All of these are built fresh for one review run and discarded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ChangeType(str, Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    RENAME = "rename"


@dataclass(frozen=True)
class Author:
    display_name: str
    email: str


@dataclass(frozen=True)
class PullRequestInfo:
    id: int
    title: str
    description: str
    source_branch: str  # refs/heads/ prefix stripped
    target_branch: str
    author: Author
    created_date: datetime
    status: str
    repository_id: str
    project_name: str


@dataclass(frozen=True)
class FileChange:
    path: str
    change_type: ChangeType
    original_path: str | None = None  # only set for renames


@dataclass(frozen=True)
class FileDiff:
    path: str
    diff: str
    original_path: str | None = None


@dataclass(frozen=True)
class PullRequestDiff:
    """Everything the review pipeline needs about one PR.

    ``files`` and ``diffs`` come from two independent fetches of the latest
    iteration and are not reconciled against each other.
    """

    pr: PullRequestInfo
    files: tuple[FileChange, ...] = ()
    diffs: tuple[FileDiff, ...] = ()
