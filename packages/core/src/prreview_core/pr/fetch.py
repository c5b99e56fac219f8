"""Pull request retrieval and diff aggregation over the Azure DevOps Git API.

Upstream failures (PR not found, auth, network) propagate unchanged to the
caller. The one exception is blob retrieval: see BLOB_FETCH_FAILURE_CONTENT.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from prreview_core.client import AzureDevOpsClient
from prreview_core.pr.diff import synthesize
from prreview_core.pr.models import Author, ChangeType, FileChange, FileDiff, PullRequestDiff, PullRequestInfo

logger = logging.getLogger(__name__)

_BRANCH_PREFIX = "refs/heads/"

# VersionControlChangeType flag values. Anything not listed is treated as an edit.
CHANGE_TYPE_CODES: dict[int, ChangeType] = {
    1: ChangeType.ADD,
    2: ChangeType.EDIT,
    8: ChangeType.RENAME,
    16: ChangeType.DELETE,
}

# Content substituted for a blob side that could not be fetched. A missing
# historical blob degrades that file's diff; it never aborts the review.
BLOB_FETCH_FAILURE_CONTENT = ""


def map_change_type(change_type) -> ChangeType:
    """Translate a service change type to ChangeType, defaulting to EDIT.

    Accepts the integer flag codes and the lower-case names the REST
    payloads sometimes carry instead.
    """
    if isinstance(change_type, int) and not isinstance(change_type, bool):
        return CHANGE_TYPE_CODES.get(change_type, ChangeType.EDIT)
    if isinstance(change_type, str):
        try:
            return ChangeType(change_type.strip().lower())
        except ValueError:
            return ChangeType.EDIT
    return ChangeType.EDIT


def _strip_branch(ref_name: str | None) -> str:
    if not ref_name:
        return ""
    return ref_name[len(_BRANCH_PREFIX) :] if ref_name.startswith(_BRANCH_PREFIX) else ref_name


def _item_field(item, name: str, wire_name: str):
    """Read a field from a change entry's item.

    The SDK types ``GitPullRequestChange.item`` as a bare object, so it
    arrives as the raw camelCase JSON dict rather than a GitItem model.
    """
    if item is None:
        return None
    if isinstance(item, dict):
        return item.get(wire_name)
    return getattr(item, name, None)


def _latest_iteration(iterations):
    """Return the last (most current) iteration, or None when there are none."""
    if not iterations:
        return None
    return iterations[-1]


class PullRequestFetcher:
    def __init__(self, client: AzureDevOpsClient, project: str):
        self.client = client
        self.project = project

    def fetch_pull_request(self, repository_id: str, pull_request_id: int) -> PullRequestInfo:
        git = self.client.get_git_client()
        pr = git.get_pull_request(repository_id, pull_request_id, project=self.project)

        created_by = pr.created_by
        repository = pr.repository
        project = getattr(repository, "project", None) if repository else None

        return PullRequestInfo(
            id=pr.pull_request_id,
            title=pr.title or "",
            description=pr.description or "",
            source_branch=_strip_branch(pr.source_ref_name),
            target_branch=_strip_branch(pr.target_ref_name),
            author=Author(
                display_name=(created_by.display_name if created_by else None) or "",
                email=(created_by.unique_name if created_by else None) or "",
            ),
            # Lossy fallback: the service normally always sends a creation date.
            created_date=pr.creation_date or datetime.now(timezone.utc),
            status=str(pr.status) if pr.status is not None else "",
            repository_id=(repository.id if repository else None) or repository_id,
            project_name=(project.name if project else None) or self.project,
        )

    def _latest_change_entries(self, git, repository_id: str, pull_request_id: int) -> list:
        iterations = git.get_pull_request_iterations(repository_id, pull_request_id, project=self.project)
        latest = _latest_iteration(iterations)
        if latest is None:
            return []
        changes = git.get_pull_request_iteration_changes(
            repository_id, pull_request_id, latest.id, project=self.project
        )
        return list(changes.change_entries or []) if changes else []

    def fetch_changed_files(self, repository_id: str, pull_request_id: int) -> list[FileChange]:
        """Return the change entries of the latest iteration.

        A PR with no iterations yet yields an empty list.
        """
        git = self.client.get_git_client()
        entries = self._latest_change_entries(git, repository_id, pull_request_id)
        return [
            FileChange(
                path=_item_field(entry.item, "path", "path") or "",
                change_type=map_change_type(entry.change_type),
                original_path=entry.original_path,
            )
            for entry in entries
        ]

    def _blob_text(self, git, repository_id: str, object_id: str | None) -> str:
        if not object_id:
            return ""
        try:
            chunks = git.get_blob_content(repository_id, object_id, project=self.project, download=True)
            return b"".join(chunks).decode("utf-8", errors="replace")
        except Exception as e:
            logger.warning("Could not fetch blob %s; diffing against empty content: %s", object_id, e)
            return BLOB_FETCH_FAILURE_CONTENT

    def fetch_file_diff(
        self,
        repository_id: str,
        file_path: str,
        original_object_id: str | None = None,
        modified_object_id: str | None = None,
    ) -> str:
        git = self.client.get_git_client()
        original = self._blob_text(git, repository_id, original_object_id)
        modified = self._blob_text(git, repository_id, modified_object_id)
        return synthesize(file_path, original, modified)

    def fetch_full_diff(self, repository_id: str, pull_request_id: int) -> PullRequestDiff:
        pr = self.fetch_pull_request(repository_id, pull_request_id)
        files = self.fetch_changed_files(repository_id, pull_request_id)

        # Read independently of `files`; the two may differ if an iteration lands mid-run.
        git = self.client.get_git_client()
        entries = self._latest_change_entries(git, repository_id, pull_request_id)

        diffs: list[FileDiff] = []
        for entry in entries:
            path = _item_field(entry.item, "path", "path")
            if not path or _item_field(entry.item, "is_folder", "isFolder"):
                continue
            diff = self.fetch_file_diff(
                repository_id,
                path,
                _item_field(entry.item, "original_object_id", "originalObjectId"),
                _item_field(entry.item, "object_id", "objectId"),
            )
            diffs.append(FileDiff(path=path, diff=diff, original_path=entry.original_path))

        logger.debug("PR %s: %d changed file(s), %d diff(s)", pull_request_id, len(files), len(diffs))
        return PullRequestDiff(pr=pr, files=tuple(files), diffs=tuple(diffs))
