from __future__ import annotations

from dataclasses import dataclass

from azure.devops.v7_0.git.models import (
    Comment,
    CommentPosition,
    CommentThreadContext,
    GitPullRequestCommentThread,
)

from prreview_core.client import AzureDevOpsClient

THREAD_ACTIVE = "active"
THREAD_CLOSED = "closed"


@dataclass
class InlineComment:
    file_path: str
    line: int
    content: str
    status: str = THREAD_ACTIVE


class CommentPoster:
    """Creates PR comment threads. Each call is one independent network write."""

    def __init__(self, client: AzureDevOpsClient, project: str):
        self.client = client
        self.project = project

    def post_inline_comment(self, repository_id: str, pull_request_id: int, comment: InlineComment) -> int:
        """Create a thread anchored to the right-hand side of ``comment.line``. Returns the thread id."""
        path = comment.file_path if comment.file_path.startswith("/") else f"/{comment.file_path}"
        thread = GitPullRequestCommentThread(
            comments=[Comment(content=comment.content)],
            thread_context=CommentThreadContext(
                file_path=path,
                right_file_start=CommentPosition(line=comment.line, offset=1),
                right_file_end=CommentPosition(line=comment.line, offset=1),
            ),
            status=THREAD_CLOSED if comment.status == THREAD_CLOSED else THREAD_ACTIVE,
        )
        created = self.client.get_git_client().create_thread(
            thread, repository_id, pull_request_id, project=self.project
        )
        return created.id

    def post_summary_comment(self, repository_id: str, pull_request_id: int, content: str) -> int:
        """Create the run's single, closed summary thread (no file anchor)."""
        thread = GitPullRequestCommentThread(comments=[Comment(content=content)], status=THREAD_CLOSED)
        created = self.client.get_git_client().create_thread(
            thread, repository_id, pull_request_id, project=self.project
        )
        return created.id
