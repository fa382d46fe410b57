"""Protocols defining the contracts for the source, destination and summarizer.

The migration architecture separates concerns into:

1. SourceClient: reads issues, comments and attachments from Jira
2. DestinationClient: creates issues, comments, labels and assets on GitHub
3. Summarizer: optional natural-language summaries
4. The engine (IssueMigrator + BatchScheduler): decides what to do per item

The engine only sees these protocols, so each collaborator can be swapped or
replaced by a fake in tests. Implementations are expected to wrap their remote
calls with ``RetryCoordinator`` and to surface failures as exceptions exposing
an HTTP-like ``status`` so rate limits, server errors and client errors can be
told apart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import DestinationIssue, IssueState, SearchPage, SourceComment, SourceItem


class SourceClient(Protocol):
    """Protocol for reading issues from the source tracker."""

    def test_authentication(self) -> None:
        """Check credentials.

        Raises:
            MigrationError: If authentication fails
        """
        ...

    def search(self, jql: str, start_at: int = 0, max_results: int = 50) -> SearchPage:
        """Return one page of issues matching ``jql``."""
        ...

    def get_all_items(self, jql: str, batch_size: int = 50) -> list[SourceItem]:
        """Return every issue matching ``jql``, following pagination."""
        ...

    def get_comments(self, item_key: str) -> list[SourceComment]:
        """Return all comments of an issue in chronological order."""
        ...

    def download_attachment(self, locator: str, filename: str) -> bytes:
        """Download an attachment's bytes from its content URL."""
        ...


class DestinationClient(Protocol):
    """Protocol for creating issues in the destination tracker."""

    def validate_access(self) -> None:
        """Check credentials and repository access.

        Raises:
            MigrationError: If access validation fails
        """
        ...

    def find_existing(self, item_key: str) -> DestinationIssue | None:
        """Find an issue that already references ``item_key`` in its title or body."""
        ...

    def create_item(self, title: str, body: str, labels: Sequence[str], state: IssueState) -> DestinationIssue:
        """Create an issue.

        The returned ``state`` is the state the issue was actually created
        with; the caller fixes it up with :meth:`set_state` when it differs.
        """
        ...

    def set_state(self, issue_id: int, state: IssueState) -> None:
        """Open or close an issue."""
        ...

    def create_comment(self, issue_id: int, body: str) -> None:
        """Add a comment to an issue."""
        ...

    def ensure_labels_exist(self, label_names: Sequence[str]) -> None:
        """Create any of ``label_names`` that do not exist yet."""
        ...

    def upload_asset(self, group_key: str, content: bytes, filename: str, mime_type: str) -> str:
        """Store a file and return its download URL."""
        ...


class Summarizer(Protocol):
    """Protocol for the optional AI summary service."""

    def is_available(self) -> bool:
        """Whether the service is configured at all."""
        ...

    def test_connection(self) -> bool:
        """Whether a trivial request succeeds. Never raises."""
        ...

    def summarize(self, title: str, description: str) -> str | None:
        """Summarize an issue. Never raises; failures yield None."""
        ...

    def summarize_batch(self, items: Sequence[SourceItem]) -> dict[str, str]:
        """Summaries for several issues keyed by issue key, with bounded concurrency."""
        ...

    def format_summary(self, summary: str, item_key: str) -> str:
        """Markdown block to put at the top of the issue body."""
        ...
