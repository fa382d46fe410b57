"""
Pytest configuration and fixtures.

Provides in-memory fakes of the Jira source and GitHub destination so the
migration engine can be exercised without any network access, plus a retry
coordinator that never sleeps.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from jira_to_github_migrator.models import DestinationIssue, SearchPage, SourceItem
from jira_to_github_migrator.retry import RetryCoordinator

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from jira_to_github_migrator.models import IssueState, SourceComment


def make_item(key: str, **fields: Any) -> SourceItem:  # noqa: ANN401
    """Build a SourceItem with sensible defaults for tests."""
    values: dict[str, Any] = {
        "title": f"Summary of {key}",
        "web_url": f"https://example.atlassian.net/browse/{key}",
        "status": "To Do",
        "issue_type": "Task",
        "priority": "Medium",
        "reporter": "Alice",
        "created": "2024-01-15T10:30:45+00:00",
        "updated": "2024-01-15T10:30:45+00:00",
    }
    values.update(fields)
    return SourceItem(key=key, **values)


class FakeSource:
    """In-memory Jira."""

    def __init__(
        self,
        items: Sequence[SourceItem] = (),
        *,
        comments: dict[str, list[SourceComment] | Exception] | None = None,
        downloads: dict[str, bytes] | None = None,
    ) -> None:
        self.items = list(items)
        self.comments = comments or {}
        self.downloads = downloads or {}
        self.auth_checks = 0
        self.comment_requests: list[str] = []
        self.download_requests: list[str] = []

    def test_authentication(self) -> None:
        self.auth_checks += 1

    def search(self, jql: str, start_at: int = 0, max_results: int = 50) -> SearchPage:  # noqa: ARG002
        page = self.items[start_at : start_at + max_results]
        return SearchPage(items=page, total=len(self.items), start_at=start_at, max_results=max_results)

    def get_all_items(self, jql: str, batch_size: int = 50) -> list[SourceItem]:  # noqa: ARG002
        return list(self.items)

    def get_comments(self, item_key: str) -> list[SourceComment]:
        self.comment_requests.append(item_key)
        value = self.comments.get(item_key, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    def download_attachment(self, locator: str, filename: str) -> bytes:  # noqa: ARG002
        self.download_requests.append(locator)
        return self.downloads[locator]


class FakeDestination:
    """In-memory GitHub repository."""

    def __init__(self, existing: dict[str, DestinationIssue] | None = None, *, next_id: int = 1) -> None:
        self.existing = dict(existing or {})
        self.next_id = next_id
        self.created: list[dict[str, Any]] = []
        self.comments: list[tuple[int, str]] = []
        self.states: list[tuple[int, str]] = []
        self.ensured_labels: list[list[str]] = []
        self.uploads: list[tuple[str, bytes, str, str]] = []
        self.search_errors: dict[str, BaseException] = {}
        self.create_errors: dict[str, BaseException] = {}
        self.comment_error: Exception | None = None
        self.upload_error: Exception | None = None
        self.access_checks = 0

    def validate_access(self) -> None:
        self.access_checks += 1

    def find_existing(self, item_key: str) -> DestinationIssue | None:
        if item_key in self.search_errors:
            raise self.search_errors[item_key]
        return self.existing.get(item_key)

    def create_item(self, title: str, body: str, labels: Sequence[str], state: IssueState) -> DestinationIssue:
        for key, error in self.create_errors.items():
            if f"[{key}]" in title:
                raise error
        issue = DestinationIssue(id=self.next_id, url=f"https://github.com/owner/repo/issues/{self.next_id}")
        self.next_id += 1
        self.created.append({"id": issue.id, "title": title, "body": body, "labels": list(labels), "state": state})
        return issue

    def set_state(self, issue_id: int, state: IssueState) -> None:
        self.states.append((issue_id, state))

    def create_comment(self, issue_id: int, body: str) -> None:
        if self.comment_error is not None:
            raise self.comment_error
        self.comments.append((issue_id, body))

    def ensure_labels_exist(self, label_names: Sequence[str]) -> None:
        self.ensured_labels.append(list(label_names))

    def upload_asset(self, group_key: str, content: bytes, filename: str, mime_type: str) -> str:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((group_key, content, filename, mime_type))
        return f"https://github.com/owner/repo/releases/download/{group_key}/{filename}"


@pytest.fixture
def item_factory() -> Callable[..., SourceItem]:
    return make_item


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def fake_destination() -> FakeDestination:
    return FakeDestination()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested from the retry coordinator."""
    return []


@pytest.fixture
def retry(sleeps: list[float]) -> RetryCoordinator:
    """Retry coordinator recording its delays instead of sleeping."""
    return RetryCoordinator(max_retries=3, base_delay=1.0, sleep=sleeps.append)


@pytest.fixture
def source_factory() -> type[FakeSource]:
    return FakeSource


@pytest.fixture
def destination_factory() -> type[FakeDestination]:
    return FakeDestination
