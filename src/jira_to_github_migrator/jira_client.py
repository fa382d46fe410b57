"""
Jira Cloud REST API client (source side of the migration).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from .exceptions import AuthenticationError, JiraApiError, RemoteOperationError
from .models import SearchPage, SourceAttachment, SourceComment, SourceItem
from .retry import HTTP_TOO_MANY_REQUESTS, HTTP_UNAUTHORIZED, RetryCoordinator

if TYPE_CHECKING:
    from collections.abc import Sequence

logger: logging.Logger = logging.getLogger(__name__)

REQUEST_TIMEOUT: Final[int] = 30
DOWNLOAD_TIMEOUT: Final[int] = 60

DEFAULT_ACCEPTANCE_CRITERIA_FIELDS: Final[tuple[str, ...]] = ("customfield_10100", "customfield_10000")

SEARCH_FIELDS: Final[tuple[str, ...]] = (
    "key",
    "summary",
    "description",
    "status",
    "assignee",
    "reporter",
    "created",
    "updated",
    "priority",
    "issuetype",
    "components",
    "fixVersions",
    "labels",
    "parent",
    "subtasks",
    "attachment",
)


def _name(value: object, attr: str = "name") -> str | None:
    """Return ``value[attr]`` for Jira's nested ``{"name": ...}`` objects."""
    if isinstance(value, dict):
        result = value.get(attr)
        return str(result) if result is not None else None
    return None


def format_error_response(method: str, path: str, response: requests.Response) -> str:
    """Fold Jira's ``errorMessages`` and field ``errors`` into one message."""
    message = f"Jira API Error: {method} {path} - {response.status_code}"
    try:
        data: object = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        error_messages = data.get("errorMessages")
        if error_messages:
            message += f"\nError Messages: {', '.join(str(m) for m in error_messages)}"
        errors = data.get("errors")
        if isinstance(errors, dict) and errors:
            details = ", ".join(f"{field}: {text}" for field, text in errors.items())
            message += f"\nField Errors: {details}"
    return message


class JiraClient:
    """Reads issues, comments and attachments from Jira Cloud.

    Every request goes through the retry coordinator; HTTP failures are raised
    as :class:`JiraApiError` carrying the status code.
    """

    base_url: str
    acceptance_criteria_fields: tuple[str, ...]
    _session: requests.Session
    _retry: RetryCoordinator

    def __init__(
        self,
        url: str,
        email: str,
        api_token: str,
        *,
        retry: RetryCoordinator | None = None,
        session: requests.Session | None = None,
        acceptance_criteria_fields: Sequence[str] = DEFAULT_ACCEPTANCE_CRITERIA_FIELDS,
    ) -> None:
        self.base_url = url.rstrip("/")
        self.acceptance_criteria_fields = tuple(acceptance_criteria_fields)
        self._retry = retry or RetryCoordinator()
        self._session = session or requests.Session()
        self._session.auth = (email, api_token)
        self._session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:  # noqa: ANN401
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}{path}"
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)
        response = self._session.request(method, url, **kwargs)
        logger.debug(f"Jira API: {method} {path} - {response.status_code}")

        if not response.ok:
            raise JiraApiError(
                format_error_response(method, path, response),
                status=response.status_code,
                rate_limited=response.status_code == HTTP_TOO_MANY_REQUESTS,
            )
        return response

    def test_authentication(self) -> None:
        """Check the Jira credentials.

        Raises:
            AuthenticationError: If Jira rejects the credentials
            RemoteOperationError: If Jira cannot be reached
        """
        logger.debug("Testing Jira authentication...")
        try:
            response = self._retry.execute_with_retry(
                lambda: self._request("GET", "/rest/api/3/myself"), "Jira authentication test"
            )
        except RemoteOperationError as e:
            if e.status == HTTP_UNAUTHORIZED:
                msg = f"Jira authentication failed for {self.base_url}: {e.last_error}"
                raise AuthenticationError(msg) from e
            raise

        user = response.json()
        logger.debug(f"Authenticated as: {user.get('displayName')} ({user.get('emailAddress')})")

    def search(self, jql: str, start_at: int = 0, max_results: int = 50) -> SearchPage:
        """Run one page of a JQL search."""
        payload = {
            "jql": jql,
            "startAt": start_at,
            "maxResults": max_results,
            "fields": [*SEARCH_FIELDS, *self.acceptance_criteria_fields],
            "expand": ["renderedFields"],
        }
        logger.debug(f"Searching issues with JQL: {jql} (startAt={start_at}, maxResults={max_results})")

        response = self._retry.execute_with_retry(
            lambda: self._request("POST", "/rest/api/3/search", json=payload), "issue search"
        )
        data = response.json()
        issues = [self.parse_issue(raw) for raw in data.get("issues", [])]
        page = SearchPage(
            items=issues,
            total=int(data.get("total", len(issues))),
            start_at=int(data.get("startAt", start_at)),
            max_results=int(data.get("maxResults", max_results)),
        )
        logger.debug(f"Found {len(issues)} issues ({page.start_at + 1}-{page.start_at + len(issues)} of {page.total})")
        return page

    def get_all_items(self, jql: str, batch_size: int = 50) -> list[SourceItem]:
        """Fetch every issue matching ``jql``, following pagination."""
        logger.info(f"Fetching all issues matching: {jql}")
        items: list[SourceItem] = []
        start_at = 0

        while True:
            page = self.search(jql, start_at=start_at, max_results=batch_size)
            items.extend(page.items)
            logger.info(f"Fetched {len(items)}/{page.total} issues")
            # An empty page would otherwise loop forever on an inconsistent total
            if not page.has_more or not page.items:
                break
            start_at = page.start_at + len(page.items)

        return items

    def get_comments(self, item_key: str) -> list[SourceComment]:
        logger.debug(f"Fetching comments for issue: {item_key}")
        response = self._retry.execute_with_retry(
            lambda: self._request("GET", f"/rest/api/3/issue/{item_key}/comment", params={"expand": "renderedBody"}),
            f"fetch comments for {item_key}",
        )
        return [
            SourceComment(
                author=_name(raw.get("author"), "displayName") or "Unknown",
                created=raw.get("created") or "",
                updated=raw.get("updated"),
                body=raw.get("body"),
                rendered_body=raw.get("renderedBody"),
            )
            for raw in response.json().get("comments", [])
        ]

    def download_attachment(self, locator: str, filename: str) -> bytes:
        """Download an attachment by its content URL."""
        logger.debug(f"Downloading attachment: {filename}")
        response = self._retry.execute_with_retry(
            lambda: self._request("GET", locator, timeout=DOWNLOAD_TIMEOUT, headers={"Accept": "*/*"}),
            f"download attachment {filename}",
        )
        return response.content

    def parse_issue(self, raw: dict[str, Any]) -> SourceItem:
        """Normalize a Jira issue payload into a :class:`SourceItem`."""
        key: str = raw["key"]
        fields: dict[str, Any] = raw.get("fields") or {}
        rendered: dict[str, Any] = raw.get("renderedFields") or {}
        issue_type = fields.get("issuetype") or {}

        acceptance_criteria = next(
            (fields[name] for name in self.acceptance_criteria_fields if fields.get(name)),
            None,
        )
        attachments = tuple(
            SourceAttachment(
                filename=att.get("filename") or "attachment",
                size=int(att.get("size") or 0),
                content_url=att.get("content") or "",
                mime_type=att.get("mimeType") or "application/octet-stream",
            )
            for att in fields.get("attachment") or []
        )

        return SourceItem(
            key=key,
            title=fields.get("summary") or "",
            web_url=f"{self.base_url}/browse/{key}",
            description=fields.get("description"),
            rendered_description=rendered.get("description"),
            status=_name(fields.get("status")),
            issue_type=_name(issue_type),
            is_subtask=bool(issue_type.get("subtask", False)) if isinstance(issue_type, dict) else False,
            priority=_name(fields.get("priority")),
            reporter=_name(fields.get("reporter"), "displayName"),
            assignee=_name(fields.get("assignee"), "displayName"),
            created=fields.get("created"),
            updated=fields.get("updated"),
            components=tuple(n for c in fields.get("components") or [] if (n := _name(c))),
            fix_versions=tuple(n for v in fields.get("fixVersions") or [] if (n := _name(v))),
            labels=tuple(fields.get("labels") or ()),
            acceptance_criteria=acceptance_criteria,
            parent_key=_name(fields.get("parent"), "key"),
            subtask_keys=tuple(k for s in fields.get("subtasks") or [] if (k := _name(s, "key"))),
            attachments=attachments,
        )
