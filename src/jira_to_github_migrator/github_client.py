"""
GitHub destination for migrated Jira issues, built on PyGithub.
"""

from __future__ import annotations

import itertools
import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Final

from github import Auth, Github, GithubException

from .exceptions import AuthenticationError, MigrationError, RemoteOperationError
from .labels import MIGRATED_LABEL
from .models import DestinationIssue
from .retry import HTTP_UNAUTHORIZED, RetryCoordinator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from github.GitRelease import GitRelease
    from github.Issue import Issue
    from github.Repository import Repository

    from .models import IssueState

logger: logging.Logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT: Final[int] = 50
LABEL_DESCRIPTION_LIMIT: Final[int] = 100
DEFAULT_LABEL_COLOR: Final[str] = "d1ecf1"

LABEL_COLORS: Final[dict[str, str]] = {
    MIGRATED_LABEL: "1f77b4",
    "bug": "d73a4a",
    "enhancement": "a2eeef",
    "feature": "0075ca",
    "epic": "7057ff",
    "task": "008672",
    "story": "0052cc",
}

_HTTP_NOT_FOUND: Final[int] = 404
_HTTP_UNPROCESSABLE: Final[int] = 422


def is_migrated_copy(title: str | None, body: str | None, item_key: str) -> bool:
    """Whether a GitHub issue is the migrated copy of ``item_key``.

    Only the ``[KEY] `` title prefix and the provenance footer count. A plain
    mention of the key (a parent reference, a "see X-1" in a description) does not.
    """
    if title and (title == f"[{item_key}]" or title.startswith(f"[{item_key}] ")):
        return True
    return body is not None and f"migrated from [{item_key}](" in body


def _is_already_exists_error(exc: BaseException) -> bool:
    """Check if an exception is a 422 'already_exists' validation error."""
    if not isinstance(exc, GithubException) or exc.status != _HTTP_UNPROCESSABLE:
        return False
    if not isinstance(exc.data, dict):
        return False
    errors: object = exc.data.get("errors")  # pyright: ignore[reportUnknownVariableType]
    if not isinstance(errors, list):
        return False
    return any(isinstance(e, dict) and e.get("code") == "already_exists" for e in errors)  # pyright: ignore[reportUnknownArgumentType,reportUnknownVariableType]


def label_description(name: str) -> str:
    description = "Issue migrated from Jira" if name == MIGRATED_LABEL else f"Jira label: {name}"
    return description[:LABEL_DESCRIPTION_LIMIT]


class GitHubDestination:
    """Creates issues, comments, labels and attachment assets in one repository.

    PyGithub's own retry is disabled; every call goes through the retry
    coordinator instead so rate limits and server errors are handled in one
    place.
    """

    repo_path: str
    _client: Github
    _retry: RetryCoordinator
    _repo: Repository | None
    _issues: dict[int, Issue]
    _releases: dict[str, GitRelease]
    _known_labels: set[str] | None

    def __init__(self, token: str, repo_path: str, *, retry: RetryCoordinator | None = None, client: Github | None = None) -> None:
        self.repo_path = repo_path
        self._client = client or Github(auth=Auth.Token(token), retry=None)
        self._retry = retry or RetryCoordinator()
        self._repo = None
        self._issues = {}
        self._releases = {}
        self._known_labels = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = self._retry.execute_with_retry(
                lambda: self._client.get_repo(self.repo_path), f"get repository {self.repo_path}"
            )
        return self._repo

    def validate_access(self) -> None:
        """Check the token and access to the target repository.

        Raises:
            AuthenticationError: If GitHub rejects the token
            MigrationError: If the repository does not exist or is not accessible
        """
        logger.debug("Testing GitHub authentication...")
        try:
            login = self._retry.execute_with_retry(lambda: self._client.get_user().login, "GitHub authentication test")
            logger.debug(f"Authenticated as: {login}")
            repo = self.repo
        except RemoteOperationError as e:
            if e.status == HTTP_UNAUTHORIZED:
                msg = f"GitHub authentication failed: {e.last_error}"
                raise AuthenticationError(msg) from e
            if e.status == _HTTP_NOT_FOUND:
                msg = f"Repository {self.repo_path} not found or not accessible"
                raise MigrationError(msg) from e
            raise

        logger.debug(f"Repository access confirmed: {repo.full_name}")

    def find_existing(self, item_key: str) -> DestinationIssue | None:
        """Search the repository for the migrated copy of ``item_key``.

        Search errors propagate so the caller never creates a duplicate just
        because the search failed.
        """
        query = f'"{item_key}" in:title,body repo:{self.repo_path}'
        logger.debug(f"Searching GitHub issues: {query}")

        def search() -> list[Issue]:
            results = self._client.search_issues(query, sort="created", order="desc")
            return list(itertools.islice(results, SEARCH_RESULT_LIMIT))

        for issue in self._retry.execute_with_retry(search, f"search issues for {item_key}"):
            if issue.pull_request is not None:
                continue
            if is_migrated_copy(issue.title, issue.body, item_key):
                logger.debug(f"Found existing issue for {item_key}: #{issue.number}")
                return DestinationIssue(id=issue.number, url=issue.html_url, state=issue.state)
        return None

    def create_item(self, title: str, body: str, labels: Sequence[str], state: IssueState) -> DestinationIssue:
        """Create an issue. GitHub always creates issues open; ``state`` is applied by the caller."""
        logger.debug(f"Creating GitHub issue: {title} (target state {state})")
        issue = self._retry.execute_with_retry(
            lambda: self.repo.create_issue(title=title, body=body, labels=list(labels)), f"create issue: {title}"
        )
        self._issues[issue.number] = issue
        return DestinationIssue(id=issue.number, url=issue.html_url, state=issue.state)

    def _get_issue(self, issue_id: int) -> Issue:
        if issue_id not in self._issues:
            self._issues[issue_id] = self._retry.execute_with_retry(
                lambda: self.repo.get_issue(issue_id), f"get issue #{issue_id}"
            )
        return self._issues[issue_id]

    def set_state(self, issue_id: int, state: IssueState) -> None:
        logger.debug(f"Updating issue #{issue_id} state to: {state}")
        issue = self._get_issue(issue_id)
        self._retry.execute_with_retry(lambda: issue.edit(state=state), f"update issue #{issue_id} state")

    def create_comment(self, issue_id: int, body: str) -> None:
        issue = self._get_issue(issue_id)
        self._retry.execute_with_retry(lambda: issue.create_comment(body), f"create comment on issue #{issue_id}")
        logger.debug(f"Added comment to issue #{issue_id}")

    def ensure_labels_exist(self, label_names: Sequence[str]) -> None:
        """Create missing labels. A label that cannot be created is only warned about."""
        if self._known_labels is None:
            labels = self._retry.execute_with_retry(lambda: list(self.repo.get_labels()), "fetch repository labels")
            # GitHub label names are case-insensitive
            self._known_labels = {label.name.lower() for label in labels}

        for name in label_names:
            if name.lower() in self._known_labels:
                continue
            try:
                self._retry.execute_with_retry(
                    lambda name=name: self.repo.create_label(
                        name=name,
                        color=LABEL_COLORS.get(name, DEFAULT_LABEL_COLOR),
                        description=label_description(name),
                    ),
                    f"create label: {name}",
                )
                logger.info(f"Created label: {name}")
            except RemoteOperationError as e:
                if not _is_already_exists_error(e.last_error):
                    logger.warning(f"Failed to create label {name}: {e.last_error}")
                    continue
                logger.debug(f"Label already existed: {name}")
            self._known_labels.add(name.lower())

    def _release_for(self, group_key: str) -> GitRelease:
        """Get or create the draft release holding the assets of ``group_key`` (cached)."""
        if group_key not in self._releases:
            release_name = f"Jira Migration Attachments - {group_key}"

            # Draft releases can't be found by tag, look them up by name
            releases = self._retry.execute_with_retry(lambda: list(self.repo.get_releases()), "list releases")
            for r in releases:
                if r.name == release_name:
                    logger.debug(f"Using existing attachments release: {r.name}")
                    self._releases[group_key] = r
                    return r

            logger.info(f"Creating new '{release_name}' release for attachments")
            self._releases[group_key] = self._retry.execute_with_retry(
                lambda: self.repo.create_git_release(
                    tag=group_key,
                    name=release_name,
                    message="Storage for migrated Jira attachments. Do not delete.",
                    draft=True,
                ),
                f"create release {group_key}",
            )
        return self._releases[group_key]

    def upload_asset(self, group_key: str, content: bytes, filename: str, mime_type: str) -> str:
        """Upload ``content`` as a release asset and return its download URL."""
        release = self._release_for(group_key)
        logger.debug(f"Uploading attachment as release asset: {filename}")

        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=Path(filename).suffix) as f:
                temp_path = f.name
                f.write(content)

            asset = self._retry.execute_with_retry(
                lambda: release.upload_asset(path=temp_path, name=filename, content_type=mime_type),
                f"upload attachment: {filename}",
            )
        finally:
            if temp_path:
                Path(temp_path).unlink(missing_ok=True)

        logger.debug(f"Uploaded {filename}: {asset.browser_download_url}")
        return asset.browser_download_url
