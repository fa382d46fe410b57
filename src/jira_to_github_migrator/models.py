"""Data models exchanged between the Jira source, GitHub destination and the engine.

The source client normalizes raw Jira payloads into these dataclasses, so the
engine never has to look at Jira's ``fields`` dictionaries. Rich-text fields
(description, acceptance criteria, comment bodies) are kept raw: they may be an
Atlassian Document Format tree, legacy wiki markup, or plain text, and are
converted to Markdown only when a GitHub body is built.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Any, Literal

IssueState = Literal["open", "closed"]


@dataclass(frozen=True)
class SourceAttachment:
    """An attachment on a Jira issue."""

    filename: str
    size: int
    content_url: str  # Locator used to download the bytes
    mime_type: str = "application/octet-stream"


@dataclass(frozen=True)
class SourceComment:
    """A comment on a Jira issue."""

    author: str
    created: str
    body: Any
    updated: str | None = None
    rendered_body: str | None = None


@dataclass(frozen=True)
class SourceItem:
    """A Jira issue, the unit of migration."""

    key: str
    title: str
    web_url: str
    description: Any = None
    rendered_description: str | None = None
    status: str | None = None
    issue_type: str | None = None
    is_subtask: bool = False
    priority: str | None = None
    reporter: str | None = None
    assignee: str | None = None
    created: str | None = None
    updated: str | None = None
    components: tuple[str, ...] = ()
    fix_versions: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    acceptance_criteria: Any = None
    parent_key: str | None = None
    subtask_keys: tuple[str, ...] = ()
    attachments: tuple[SourceAttachment, ...] = ()


@dataclass(frozen=True)
class SearchPage:
    """One page of a paginated Jira search."""

    items: list[SourceItem]
    total: int
    start_at: int
    max_results: int

    @property
    def has_more(self) -> bool:
        return self.start_at + len(self.items) < self.total


@dataclass(frozen=True)
class DestinationIssue:
    """A GitHub issue as far as the migration cares."""

    id: int
    url: str
    state: IssueState = "open"


class MigrationStatus(enum.StrEnum):
    """Outcome recorded in the mapping file for a source key."""

    MIGRATED = "migrated"
    EXISTING = "existing"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """Terminal records are never reprocessed."""
        return self is not MigrationStatus.ERROR


@dataclass(frozen=True)
class MigrationRecord:
    """Mapping entry for one source key. Overwritten, never appended."""

    source_key: str
    status: MigrationStatus
    timestamp: str
    destination_id: int | None = None
    destination_url: str | None = None
    error_message: str | None = None


MappingTable = dict[str, MigrationRecord]


@dataclass
class RunStatistics:
    """Counters collected during a run. Not persisted."""

    processed: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    comments_migrated: int = 0
    attachments_processed: int = 0

    def add(self, other: RunStatistics) -> None:
        """Accumulate another statistics delta into this one."""
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class ItemOutcome:
    """What processing one item produced.

    ``record`` is ``None`` when nothing should be written to the mapping
    table (already-terminal items and dry-run creations).
    """

    record: MigrationRecord | None
    stats: RunStatistics = field(default_factory=RunStatistics)
