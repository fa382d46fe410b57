"""
Per-issue migration state machine.

For each Jira issue the mapping table decides what happens:

- no entry: look for an existing GitHub issue mentioning the key. Found ->
  EXISTING. Otherwise create it (or only pretend to in dry-run) -> MIGRATED,
  or ERROR if creation fails.
- MIGRATED / EXISTING entry: nothing to do, counted as skipped. Re-running the
  migration never creates a second GitHub issue for the same key.
- ERROR entry: retried from scratch as if unseen.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .attachments import AttachmentHandler, AttachmentStrategy
from .converter import DocumentConverter
from .exceptions import AuthenticationError, RemoteOperationError
from .issue_builder import build_comment_body, build_issue_body, build_title
from .labels import LabelMapper, StatusMapper
from .models import ItemOutcome, MigrationRecord, MigrationStatus, RunStatistics
from .retry import HTTP_UNAUTHORIZED

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .models import DestinationIssue, MappingTable, SourceItem
    from .protocols import DestinationClient, SourceClient, Summarizer

logger: logging.Logger = logging.getLogger(__name__)


def _now() -> str:
    return dt.datetime.now(dt.UTC).isoformat(timespec="seconds")


@dataclass(frozen=True)
class SubtaskPolicy:
    """Which subtasks returned by the Jira query take part in the migration."""

    enabled: bool = False
    filter_by_status: tuple[str, ...] = ()


def filter_items_by_type(items: Sequence[SourceItem], policy: SubtaskPolicy) -> list[SourceItem]:
    """Apply the subtask policy, returning parent issues first, then subtasks.

    With subtasks disabled, subtasks the query returned directly are migrated
    as ordinary issues. Either way the mapping is keyed by the Jira key only,
    so an issue migrated once is never migrated again whatever its role.
    """
    parents: list[SourceItem] = []
    subtasks: list[SourceItem] = []

    for item in items:
        if not item.is_subtask:
            parents.append(item)
        elif not policy.enabled:
            logger.debug(f"Treating subtask {item.key} as a regular issue since it was directly queried")
            parents.append(item)
        elif not policy.filter_by_status or item.status in policy.filter_by_status:
            subtasks.append(item)
        else:
            logger.debug(f"Skipping subtask {item.key} due to status filter ({item.status})")

    logger.info(f"Filtered issues: {len(parents)} parent issues, {len(subtasks)} subtasks")
    return parents + subtasks


class IssueMigrator:
    """Migrates one Jira issue at a time to GitHub."""

    _source: SourceClient
    _destination: DestinationClient
    _summarizer: Summarizer | None
    _converter: DocumentConverter
    _attachments: AttachmentHandler
    status_mapper: StatusMapper
    label_mapper: LabelMapper
    dry_run: bool
    include_summary: bool

    def __init__(
        self,
        source: SourceClient,
        destination: DestinationClient,
        *,
        summarizer: Summarizer | None = None,
        converter: DocumentConverter | None = None,
        status_mapping: Mapping[str, str] | None = None,
        label_mapping: Mapping[str, str] | None = None,
        attachment_strategy: AttachmentStrategy | str = AttachmentStrategy.LINK,
        dry_run: bool = False,
        include_summary: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self._summarizer = summarizer
        self._converter = converter or DocumentConverter()
        self._attachments = AttachmentHandler(source, destination, attachment_strategy)
        self.status_mapper = StatusMapper(status_mapping)
        self.label_mapper = LabelMapper(label_mapping)
        self.dry_run = dry_run
        self.include_summary = include_summary
        self._logger = log or logger

    def process_item(self, item: SourceItem, mapping: MappingTable, summary: str | None = None) -> ItemOutcome:
        """Decide what to do with ``item`` and do it.

        Per-item failures are recorded as ERROR entries and never propagate,
        except authentication failures which abort the whole run.

        Args:
            item: Jira issue to migrate
            mapping: Current mapping table (read only here)
            summary: AI summary generated for this issue, if any

        Returns:
            ItemOutcome with the record to store (or None) and the statistics delta
        """
        stats = RunStatistics(processed=1)
        key = item.key
        previous = mapping.get(key)

        if previous is not None and previous.status.is_terminal:
            self._logger.debug(f"Skipping {key} - already {previous.status.value} as #{previous.destination_id}")
            stats.skipped = 1
            return ItemOutcome(record=None, stats=stats)

        if previous is not None:
            self._logger.info(f"Retrying {key} after previous error: {previous.error_message}")

        try:
            existing = self._destination.find_existing(key)
            if existing is not None:
                self._logger.info(f"Found existing GitHub issue for {key}: #{existing.id}")
                stats.skipped = 1
                return ItemOutcome(record=self._record(key, MigrationStatus.EXISTING, existing), stats=stats)

            if self.dry_run:
                self._logger.info(f"[DRY RUN] Would migrate {key}: {item.title}")
                stats.created = 1
                return ItemOutcome(record=None, stats=stats)

            created = self._create_issue(item, summary, stats)
        except RemoteOperationError as e:
            if e.status == HTTP_UNAUTHORIZED:
                msg = f"Authentication failed while migrating {key}: {e}"
                raise AuthenticationError(msg) from e
            return self._error_outcome(key, e, stats)
        except Exception as e:
            return self._error_outcome(key, e, stats)

        record = self._record(key, MigrationStatus.MIGRATED, created)
        self._migrate_comments(item, created.id, stats)
        stats.created = 1
        self._logger.info(f"Migrated {key} -> GitHub #{created.id}")
        return ItemOutcome(record=record, stats=stats)

    def _error_outcome(self, key: str, error: Exception, stats: RunStatistics) -> ItemOutcome:
        self._logger.error(f"Failed to migrate {key}: {error}", exc_info=error)
        stats.errors = 1
        record = MigrationRecord(
            source_key=key,
            status=MigrationStatus.ERROR,
            timestamp=_now(),
            error_message=str(error),
        )
        return ItemOutcome(record=record, stats=stats)

    def _record(self, key: str, status: MigrationStatus, issue: DestinationIssue) -> MigrationRecord:
        return MigrationRecord(
            source_key=key,
            status=status,
            timestamp=_now(),
            destination_id=issue.id,
            destination_url=issue.url,
        )

    def build_body(self, item: SourceItem, summary: str | None, stats: RunStatistics) -> str:
        summary_block = ""
        if summary and self.include_summary and self._summarizer is not None:
            summary_block = self._summarizer.format_summary(summary, item.key)

        attachments = self._attachments.process(item.attachments, item.key)
        stats.attachments_processed += attachments.attachment_count

        return build_issue_body(
            item,
            self._converter,
            summary_block=summary_block,
            attachments_text=attachments.text,
        )

    def _create_issue(self, item: SourceItem, summary: str | None, stats: RunStatistics) -> DestinationIssue:
        title = build_title(item)
        body = self.build_body(item, summary, stats)
        labels = self.label_mapper.map_labels(item)
        state = self.status_mapper.map_status(item.status)

        self._destination.ensure_labels_exist(labels)
        created = self._destination.create_item(title, body, labels, state)

        if created.state != state:
            self._destination.set_state(created.id, state)

        return created

    def _migrate_comments(self, item: SourceItem, issue_id: int, stats: RunStatistics) -> None:
        """Replicate comments in order. Failures are logged, never fatal to the issue."""
        try:
            comments = self._source.get_comments(item.key)
        except Exception as e:
            self._logger.warning(f"Failed to fetch comments for {item.key}: {e}")
            return

        if not comments:
            return

        self._logger.debug(f"Migrating {len(comments)} comments for {item.key}")
        for index, comment in enumerate(comments, start=1):
            try:
                self._destination.create_comment(issue_id, build_comment_body(comment, self._converter))
            except Exception as e:
                self._logger.warning(f"Failed to migrate comment {index}/{len(comments)} of {item.key}: {e}")
                continue
            stats.comments_migrated += 1
