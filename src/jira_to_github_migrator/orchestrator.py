"""Migration orchestrator that coordinates Jira, GitHub and the mapping file.

Migration Flow
--------------
Phase 1: Preparation
    - Validate API access to Jira and GitHub (and OpenAI when summaries are on;
      a failing OpenAI check only disables summaries)
    - Load the mapping table from ``mapping.json``

Phase 2: Fetch
    - Run the JQL query once, following pagination
    - Apply the subtask policy

Phase 3: Batches
    For each batch of ``batch_size`` issues, in query order:
        a. Generate AI summaries for the batch's issues that still need
           migrating (small fixed concurrency, settling delay between waves)
        b. Process each issue sequentially with IssueMigrator
        c. Save the mapping table

Checkpointing
-------------
The mapping table is saved after every batch, never after every issue. A
crash therefore loses at most the batch in flight, and because GitHub is
searched for the Jira key before anything is created, re-running after a
crash does not duplicate the issues of that batch either.

Error Handling
--------------
- Per-issue failures: recorded as ERROR in the mapping, retried next run
- Authentication and mapping file failures: abort the run
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .migrator import IssueMigrator, SubtaskPolicy, filter_items_by_type
from .models import RunStatistics
from .utils import chunked

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .mapping_store import MappingStore
    from .models import MappingTable, SourceItem
    from .protocols import DestinationClient, SourceClient, Summarizer

logger: logging.Logger = logging.getLogger(__name__)


class BatchScheduler:
    """Runs the per-issue state machine over all issues, batch by batch."""

    _migrator: IssueMigrator
    _store: MappingStore
    _summarizer: Summarizer | None
    mapping: MappingTable

    def __init__(
        self,
        migrator: IssueMigrator,
        store: MappingStore,
        mapping: MappingTable,
        *,
        summarizer: Summarizer | None = None,
    ) -> None:
        self._migrator = migrator
        self._store = store
        self._summarizer = summarizer
        self.mapping = mapping

    def run(self, items: Sequence[SourceItem], batch_size: int) -> RunStatistics:
        """Process ``items`` in order and return the aggregated statistics.

        Raises:
            ValueError: If batch_size is not a positive integer
            PersistenceError: If a checkpoint cannot be written
        """
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            msg = f"batch_size must be a positive integer, got {batch_size!r}"
            raise ValueError(msg)

        stats = RunStatistics()
        batches = chunked(list(items), batch_size)

        for batch_number, batch in enumerate(batches, start=1):
            logger.info(f"Processing batch {batch_number}/{len(batches)} ({len(batch)} issues)...")
            summaries = self._summaries_for(batch)

            for item in batch:
                outcome = self._migrator.process_item(item, self.mapping, summaries.get(item.key))
                if outcome.record is not None:
                    self.mapping[item.key] = outcome.record
                stats.add(outcome.stats)

            self._store.save(self.mapping)
            logger.info(f"Completed batch {batch_number}/{len(batches)}")

        return stats

    def _summaries_for(self, batch: Sequence[SourceItem]) -> dict[str, str]:
        if not self._migrator.include_summary or self._summarizer is None or not self._summarizer.is_available():
            return {}

        pending = [
            item
            for item in batch
            if (record := self.mapping.get(item.key)) is None or not record.status.is_terminal
        ]
        if not pending:
            logger.debug("No new issues to summarize in this batch")
            return {}
        return self._summarizer.summarize_batch(pending)


class Migrator:
    """Orchestrates a complete Jira to GitHub migration run.

    Usage:
        source = JiraClient(...)
        destination = GitHubDestination(...)
        migrator = Migrator(source, destination, MappingStore("mapping.json"), jql="project = PROJ")
        stats = migrator.migrate()
    """

    def __init__(
        self,
        source: SourceClient,
        destination: DestinationClient,
        store: MappingStore,
        *,
        jql: str,
        issue_migrator: IssueMigrator,
        summarizer: Summarizer | None = None,
        batch_size: int = 10,
        subtasks: SubtaskPolicy | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self.store = store
        self.summarizer = summarizer
        self.issue_migrator = issue_migrator
        self.jql = jql
        self.batch_size = batch_size
        self.subtasks = subtasks or SubtaskPolicy()

    def validate_access(self) -> None:
        """Check both trackers; turn summaries off if OpenAI is unreachable.

        Raises:
            MigrationError: If Jira or GitHub access fails
        """
        logger.info("Testing API connections...")
        self._source.test_authentication()
        logger.debug("Jira connection successful")
        self._destination.validate_access()
        logger.debug("GitHub connection successful")

        if self.issue_migrator.include_summary:
            if self.summarizer is None or not self.summarizer.test_connection():
                logger.warning("OpenAI connection failed - summaries will be disabled")
                self.issue_migrator.include_summary = False
            else:
                logger.debug("OpenAI connection successful")

    def fetch_items(self) -> list[SourceItem]:
        logger.info("Fetching issues from Jira...")
        logger.debug(f"Using JQL query: {self.jql}")
        items = self._source.get_all_items(self.jql, batch_size=max(self.batch_size, 50))
        items = filter_items_by_type(items, self.subtasks)
        logger.info(f"Found {len(items)} issues to migrate")
        return items

    def migrate(self) -> RunStatistics:
        """Execute the full migration.

        Returns:
            Statistics of the run

        Raises:
            MigrationError: If a run-level error (access, persistence) occurs
        """
        self.validate_access()
        mapping = self.store.load()

        items = self.fetch_items()
        if not items:
            logger.info("No issues found to migrate")
            return RunStatistics()

        scheduler = BatchScheduler(self.issue_migrator, self.store, mapping, summarizer=self.summarizer)
        stats = scheduler.run(items, self.batch_size)

        log_statistics(stats, mapping_file=str(self.store.path))
        return stats


def log_statistics(stats: RunStatistics, mapping_file: str = "mapping.json") -> None:
    """Log the end-of-run report."""
    logger.info("Migration Statistics:")
    logger.info(f"  Total Processed: {stats.processed}")
    logger.info(f"  Successfully Created: {stats.created}")
    logger.info(f"  Skipped (already exists): {stats.skipped}")
    logger.info(f"  Errors: {stats.errors}")
    logger.info(f"  Comments Migrated: {stats.comments_migrated}")
    logger.info(f"  Attachments Processed: {stats.attachments_processed}")

    if stats.errors > 0:
        logger.warning(f"Some issues failed to migrate. Check {mapping_file} for details.")
