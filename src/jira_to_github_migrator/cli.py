"""
Command-line interface for the Jira to GitHub migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import Config, load_config
from .exceptions import MigrationError
from .github_client import GitHubDestination
from .jira_client import JiraClient
from .mapping_store import MappingStore
from .migrator import IssueMigrator, SubtaskPolicy
from .orchestrator import Migrator
from .retry import RetryCoordinator
from .summarizer import OpenAISummarizer
from .utils import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Migrate Jira Cloud issues to GitHub issues with optional AI-powered summaries"
    )

    _ = parser.add_argument("--config", "-c", help="Path to the JSON configuration file")
    _ = parser.add_argument("--jql", help="Override the JQL query used to select Jira issues")
    _ = parser.add_argument("--batch-size", type=int, help="Number of issues per batch (default: 10)")
    _ = parser.add_argument("--dry-run", action="store_true", help="Run without creating anything on GitHub")
    _ = parser.add_argument("--mapping-file", help="Path of the Jira to GitHub mapping file (default: mapping.json)")

    _ = parser.add_argument(
        "--jira-pass-token", help="Path for the Jira API token in the pass utility (overrides JIRA_API_TOKEN)"
    )
    _ = parser.add_argument(
        "--github-pass-token", help="Path for the GitHub token in the pass utility (overrides GITHUB_TOKEN)"
    )

    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Enable verbose (debug) logging"
    )

    return parser.parse_args(argv)


def build_migrator(config: Config) -> Migrator:
    """Wire the Jira, GitHub and OpenAI clients from the configuration."""
    retry = RetryCoordinator()
    source = JiraClient(
        config.jira.url,
        config.jira.email,
        config.jira.api_token,
        retry=retry,
        acceptance_criteria_fields=config.jira.acceptance_criteria_fields,
    )
    destination = GitHubDestination(config.github.token, config.github.repo, retry=retry)

    summarizer: OpenAISummarizer | None = None
    if config.migration.include_summary:
        summarizer = OpenAISummarizer(
            config.openai.api_key or None,
            model=config.openai.model,
            max_tokens=config.openai.max_tokens,
            retry=retry,
        )

    options = config.migration
    issue_migrator = IssueMigrator(
        source,
        destination,
        summarizer=summarizer,
        status_mapping=options.status_mapping,
        label_mapping=options.label_mapping,
        attachment_strategy=options.attachment_strategy,
        dry_run=options.dry_run,
        include_summary=options.include_summary,
    )

    return Migrator(
        source,
        destination,
        MappingStore(options.mapping_file),
        jql=config.jira.jql,
        issue_migrator=issue_migrator,
        summarizer=summarizer,
        batch_size=options.batch_size,
        subtasks=SubtaskPolicy(
            enabled=config.jira.subtasks.enabled,
            filter_by_status=tuple(config.jira.subtasks.filter_by_status),
        ),
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    verbosity: int = args.verbose
    setup_logging(verbosity=verbosity)

    try:
        config = load_config(
            args.config,
            jira_pass_path=args.jira_pass_token,
            github_pass_path=args.github_pass_token,
            jql=args.jql,
            batch_size=args.batch_size,
            dry_run=args.dry_run,
            mapping_file=args.mapping_file,
            verbose=verbosity > 0,
        )
        if config.migration.verbose and verbosity == 0:
            setup_logging(verbosity=1)

        if config.migration.dry_run:
            logger.info("Running in dry-run mode - no changes will be made to GitHub")
        logger.info(f"Starting migration from Jira to GitHub ({config.github.repo})")
        logger.debug(f"Batch size: {config.migration.batch_size}")
        logger.debug(f"JQL: {config.jira.jql}")

        _ = build_migrator(config).migrate()
    except MigrationError:
        logger.exception("Migration failed")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Migration interrupted; progress up to the last completed batch is saved")
        sys.exit(1)

    logger.info("Migration completed successfully")
    sys.exit(0)
