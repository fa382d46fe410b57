"""
Jira to GitHub Migration Tool

Migrates Jira Cloud issues to GitHub issues with their comments, attachments
and labels. Runs are resumable: a mapping file records which Jira issue became
which GitHub issue, so re-running never creates duplicates.
"""

from __future__ import annotations

from .cli import main
from .converter import DocumentConverter
from .exceptions import (
    AuthenticationError,
    ConfigError,
    ExhaustedRetriesError,
    FatalRemoteError,
    MigrationError,
    PersistenceError,
)
from .mapping_store import MappingStore
from .migrator import IssueMigrator
from .orchestrator import BatchScheduler, Migrator
from .retry import RetryCoordinator
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "BatchScheduler",
    "ConfigError",
    "DocumentConverter",
    "ExhaustedRetriesError",
    "FatalRemoteError",
    "IssueMigrator",
    "MappingStore",
    "MigrationError",
    "Migrator",
    "PersistenceError",
    "RetryCoordinator",
    "main",
    "setup_logging",
]
