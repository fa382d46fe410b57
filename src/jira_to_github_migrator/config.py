"""
Configuration loading for the Jira to GitHub migration tool.

Configuration is a JSON document with ``jira``, ``github``, ``openai`` and
``migration`` sections. It is looked up in this order:

1. the path given with ``--config``
2. ``./config.json``
3. ``~/.jira-to-github-migrator/config.json``
4. ``~/.gitporter/config.json``

Keys are snake_case; the camelCase spelling used by older ``config.json`` files
(``apiToken``, ``batchSize``, ``filterByStatus``...) is accepted as well.

Secrets can be left out of the file: for each of them a ``pass`` path given on
the command line wins, then the environment variable, then the file value.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from . import utils
from .attachments import AttachmentStrategy
from .exceptions import ConfigError
from .jira_client import DEFAULT_ACCEPTANCE_CRITERIA_FIELDS
from .summarizer import DEFAULT_MAX_TOKENS, DEFAULT_MODEL

logger: logging.Logger = logging.getLogger(__name__)

CONFIG_FILENAME: Final[str] = "config.json"
USER_CONFIG_DIR: Final[str] = ".jira-to-github-migrator"
LEGACY_USER_CONFIG_DIR: Final[str] = ".gitporter"

JIRA_TOKEN_ENV_VAR: Final[str] = "JIRA_API_TOKEN"
GITHUB_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"
OPENAI_KEY_ENV_VAR: Final[str] = "OPENAI_API_KEY"


@dataclass
class SubtaskConfig:
    enabled: bool = False
    filter_by_status: list[str] = field(default_factory=list)


@dataclass
class JiraConfig:
    url: str = ""
    email: str = ""
    api_token: str = ""
    jql: str = ""
    subtasks: SubtaskConfig = field(default_factory=SubtaskConfig)
    acceptance_criteria_fields: list[str] = field(default_factory=lambda: list(DEFAULT_ACCEPTANCE_CRITERIA_FIELDS))


@dataclass
class GitHubConfig:
    token: str = ""
    repo: str = ""


@dataclass
class OpenAIConfig:
    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass
class MigrationOptions:
    batch_size: int = 10
    dry_run: bool = False
    status_mapping: dict[str, str] = field(default_factory=dict)
    label_mapping: dict[str, str] = field(default_factory=dict)
    attachment_strategy: str = AttachmentStrategy.LINK.value
    include_summary: bool = False
    verbose: bool = False
    mapping_file: str = "mapping.json"


@dataclass
class Config:
    jira: JiraConfig = field(default_factory=JiraConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    migration: MigrationOptions = field(default_factory=MigrationOptions)
    source_path: Path | None = None


def find_config_file(explicit_path: str | None = None, *, cwd: Path | None = None, home: Path | None = None) -> Path:
    """Locate the configuration file.

    Raises:
        ConfigError: If no configuration file exists
    """
    if explicit_path:
        path = Path(explicit_path).expanduser()
        if not path.is_file():
            msg = f"Configuration file not found: {path}"
            raise ConfigError(msg)
        return path

    candidates = [
        (cwd or Path.cwd()) / CONFIG_FILENAME,
        (home or Path.home()) / USER_CONFIG_DIR / CONFIG_FILENAME,
        (home or Path.home()) / LEGACY_USER_CONFIG_DIR / CONFIG_FILENAME,
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate

    msg = "No configuration file found. Looked in: " + ", ".join(str(c) for c in candidates)
    raise ConfigError(msg)


def _camel_case(name: str) -> str:
    first, *rest = name.split("_")
    return first + "".join(part.capitalize() for part in rest)


def _get(section: dict[str, Any], name: str, default: Any = None) -> Any:  # noqa: ANN401
    """Read ``name`` from a section, accepting the camelCase spelling as an alias."""
    if name in section:
        return section[name]
    return section.get(_camel_case(name), default)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        msg = f"Configuration section '{name}' must be an object"
        raise ConfigError(msg)
    return section


def parse_config(raw: object, source_path: Path | None = None) -> Config:
    """Build a :class:`Config` from the decoded JSON document (not validated yet).

    Keys are snake_case (``batch_size``); camelCase (``batchSize``) is accepted too.
    """
    if not isinstance(raw, dict):
        msg = "Configuration must be a JSON object"
        raise ConfigError(msg)

    jira = _section(raw, "jira")
    github = _section(raw, "github")
    openai = _section(raw, "openai")
    migration = _section(raw, "migration")
    subtasks = _section(jira, "subtasks")

    defaults = Config()
    try:
        return Config(
            jira=JiraConfig(
                url=_get(jira, "url", ""),
                email=_get(jira, "email", ""),
                api_token=_get(jira, "api_token", ""),
                jql=_get(jira, "jql", ""),
                subtasks=SubtaskConfig(
                    enabled=bool(_get(subtasks, "enabled", False)),
                    filter_by_status=list(_get(subtasks, "filter_by_status") or []),
                ),
                acceptance_criteria_fields=list(
                    _get(jira, "acceptance_criteria_fields", defaults.jira.acceptance_criteria_fields)
                ),
            ),
            github=GitHubConfig(token=_get(github, "token", ""), repo=_get(github, "repo", "")),
            openai=OpenAIConfig(
                api_key=_get(openai, "api_key", ""),
                model=_get(openai, "model", DEFAULT_MODEL),
                max_tokens=int(_get(openai, "max_tokens", DEFAULT_MAX_TOKENS)),
            ),
            migration=MigrationOptions(
                batch_size=_get(migration, "batch_size", defaults.migration.batch_size),
                dry_run=bool(_get(migration, "dry_run", False)),
                status_mapping=dict(_get(migration, "status_mapping") or {}),
                label_mapping=dict(_get(migration, "label_mapping") or {}),
                attachment_strategy=_get(migration, "attachment_strategy", defaults.migration.attachment_strategy),
                include_summary=bool(_get(migration, "include_summary", False)),
                verbose=bool(_get(migration, "verbose", False)),
                mapping_file=_get(migration, "mapping_file", defaults.migration.mapping_file),
            ),
            source_path=source_path,
        )
    except (TypeError, ValueError, AttributeError) as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigError(msg) from e


def load_config_file(path: Path) -> Config:
    """Read and parse a configuration file.

    Raises:
        ConfigError: If the file cannot be read or is not valid JSON
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        msg = f"Failed to read configuration file {path}: {e}"
        raise ConfigError(msg) from e
    except json.JSONDecodeError as e:
        msg = f"Configuration file {path} is not valid JSON: {e}"
        raise ConfigError(msg) from e

    logger.debug(f"Loaded configuration from {path}")
    return parse_config(raw, source_path=path)


def resolve_secret(current: str, env_var: str, pass_path: str | None = None) -> str:
    """Pick a secret from ``pass``, then the environment, then the file value."""
    if pass_path:
        try:
            return utils.get_pass_value(pass_path)
        except (utils.PassError, ValueError) as e:
            msg = f"Failed to read secret from pass path '{pass_path}': {e}"
            raise ConfigError(msg) from e

    value = os.environ.get(env_var)
    if value:
        return value
    return current


def apply_secrets(config: Config, *, jira_pass_path: str | None = None, github_pass_path: str | None = None) -> None:
    config.jira.api_token = resolve_secret(config.jira.api_token, JIRA_TOKEN_ENV_VAR, jira_pass_path)
    config.github.token = resolve_secret(config.github.token, GITHUB_TOKEN_ENV_VAR, github_pass_path)
    config.openai.api_key = resolve_secret(config.openai.api_key, OPENAI_KEY_ENV_VAR)


def apply_overrides(
    config: Config,
    *,
    jql: str | None = None,
    batch_size: int | None = None,
    dry_run: bool = False,
    mapping_file: str | None = None,
    verbose: bool = False,
) -> None:
    """Apply command-line overrides on top of the file configuration."""
    if jql:
        config.jira.jql = jql
    if batch_size is not None:
        config.migration.batch_size = batch_size
    if dry_run:
        config.migration.dry_run = True
    if mapping_file:
        config.migration.mapping_file = mapping_file
    if verbose:
        config.migration.verbose = True


def validate_config(config: Config) -> None:
    """Check required values and formats.

    Raises:
        ConfigError: Listing every problem found
    """
    problems: list[str] = [
        f"{name} is required"
        for name, value in (
            ("jira.url", config.jira.url),
            ("jira.email", config.jira.email),
            ("jira.api_token", config.jira.api_token),
            ("jira.jql", config.jira.jql),
            ("github.token", config.github.token),
            ("github.repo", config.github.repo),
        )
        if not value
    ]

    repo = config.github.repo
    if repo and (repo.count("/") != 1 or not all(repo.split("/"))):
        problems.append('github.repo must be in format "owner/repo"')

    batch_size = config.migration.batch_size
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        problems.append(f"migration.batch_size must be a positive integer, got {batch_size!r}")

    strategies = [s.value for s in AttachmentStrategy]
    if config.migration.attachment_strategy not in strategies:
        problems.append(
            f"migration.attachment_strategy must be one of {', '.join(strategies)}, "
            f"got {config.migration.attachment_strategy!r}"
        )

    for status, state in config.migration.status_mapping.items():
        if state not in ("open", "closed"):
            problems.append(f"migration.status_mapping[{status!r}] must be 'open' or 'closed', got {state!r}")

    if problems:
        msg = "Invalid configuration:\n" + "\n".join(f"  - {p}" for p in problems)
        raise ConfigError(msg)


def load_config(
    config_path: str | None = None,
    *,
    jira_pass_path: str | None = None,
    github_pass_path: str | None = None,
    **overrides: Any,  # noqa: ANN401
) -> Config:
    """Discover, read, complete and validate the configuration."""
    config = load_config_file(find_config_file(config_path))
    apply_secrets(config, jira_pass_path=jira_pass_path, github_pass_path=github_pass_path)
    apply_overrides(config, **overrides)
    validate_config(config)
    return config
