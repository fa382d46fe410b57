"""
Status and label mapping from Jira issues to GitHub.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .models import IssueState, SourceItem

MIGRATED_LABEL: Final[str] = "migrated-from-jira"

_CLOSED_STATUS_MARKERS: Final[tuple[str, ...]] = ("done", "closed", "resolved", "complete")


def slugify(value: str) -> str:
    """Lowercase and replace whitespace runs with dashes ("In Progress" -> "in-progress")."""
    return re.sub(r"\s+", "-", value.strip().lower())


class StatusMapper:
    """Maps a Jira status name to a GitHub issue state."""

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self.mapping: dict[str, str] = dict(mapping or {})

    def map_status(self, status: str | None) -> IssueState:
        """Explicit mapping first, then a name-based heuristic."""
        if not status:
            return "open"

        mapped = self.mapping.get(status)
        if mapped == "open" or mapped == "closed":
            return mapped

        lower_status = status.lower()
        if any(marker in lower_status for marker in _CLOSED_STATUS_MARKERS):
            return "closed"
        return "open"


class LabelTranslator:
    """Handles label translation patterns.

    Patterns map a source name to a target name; a ``*`` in the source matches
    anything and is substituted into the target (``"Sub-*": "subtask-*"``).
    """

    def __init__(self, patterns: Mapping[str, str] | None) -> None:
        self.patterns: list[tuple[str, str]] = []

        for source, target in (patterns or {}).items():
            if not source:
                msg = f"Invalid pattern format: {source!r}"
                raise ValueError(msg)
            self.patterns.append((source, target))

    def translate(self, name: str) -> str | None:
        """Translate a name using configured patterns, or None if nothing matches."""
        for source_pattern, target_pattern in self.patterns:
            if "*" in source_pattern:
                regex_pattern = "(.*)".join(re.escape(part) for part in source_pattern.split("*"))
                match = re.match(f"^{regex_pattern}$", name)
                if match:
                    return target_pattern.replace("*", match.group(1))
            elif source_pattern == name:
                return target_pattern
        return None


class LabelMapper:
    """Derives the GitHub labels for a Jira issue."""

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self.translator: LabelTranslator = LabelTranslator(mapping)

    def map_labels(self, item: SourceItem) -> list[str]:
        """Issue type, priority, components, Jira status and the migration marker."""
        labels: list[str] = []

        if item.issue_type:
            type_label = self.translator.translate(item.issue_type)
            if type_label:
                labels.append(type_label)

        if item.priority:
            labels.append(f"priority:{slugify(item.priority)}")

        labels.extend(f"component:{slugify(component)}" for component in item.components if component)

        if item.status:
            labels.append(f"jira-status:{slugify(item.status)}")

        labels.append(MIGRATED_LABEL)

        # Keep first occurrence order, drop duplicates and blanks
        return list(dict.fromkeys(label for label in labels if label))
