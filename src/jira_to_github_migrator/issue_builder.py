"""Build GitHub issue titles, bodies and comments from Jira data."""

from __future__ import annotations

import datetime as dt
import re
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from .converter import DocumentConverter
    from .models import SourceComment, SourceItem

# Minimum time difference (in seconds) to consider showing "updated" timestamp
LAST_EDITED_THRESHOLD_SECONDS = 60

GITHUB_TITLE_LIMIT: Final[int] = 255

_SIZE_UNITS: Final[tuple[str, ...]] = ("B", "KB", "MB", "GB")


def format_timestamp(iso_timestamp: str | None) -> str:
    """Format ISO 8601 timestamp to human-readable format.

    Args:
        iso_timestamp: ISO 8601 formatted timestamp string

    Returns:
        Formatted timestamp (e.g., "2024-01-15 10:30:45Z").
        Returns original value if parsing fails, "" for empty input.
    """
    if not iso_timestamp:
        return ""

    try:
        timestamp_dt = dt.datetime.fromisoformat(iso_timestamp)
        formatted = timestamp_dt.isoformat(sep=" ", timespec="seconds")
        return formatted.replace("+00:00", "Z")
    except (ValueError, AttributeError):
        return iso_timestamp


def should_show_last_edited(created_at: str | None, updated_at: str | None) -> bool:
    """Check if the updated timestamp should be shown.

    Returns:
        True if updated_at differs from created_at by more than LAST_EDITED_THRESHOLD_SECONDS
    """
    if not created_at or not updated_at:
        return False

    try:
        created_dt = dt.datetime.fromisoformat(created_at)
        updated_dt = dt.datetime.fromisoformat(updated_at)
    except (ValueError, AttributeError):
        return False

    diff = abs((updated_dt - created_dt).total_seconds())
    return diff > LAST_EDITED_THRESHOLD_SECONDS


def format_file_size(size: int | None) -> str:
    """Human readable file size ("1.5 KB")."""
    if not size or size <= 0:
        return "0 B"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:  # noqa: PLR2004
        value /= 1024
        exponent += 1
    return f"{round(value, 1):g} {_SIZE_UNITS[exponent]}"


def truncate(text: str, max_length: int = 50) -> str:
    if not text or len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def sanitize_title(text: str | None, max_length: int = GITHUB_TITLE_LIMIT) -> str:
    """Collapse newlines/whitespace and cut to ``max_length`` characters."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()[:max_length]


def build_title(item: SourceItem) -> str:
    """``[KEY] summary`` bounded to GitHub's title limit."""
    prefix = f"[{item.key}] "
    summary = sanitize_title(item.title) or "Untitled Issue"
    return prefix + sanitize_title(summary, GITHUB_TITLE_LIMIT - len(prefix))


def build_metadata_table(item: SourceItem) -> str:
    """Markdown table with the Jira fields that have no GitHub equivalent."""
    rows: list[tuple[str, str]] = [
        ("Jira Key", f"[{item.key}]({item.web_url})"),
        ("Issue Type", item.issue_type or "Unknown"),
        ("Status", item.status or "Unknown"),
        ("Priority", item.priority or "Unknown"),
        ("Reporter", item.reporter or "Unknown"),
        ("Assignee", item.assignee or "Unassigned"),
        ("Created", format_timestamp(item.created)),
        ("Updated", format_timestamp(item.updated)),
    ]
    if item.components:
        rows.append(("Components", ", ".join(item.components)))
    if item.fix_versions:
        rows.append(("Fix Versions", ", ".join(item.fix_versions)))
    if item.parent_key:
        rows.append(("Parent", item.parent_key))

    table = "## Issue Details\n\n| Field | Value |\n|-------|-------|\n"
    table += "".join(f"| **{name}** | {value} |\n" for name, value in rows)
    return table + "\n---\n\n"


def build_footer(item: SourceItem, migrated_on: dt.date | None = None) -> str:
    """Provenance footer linking back to the Jira issue."""
    date = (migrated_on or dt.datetime.now(dt.UTC).date()).isoformat()
    return f"\n---\n\n*This issue was migrated from [{item.key}]({item.web_url}) on {date}*"


def build_issue_body(
    item: SourceItem,
    converter: DocumentConverter,
    *,
    summary_block: str = "",
    attachments_text: str = "",
    migrated_on: dt.date | None = None,
) -> str:
    """Build complete GitHub issue body.

    Args:
        item: Jira issue
        converter: Converter for the rich-text fields
        summary_block: Formatted AI summary, if any
        attachments_text: Attachment section produced by the attachment handler
        migrated_on: Date shown in the footer (today if omitted)

    Returns:
        Complete issue body for GitHub
    """
    body = summary_block
    body += build_metadata_table(item)

    description = converter.to_markdown(item.description or item.rendered_description)
    if description:
        body += f"## Description\n\n{description}\n\n"

    acceptance_criteria = converter.to_markdown(item.acceptance_criteria)
    if acceptance_criteria:
        body += f"## Acceptance Criteria\n\n{acceptance_criteria}\n\n"

    body += attachments_text
    body += build_footer(item, migrated_on)
    return body


def build_comment_body(comment: SourceComment, converter: DocumentConverter) -> str:
    """Attributed GitHub comment body for a Jira comment."""
    header = f"**{comment.author or 'Unknown User'}** commented on {format_timestamp(comment.created)}"
    if should_show_last_edited(comment.created, comment.updated):
        header += f" (updated {format_timestamp(comment.updated)})"
    body = converter.to_markdown(comment.body or comment.rendered_body)
    return f"{header}:\n\n{body}"
