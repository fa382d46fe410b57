"""Tests for issue body building functions."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

import pytest

from jira_to_github_migrator.converter import DocumentConverter
from jira_to_github_migrator.issue_builder import (
    build_comment_body,
    build_footer,
    build_issue_body,
    build_metadata_table,
    build_title,
    format_file_size,
    format_timestamp,
    sanitize_title,
    should_show_last_edited,
    truncate,
)
from jira_to_github_migrator.models import SourceComment

if TYPE_CHECKING:
    from collections.abc import Callable

    from jira_to_github_migrator.models import SourceItem


@pytest.mark.unit
class TestFormatTimestamp:
    def test_format_with_z_suffix(self) -> None:
        result = format_timestamp("2024-01-15T10:30:45.123Z")
        assert result == "2024-01-15 10:30:45Z"

    def test_format_with_utc_offset(self) -> None:
        result = format_timestamp("2024-01-15T10:30:45.123456+00:00")
        assert result == "2024-01-15 10:30:45Z"

    def test_format_with_non_utc_timezone(self) -> None:
        result = format_timestamp("2024-01-15T10:30:45+05:30")
        assert result == "2024-01-15 10:30:45+05:30"

    def test_empty_string_returns_empty(self) -> None:
        assert format_timestamp("") == ""
        assert format_timestamp(None) == ""

    def test_invalid_format_returns_original(self) -> None:
        assert format_timestamp("not a timestamp") == "not a timestamp"


@pytest.mark.unit
class TestShouldShowLastEdited:
    def test_same_timestamps(self) -> None:
        assert should_show_last_edited("2024-01-15T10:30:00+00:00", "2024-01-15T10:30:00+00:00") is False

    def test_within_threshold(self) -> None:
        assert should_show_last_edited("2024-01-15T10:30:00+00:00", "2024-01-15T10:30:59+00:00") is False

    def test_beyond_threshold(self) -> None:
        assert should_show_last_edited("2024-01-15T10:30:00+00:00", "2024-01-15T10:32:00+00:00") is True

    def test_missing_or_invalid(self) -> None:
        assert should_show_last_edited(None, "2024-01-15T10:30:00+00:00") is False
        assert should_show_last_edited("garbage", "2024-01-15T10:30:00+00:00") is False


@pytest.mark.unit
class TestFormatting:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 B"), (None, "0 B"), (512, "512 B"), (1024, "1 KB"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5 MB")],
    )
    def test_format_file_size(self, size: int | None, expected: str) -> None:
        assert format_file_size(size) == expected

    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        assert truncate("x" * 60, 10) == "xxxxxxx..."

    def test_sanitize_title(self) -> None:
        assert sanitize_title("  multi\nline\t title ") == "multi line title"
        assert sanitize_title(None) == ""
        assert sanitize_title("abcdef", 3) == "abc"


@pytest.mark.unit
class TestBuildTitle:
    def test_key_prefix(self, item_factory: Callable[..., SourceItem]) -> None:
        assert build_title(item_factory("X-1", title="Login fails")) == "[X-1] Login fails"

    def test_untitled(self, item_factory: Callable[..., SourceItem]) -> None:
        assert build_title(item_factory("X-1", title="   ")) == "[X-1] Untitled Issue"

    def test_bounded_length(self, item_factory: Callable[..., SourceItem]) -> None:
        title = build_title(item_factory("PROJ-1234", title="word " * 200))
        assert len(title) <= 255
        assert title.startswith("[PROJ-1234] word word")


@pytest.mark.unit
class TestBuildIssueBody:
    def setup_method(self) -> None:
        self.converter = DocumentConverter()
        self.migrated_on = dt.date(2024, 2, 1)

    def test_metadata_table(self, item_factory: Callable[..., SourceItem]) -> None:
        item = item_factory(
            "X-1",
            issue_type="Bug",
            status="In Progress",
            priority="High",
            assignee=None,
            components=("API",),
            fix_versions=("1.0", "1.1"),
            parent_key="X-0",
        )

        table = build_metadata_table(item)

        assert table.startswith("## Issue Details\n\n| Field | Value |\n|-------|-------|\n")
        assert "| **Jira Key** | [X-1](https://example.atlassian.net/browse/X-1) |" in table
        assert "| **Issue Type** | Bug |" in table
        assert "| **Assignee** | Unassigned |" in table
        assert "| **Components** | API |" in table
        assert "| **Fix Versions** | 1.0, 1.1 |" in table
        assert "| **Parent** | X-0 |" in table
        assert table.endswith("\n---\n\n")

    def test_optional_rows_omitted(self, item_factory: Callable[..., SourceItem]) -> None:
        table = build_metadata_table(item_factory("X-1"))
        assert "Components" not in table
        assert "Parent" not in table

    def test_footer(self, item_factory: Callable[..., SourceItem]) -> None:
        footer = build_footer(item_factory("X-1"), self.migrated_on)
        assert footer == (
            "\n---\n\n*This issue was migrated from [X-1](https://example.atlassian.net/browse/X-1) on 2024-02-01*"
        )

    def test_section_order(self, item_factory: Callable[..., SourceItem]) -> None:
        item = item_factory("X-1", description="The *description*", acceptance_criteria="It works")

        body = build_issue_body(
            item,
            self.converter,
            summary_block="> **AI Summary**\n\n---\n\n",
            attachments_text="\n\n## Attachments\n\n- file\n",
            migrated_on=self.migrated_on,
        )

        positions = [
            body.index("> **AI Summary**"),
            body.index("## Issue Details"),
            body.index("## Description"),
            body.index("## Acceptance Criteria"),
            body.index("## Attachments"),
            body.index("*This issue was migrated from"),
        ]
        assert positions == sorted(positions)
        assert "## Description\n\nThe **description**\n\n" in body

    def test_rendered_description_fallback(self, item_factory: Callable[..., SourceItem]) -> None:
        item = item_factory("X-1", description=None, rendered_description="<p>From <b>HTML</b></p>")
        body = build_issue_body(item, self.converter, migrated_on=self.migrated_on)
        assert "## Description\n\nFrom **HTML**\n\n" in body

    def test_empty_sections_skipped(self, item_factory: Callable[..., SourceItem]) -> None:
        body = build_issue_body(item_factory("X-1"), self.converter, migrated_on=self.migrated_on)
        assert "## Description" not in body
        assert "## Acceptance Criteria" not in body
        assert body.startswith("## Issue Details")

    def test_document_tree_description(self, item_factory: Callable[..., SourceItem]) -> None:
        description = {
            "type": "doc",
            "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Tree text"}]}],
        }
        body = build_issue_body(item_factory("X-1", description=description), self.converter)
        assert "## Description\n\nTree text\n\n" in body


@pytest.mark.unit
class TestBuildCommentBody:
    def test_attribution(self) -> None:
        comment = SourceComment(author="Bob", created="2024-01-15T10:30:45+00:00", body="Looks *good*")
        body = build_comment_body(comment, DocumentConverter())
        assert body == "**Bob** commented on 2024-01-15 10:30:45Z:\n\nLooks **good**"

    def test_updated_marker(self) -> None:
        comment = SourceComment(
            author="Bob",
            created="2024-01-15T10:30:45+00:00",
            updated="2024-01-16T09:00:00+00:00",
            body="Edited",
        )
        body = build_comment_body(comment, DocumentConverter())
        assert body.startswith("**Bob** commented on 2024-01-15 10:30:45Z (updated 2024-01-16 09:00:00Z):")

    def test_rendered_body_fallback(self) -> None:
        comment = SourceComment(author="", created="", body=None, rendered_body="<p>rendered</p>")
        body = build_comment_body(comment, DocumentConverter())
        assert body.startswith("**Unknown User** commented on :")
        assert body.endswith("rendered")
