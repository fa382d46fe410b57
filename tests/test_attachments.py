"""Tests for attachment handling."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from jira_to_github_migrator.attachments import AttachmentHandler, AttachmentStrategy
from jira_to_github_migrator.models import SourceAttachment

if TYPE_CHECKING:
    from .conftest import FakeDestination, FakeSource

JIRA_URL = "https://example.atlassian.net/rest/api/3/attachment/content/10001"


def _attachment(filename: str = "log.txt", size: int = 1536, url: str = JIRA_URL) -> SourceAttachment:
    return SourceAttachment(filename=filename, size=size, content_url=url, mime_type="text/plain")


@pytest.mark.unit
class TestAttachmentHandler:
    def test_no_attachments(self, fake_source: FakeSource, fake_destination: FakeDestination) -> None:
        result = AttachmentHandler(fake_source, fake_destination).process((), "X-1")
        assert result.text == ""
        assert result.attachment_count == 0

    def test_link_strategy(self, fake_source: FakeSource, fake_destination: FakeDestination) -> None:
        handler = AttachmentHandler(fake_source, fake_destination, "link")

        result = handler.process((_attachment(),), "X-1")

        assert result.text == f"\n\n## Attachments\n\n- [log.txt]({JIRA_URL}) (1.5 KB) - *From Jira*\n"
        assert result.attachment_count == 1
        assert result.uploaded_count == 0
        assert fake_source.download_requests == []
        assert fake_destination.uploads == []

    def test_upload_strategy(self, source_factory: type[FakeSource], fake_destination: FakeDestination) -> None:
        source = source_factory(downloads={JIRA_URL: b"hello"})
        handler = AttachmentHandler(source, fake_destination, AttachmentStrategy.UPLOAD)

        result = handler.process((_attachment(),), "PROJ-12")

        assert fake_destination.uploads == [("attachments-proj-12", b"hello", "log.txt", "text/plain")]
        expected_url = "https://github.com/owner/repo/releases/download/attachments-proj-12/log.txt"
        assert result.text == f"\n\n## Attachments\n\n- [log.txt]({expected_url}) (1.5 KB)\n"
        assert result.uploaded_count == 1

    def test_upload_failure_falls_back_to_link(
        self, source_factory: type[FakeSource], fake_destination: FakeDestination, caplog: pytest.LogCaptureFixture
    ) -> None:
        source = source_factory(downloads={JIRA_URL: b"hello"})
        fake_destination.upload_error = RuntimeError("release quota exceeded")
        handler = AttachmentHandler(source, fake_destination, "upload")

        with caplog.at_level("WARNING"):
            result = handler.process((_attachment(),), "X-1")

        assert f"- [log.txt]({JIRA_URL}) (1.5 KB) - *From Jira (upload failed)*" in result.text
        assert result.attachment_count == 1
        assert result.uploaded_count == 0
        assert any("Failed to upload attachment log.txt" in r.getMessage() for r in caplog.records)

    def test_empty_download_falls_back_to_link(
        self, source_factory: type[FakeSource], fake_destination: FakeDestination
    ) -> None:
        source = source_factory(downloads={JIRA_URL: b""})
        handler = AttachmentHandler(source, fake_destination, "upload")

        result = handler.process((_attachment(),), "X-1")

        assert "*From Jira (upload failed)*" in result.text
        assert fake_destination.uploads == []

    def test_mixed_results_keep_order(self, source_factory: type[FakeSource], fake_destination: FakeDestination) -> None:
        other_url = "https://example.atlassian.net/rest/api/3/attachment/content/10002"
        source = source_factory(downloads={JIRA_URL: b"data"})  # second download is missing
        handler = AttachmentHandler(source, fake_destination, "upload")

        result = handler.process((_attachment("a.txt"), _attachment("b.png", 0, other_url)), "X-1")

        lines = result.text.strip().splitlines()
        assert lines[0] == "## Attachments"
        assert lines[2].startswith("- [a.txt](https://github.com/")
        assert lines[3] == f"- [b.png]({other_url}) (0 B) - *From Jira (upload failed)*"

    def test_unknown_strategy_rejected(self, fake_source: FakeSource, fake_destination: FakeDestination) -> None:
        with pytest.raises(ValueError):
            AttachmentHandler(fake_source, fake_destination, "inline")
