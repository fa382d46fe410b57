"""Attachment handling for migrated Jira issues.

Two strategies:

* ``link``: list each attachment with a link back to its Jira download URL
* ``upload``: download the bytes from Jira and upload them to GitHub, linking
  the GitHub copy. If that fails for a file, fall back to the Jira link.

Attachment content is never inlined into the description itself.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .issue_builder import format_file_size

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import SourceAttachment
    from .protocols import DestinationClient, SourceClient

logger: logging.Logger = logging.getLogger(__name__)


class AttachmentStrategy(enum.StrEnum):
    LINK = "link"
    UPLOAD = "upload"


@dataclass
class ProcessedAttachments:
    """Result of processing the attachments of one issue."""

    text: str
    attachment_count: int
    uploaded_count: int = 0


class AttachmentHandler:
    """Builds the attachment section of an issue body."""

    _source: SourceClient
    _destination: DestinationClient
    strategy: AttachmentStrategy

    def __init__(
        self,
        source: SourceClient,
        destination: DestinationClient,
        strategy: AttachmentStrategy | str = AttachmentStrategy.LINK,
    ) -> None:
        self._source = source
        self._destination = destination
        self.strategy = AttachmentStrategy(strategy)

    def process(self, attachments: Sequence[SourceAttachment], item_key: str) -> ProcessedAttachments:
        """Return the Markdown attachment section for an issue.

        Args:
            attachments: Attachments of the Jira issue
            item_key: Jira key, used to group uploaded files

        Returns:
            ProcessedAttachments with the section text ("" if no attachments)
        """
        if not attachments:
            return ProcessedAttachments(text="", attachment_count=0)

        lines: list[str] = []
        uploaded = 0
        for attachment in attachments:
            size = format_file_size(attachment.size)
            if self.strategy is AttachmentStrategy.UPLOAD:
                try:
                    url = self._upload(attachment, item_key)
                except Exception as e:
                    logger.warning(f"Failed to upload attachment {attachment.filename} of {item_key}: {e}")
                    lines.append(
                        f"- [{attachment.filename}]({attachment.content_url}) ({size}) - *From Jira (upload failed)*"
                    )
                    continue
                uploaded += 1
                lines.append(f"- [{attachment.filename}]({url}) ({size})")
            else:
                lines.append(f"- [{attachment.filename}]({attachment.content_url}) ({size}) - *From Jira*")

        text = "\n\n## Attachments\n\n" + "\n".join(lines) + "\n"
        return ProcessedAttachments(text=text, attachment_count=len(attachments), uploaded_count=uploaded)

    def _upload(self, attachment: SourceAttachment, item_key: str) -> str:
        logger.debug(f"Downloading and re-uploading attachment: {attachment.filename}")
        content = self._source.download_attachment(attachment.content_url, attachment.filename)
        if not content:
            msg = f"Jira returned empty content for {attachment.filename}"
            raise ValueError(msg)
        group_key = f"attachments-{item_key.lower()}"
        return self._destination.upload_asset(group_key, content, attachment.filename, attachment.mime_type)
