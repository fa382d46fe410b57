"""
Optional AI summaries of Jira issues using the OpenAI chat completions API.

Summaries are a nice-to-have: nothing in here is allowed to fail a migration.
Every failure is logged and turned into "no summary".
"""

from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Final

from openai import OpenAI

from .converter import DocumentConverter
from .retry import RetryCoordinator
from .utils import chunked

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .models import SourceItem

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_MODEL: Final[str] = "gpt-3.5-turbo"
DEFAULT_MAX_TOKENS: Final[int] = 150
DEFAULT_CONCURRENCY: Final[int] = 2
DEFAULT_WAVE_DELAY: Final[float] = 1.5

MIN_CONTENT_LENGTH: Final[int] = 50
MAX_INPUT_LENGTH: Final[int] = 4000

SYSTEM_PROMPT: Final[str] = (
    "You are a helpful assistant that creates concise, clear summaries of Jira issues for GitHub migration. "
    "Focus on the key problem, solution, and important details."
)


def clean_text(text: object) -> str:
    """Collapse whitespace, drop bold/underline markers and cap the length."""
    if not text:
        return ""
    cleaned = re.sub(r"\s+", " ", str(text))
    cleaned = re.sub(r"\*{2,}", "", cleaned)
    cleaned = re.sub(r"_{2,}", "", cleaned)
    return cleaned[:MAX_INPUT_LENGTH].strip()


def build_prompt(text: str) -> str:
    return (
        "Please provide a concise summary of this Jira issue in 2-3 sentences. Focus on:\n"
        "1. What is the main problem or requirement?\n"
        "2. What solution or approach is described?\n"
        "3. Any important technical details or constraints\n\n"
        f"Issue content:\n{clean_text(text)}\n\n"
        "Summary:"
    )


class OpenAISummarizer:
    """Generates short issue summaries with bounded concurrency."""

    model: str
    max_tokens: int
    concurrency: int
    wave_delay: float
    _client: OpenAI | None

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        concurrency: int = DEFAULT_CONCURRENCY,
        wave_delay: float = DEFAULT_WAVE_DELAY,
        retry: RetryCoordinator | None = None,
        converter: DocumentConverter | None = None,
        client: OpenAI | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.concurrency = concurrency
        self.wave_delay = wave_delay
        self._retry = retry or RetryCoordinator()
        self._converter = converter or DocumentConverter()
        self._sleep = sleep or time.sleep

        if client is not None:
            self._client = client
        elif api_key:
            # Retries are handled by RetryCoordinator
            self._client = OpenAI(api_key=api_key, max_retries=0)
        else:
            logger.warning("OpenAI API key not provided. Summaries will be disabled.")
            self._client = None

    def is_available(self) -> bool:
        return self._client is not None

    def test_connection(self) -> bool:
        """Send a trivial request. Returns False instead of raising."""
        if self._client is None:
            logger.warning("OpenAI API key not configured")
            return False

        logger.debug("Testing OpenAI connection...")
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": 'Test message - please respond with "OK"'}],
                max_tokens=10,
            )
        except Exception as e:
            logger.warning(f"OpenAI connection test failed: {e}")
            return False

        if not response.choices or not (response.choices[0].message.content or "").strip():
            logger.warning("OpenAI connection test failed - empty response")
            return False
        return True

    def _complete(self, prompt: str) -> str | None:
        assert self._client is not None
        client = self._client
        response = self._retry.execute_with_retry(
            lambda: client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=0.3,
                presence_penalty=0.1,
                frequency_penalty=0.1,
            ),
            "generate AI summary",
        )
        if not response.choices:
            return None
        return (response.choices[0].message.content or "").strip() or None

    def summarize(self, title: str, description: str) -> str | None:
        """Summarize one issue, or return None if there is too little to say or anything fails."""
        if self._client is None:
            return None

        title = title or ""
        description = description or ""
        if len(title) + len(description) < MIN_CONTENT_LENGTH:
            logger.debug(f"Skipping summary for '{title}' - insufficient content")
            return None

        try:
            summary = self._complete(build_prompt(f"Title: {title}\n\nDescription: {description}"))
        except Exception as e:
            logger.warning(f"Failed to generate summary for '{title}': {e}")
            return None

        if summary is None:
            logger.warning("OpenAI returned empty summary")
        else:
            logger.debug(f"Generated summary ({len(summary)} chars)")
        return summary

    def _summarize_item(self, item: SourceItem) -> str | None:
        description = self._converter.to_markdown(item.description or item.rendered_description)
        return self.summarize(item.title, description)

    def summarize_batch(self, items: Sequence[SourceItem]) -> dict[str, str]:
        """Summaries keyed by issue key.

        Issues are processed in waves of ``concurrency`` parallel requests with
        ``wave_delay`` seconds between waves.
        """
        if self._client is None or not items:
            return {}

        summaries: dict[str, str] = {}
        waves = chunked(list(items), self.concurrency)

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            for index, wave in enumerate(waves):
                logger.debug(f"Processing summary batch {index + 1}/{len(waves)} ({len(wave)} issues)")
                for item, summary in zip(wave, executor.map(self._summarize_item, wave), strict=True):
                    if summary:
                        summaries[item.key] = summary

                if index < len(waves) - 1 and self.wave_delay > 0:
                    self._sleep(self.wave_delay)

        logger.info(f"Generated {len(summaries)} summaries for {len(items)} issues")
        return summaries

    def format_summary(self, summary: str, item_key: str) -> str:
        """Block quote placed at the top of the GitHub issue body."""
        if not summary:
            return ""
        quoted = summary.replace("\n", "\n> ")
        return f"> **AI Summary**\n> {quoted}\n>\n> *Generated summary for {item_key}*\n\n---\n\n"
