"""Tests for logging setup, the pass helper and chunking."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from jira_to_github_migrator.utils import (
    InvalidPassPathError,
    PassError,
    PassphraseRequiredError,
    chunked,
    get_pass_value,
    setup_logging,
)


@pytest.mark.unit
class TestChunked:
    def test_splits_in_order(self) -> None:
        assert chunked(list(range(23)), 10) == [list(range(10)), list(range(10, 20)), [20, 21, 22]]

    def test_empty(self) -> None:
        assert chunked([], 3) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            chunked([1], 0)


@pytest.mark.unit
class TestGetPassValue:
    def test_reads_value(self) -> None:
        with patch("jira_to_github_migrator.utils.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout="secret-token\n")
            assert get_pass_value("github/token") == "secret-token"

        assert mock_run.call_args.args[0] == ["pass", "github/token"]

    @pytest.mark.parametrize("path", ["", "../etc/passwd", "a b", "a//b", "/abs"])
    def test_rejects_invalid_path(self, path: str) -> None:
        with patch("jira_to_github_migrator.utils.subprocess.run") as mock_run, pytest.raises(ValueError):
            get_pass_value(path)
        mock_run.assert_not_called()

    def test_pass_not_installed(self) -> None:
        with (
            patch("jira_to_github_migrator.utils.subprocess.run", side_effect=FileNotFoundError),
            pytest.raises(PassError, match="not installed"),
        ):
            get_pass_value("github/token")

    def test_unknown_entry(self) -> None:
        error = subprocess.CalledProcessError(1, ["pass"], stderr="Error: github/nope is not in the password store.")
        with (
            patch("jira_to_github_migrator.utils.subprocess.run", side_effect=error),
            pytest.raises(InvalidPassPathError),
        ):
            get_pass_value("github/nope")

    def test_passphrase_prompt_when_not_interactive(self) -> None:
        error = subprocess.CalledProcessError(2, ["pass"], stderr="gpg: public key decryption failed")
        with (
            patch("jira_to_github_migrator.utils.subprocess.run", side_effect=error),
            patch("builtins.input", side_effect=EOFError),
            pytest.raises(PassphraseRequiredError),
        ):
            get_pass_value("github/token")

    def test_passphrase_retry(self) -> None:
        error = subprocess.CalledProcessError(2, ["pass"], stderr="gpg: public key decryption failed")
        with (
            patch(
                "jira_to_github_migrator.utils.subprocess.run", side_effect=[error, MagicMock(stdout="tok\n")]
            ) as mock_run,
            patch("builtins.input", return_value="phrase"),
        ):
            assert get_pass_value("github/token") == "tok"

        assert mock_run.call_args.kwargs["input"] == "phrase"
        assert "--pinentry-mode=loopback" in mock_run.call_args.kwargs["env"]["PASSWORD_STORE_GPG_OPTS"]

    def test_other_failure(self) -> None:
        error = subprocess.CalledProcessError(3, ["pass"], stderr="boom")
        with (
            patch("jira_to_github_migrator.utils.subprocess.run", side_effect=error),
            pytest.raises(PassError, match="boom"),
        ):
            get_pass_value("github/token")


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
@pytest.mark.usefixtures("restore_root_logger")
class TestSetupLogging:
    @pytest.mark.parametrize(
        ("verbosity", "level"), [(0, logging.INFO), (1, logging.DEBUG), (2, logging.DEBUG)]
    )
    def test_console_level(self, verbosity: int, level: int) -> None:
        setup_logging(verbosity=verbosity, log_file=None)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert [h.level for h in root.handlers] == [level]

    def test_log_file_gets_everything(self, tmp_path: Path) -> None:
        log_file = tmp_path / "migration.log"

        setup_logging(verbosity=0, log_file=str(log_file))
        logging.getLogger("jira_to_github_migrator.test").debug("hello from debug")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "DEBUG - hello from debug" in log_file.read_text()
