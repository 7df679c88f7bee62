"""Tests for discord_backup.utils.pipeline_logger and the backup logger."""

from __future__ import annotations

from io import StringIO
from typing import Any
from unittest.mock import MagicMock

from rich.console import Console

from discord_backup.backup.logger import BackupLogger
from discord_backup.utils.pipeline_logger import BasePipelineLogger, StructuredBlock


def _capture(logger: BasePipelineLogger) -> None:
    logger.console = Console(file=StringIO(), force_terminal=True, width=120)


def _output(logger: BasePipelineLogger) -> str:
    logger.console.file.seek(0)
    return logger.console.file.read()


class ConcreteLogger(BasePipelineLogger):
    """Concrete implementation for testing the abstract base class."""

    def __init__(self) -> None:
        super().__init__("test_logger")
        _capture(self)

    def summary(self, **kwargs: Any) -> None:
        self.print_summary("Test", elapsed=0.0, stats={})


# ---------------------------------------------------------------------------
# TestStructuredBlock
# ---------------------------------------------------------------------------


class TestStructuredBlock:
    """Tests for StructuredBlock context manager."""

    def test_prints_title_on_enter(self) -> None:
        logger = ConcreteLogger()

        with logger.block("#general"):
            pass

        assert "#general" in _output(logger)

    def test_field_prints_key_value(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.field("channel ID", 12345)

        output = _output(logger)
        assert "channel ID:" in output
        assert "12345" in output

    def test_result_failure(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.result("failed", success=False)

        assert "failed" in _output(logger)

    def test_warn(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.warn("2 resources skipped")

        assert "2 resources skipped" in _output(logger)

    def test_skip(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.skip("timed out")

        assert "Skipped: timed out" in _output(logger)

    def test_empty(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.empty()

        assert "Empty" in _output(logger)

    def test_progress_sets_flag_until_result(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.progress("Fetched 100 messages")
            assert logger._has_progress_line is True
            b.result("archived 100 messages")
            assert logger._has_progress_line is False


# ---------------------------------------------------------------------------
# TestBasePipelineLogger
# ---------------------------------------------------------------------------


class TestBasePipelineLogger:
    """Tests for BasePipelineLogger base class."""

    def test_standard_methods_delegate_to_python_logger(self) -> None:
        logger = ConcreteLogger()
        logger._logger = MagicMock()

        logger.info("i")
        logger.warning("w")
        logger.error("e")
        logger.debug("d")

        logger._logger.info.assert_called_once_with("i")
        logger._logger.warning.assert_called_once_with("w")
        logger._logger.error.assert_called_once_with("e")
        logger._logger.debug.assert_called_once_with("d")

    def test_success_prints_message(self) -> None:
        logger = ConcreteLogger()

        logger.success("done")

        assert "done" in _output(logger)

    def test_batch_progress_sets_flag(self) -> None:
        logger = ConcreteLogger()

        logger.batch_progress(50, oldest_date="2024-01-01")

        assert logger._has_progress_line is True

    def test_block_yields_structured_block(self) -> None:
        logger = ConcreteLogger()

        with logger.block("test") as b:
            assert isinstance(b, StructuredBlock)

    def test_print_summary_outputs_panel(self) -> None:
        logger = ConcreteLogger()

        logger.print_summary(
            "Test Pipeline",
            elapsed=12.3,
            stats={"Messages": 1000, "Layout": "document"},
        )

        output = _output(logger)
        assert "Test Pipeline" in output
        assert "1,000" in output
        assert "12.3s" in output


# ---------------------------------------------------------------------------
# TestBackupLogger
# ---------------------------------------------------------------------------


class TestBackupLogger:
    """Tests for BackupLogger (the concrete subclass in backup/logger.py)."""

    def test_rate_limit_logs_warning(self) -> None:
        logger = BackupLogger()
        logger._logger = MagicMock()

        logger.rate_limit(1.5)

        assert "1.5" in logger._logger.warning.call_args[0][0]

    def test_retry_with_reason(self) -> None:
        logger = BackupLogger()
        logger._logger = MagicMock()

        logger.retry(2, 5, 3.0, reason="timeout")

        msg = logger._logger.warning.call_args[0][0]
        assert "2/5" in msg
        assert "timeout" in msg

    def test_resource_skip_names_channel(self) -> None:
        logger = BackupLogger()
        logger._logger = MagicMock()

        logger.resource_skip("general", "attachment 10", "HTTP 404")

        msg = logger._logger.warning.call_args[0][0]
        assert msg.startswith("#general")
        assert "attachment 10" in msg
        assert "HTTP 404" in msg

    def test_summary_prints_counts(self) -> None:
        logger = BackupLogger()
        _capture(logger)

        logger.summary(channels=3, messages=1500, skipped_channels=1, elapsed=5.5)

        output = _output(logger)
        assert "Backup Complete" in output
        assert "1,500" in output
