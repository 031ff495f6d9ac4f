"""Unit tests for contextspec._logging — variant-aware log output.

Test Techniques Used:
    - Specification-based Testing: JsonFormatter output schema
    - Equivalence Partitioning: records with and without variant context
    - State Inspection: Root logger handlers and level after configure
    - Scenario Testing: context extras on records emitted by a lifecycle
    - Fixture Isolation: Save/restore root logger state
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from contextspec import ContextSpecification
from contextspec._logging import (
    JsonFormatter,
    VariantTextFormatter,
    build_formatter,
    configure_logging,
    record_context,
)
from contextspec._settings import LoggingSettings
from contextspec.testing import SpecHarness

VARIANT = "when_sum_is_called.then_result_is_returned[operand2=7]"


@pytest.fixture
def _restore_root_logger() -> Iterator[None]:
    """Save and restore root logger handlers and level."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    for h in root.handlers:
        if h not in original_handlers:
            h.close()
    root.handlers = original_handlers
    root.setLevel(original_level)


def _record(
    message: str = "ran %d variants", *args: object, **context: object
) -> logging.LogRecord:
    record = logging.LogRecord(
        name="contextspec._lifecycle",
        level=logging.INFO,
        pathname="_lifecycle.py",
        lineno=1,
        msg=message,
        args=args or (3,),
        exc_info=None,
    )
    for key, value in context.items():
        setattr(record, key, value)
    return record


class when_the_action_breaks(ContextSpecification):
    def because(self) -> None:
        msg = "calculator offline"
        raise ConnectionError(msg)

    def then_nothing(self) -> None:
        pass


# ---------------------------------------------------------------------------
# TestRecordContext
# ---------------------------------------------------------------------------


class TestRecordContext:
    """Extraction of the variant context from a record.

    Technique: Equivalence Partitioning.
    """

    def test_plain_record_has_no_context(self) -> None:
        assert record_context(_record()) == {}

    def test_none_values_skipped(self) -> None:
        """A record logged before the first phase has no phase."""
        record = _record(variant=VARIANT, phase=None)
        assert record_context(record) == {"variant": VARIANT}

    def test_values_stringified(self) -> None:
        record = _record(variant=VARIANT, phase="because", outcome="errored")
        assert record_context(record) == {
            "variant": VARIANT,
            "phase": "because",
            "outcome": "errored",
        }


# ---------------------------------------------------------------------------
# TestJsonFormatter
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    """JSON line schema.

    Technique: Specification-based Testing.
    """

    def test_base_fields(self) -> None:
        """One object with the documented keys and the merged message."""
        entry = json.loads(JsonFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "contextspec._lifecycle"
        assert entry["message"] == "ran 3 variants"
        assert datetime.fromisoformat(entry["timestamp"]).tzinfo == UTC
        assert "variant" not in entry

    def test_context_fields_promoted(self) -> None:
        """variant and phase become top-level keys."""
        record = _record("because raised %s", "ConnectionError", variant=VARIANT, phase="because")
        entry = json.loads(JsonFormatter().format(record))

        assert entry["variant"] == VARIANT
        assert entry["phase"] == "because"
        assert entry["message"] == "because raised ConnectionError"

    def test_version_only_when_set(self) -> None:
        """An empty version is omitted."""
        with_version = json.loads(JsonFormatter(version="0.1.0").format(_record()))
        without = json.loads(JsonFormatter().format(_record()))

        assert with_version["version"] == "0.1.0"
        assert "version" not in without

    def test_exception_included(self) -> None:
        """Logged exceptions carry their traceback."""
        record = _record()
        try:
            msg = "fixture exploded"
            raise RuntimeError(msg)
        except RuntimeError as exc:
            record.exc_info = (RuntimeError, exc, exc.__traceback__)

        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: fixture exploded" in entry["exception"]

    def test_single_line(self) -> None:
        """Multi-line messages stay on one output line."""
        output = JsonFormatter().format(_record("line one\nline two"))
        assert "\n" not in output


# ---------------------------------------------------------------------------
# TestVariantTextFormatter
# ---------------------------------------------------------------------------


class TestVariantTextFormatter:
    """Terminal lines.

    Technique: Equivalence Partitioning.
    """

    def test_variant_and_phase_prefix(self) -> None:
        record = _record("assertion %s failed", "then_x", variant=VARIANT, phase="verification")
        line = VariantTextFormatter().format(record)
        expected = f"contextspec._lifecycle: {VARIANT} (verification): assertion then_x failed"
        assert line.endswith(expected)

    def test_variant_without_phase(self) -> None:
        line = VariantTextFormatter().format(_record(variant=VARIANT))
        assert line.endswith(f"{VARIANT}: ran 3 variants")

    def test_no_context_no_prefix(self) -> None:
        line = VariantTextFormatter().format(_record())
        assert line.endswith("[INFO] contextspec._lifecycle: ran 3 variants")


# ---------------------------------------------------------------------------
# TestLifecycleRecords
# ---------------------------------------------------------------------------


class TestLifecycleRecords:
    """Records emitted while a variant runs.

    Technique: Scenario Testing.
    """

    def test_records_carry_variant_and_phase(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="contextspec._lifecycle"):
            SpecHarness.create().run(when_the_action_breaks)

        records = [r for r in caplog.records if r.name == "contextspec._lifecycle"]
        assert records
        assert all(r.variant == "when_the_action_breaks.then_nothing" for r in records)
        (failure,) = [r for r in records if "because raised" in r.getMessage()]
        assert failure.phase == "because"

    def test_final_record_carries_outcome(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="contextspec._lifecycle"):
            SpecHarness.create().run(when_the_action_breaks)

        final = [r for r in caplog.records if getattr(r, "outcome", None) is not None]
        assert [r.outcome for r in final] == ["errored"]
        assert final[0].phase == "teardown"


# ---------------------------------------------------------------------------
# TestConfigureLogging
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("_restore_root_logger")
class TestConfigureLogging:
    """Root logger setup.

    Technique: State Inspection.
    """

    def test_json_format(self) -> None:
        """json installs the JsonFormatter."""
        configure_logging(LoggingSettings(format="json"), version="1.2.3")
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, JsonFormatter)
        assert json.loads(handler.formatter.format(_record()))["version"] == "1.2.3"

    def test_text_format(self) -> None:
        """text installs the variant-aware text formatter."""
        configure_logging(LoggingSettings(format="text"))
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, VariantTextFormatter)

    def test_build_formatter_default_is_text(self) -> None:
        assert isinstance(build_formatter(LoggingSettings()), VariantTextFormatter)

    def test_level_applied(self) -> None:
        """The root level follows the settings."""
        configure_logging(LoggingSettings(level="DEBUG"))
        assert logging.getLogger().level == logging.DEBUG

    def test_replaces_existing_handlers(self) -> None:
        """Previously installed handlers are removed."""
        dummy = logging.StreamHandler()
        logging.getLogger().addHandler(dummy)

        configure_logging(LoggingSettings())
        configure_logging(LoggingSettings())

        assert dummy not in logging.getLogger().handlers
        assert len(logging.getLogger().handlers) == 1

    def test_rotating_file_handler(self, tmp_path: Path) -> None:
        """A file sink is sized from max_file_size_mb and shares the formatter."""
        settings = LoggingSettings(
            file=str(tmp_path / "contextspec.log"),
            max_file_size_mb=2,
            backup_count=5,
        )
        configure_logging(settings)

        stream, rotating = logging.getLogger().handlers
        assert isinstance(rotating, RotatingFileHandler)
        assert rotating.maxBytes == 2 * 1024 * 1024
        assert rotating.backupCount == 5
        assert rotating.formatter is stream.formatter
