"""Unit tests for phaseflow logging and observability.

This module tests the logging infrastructure, performance monitoring,
and observability hooks.
"""

import json
import logging
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from phaseflow.workflow_logging import (
    MAX_METRIC_SAMPLES,
    JsonFormatter,
    ObservabilityHooks,
    PerformanceMonitor,
    log_error_with_context,
    log_operation,
    log_performance,
    log_phase_event,
    observability_hooks,
    performance_monitor,
    setup_logging,
)


def make_record(message, level=logging.INFO, exc_info=None):
    return logging.getLogger("test").makeRecord("test", level, __file__, 10, message, (), exc_info)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_basic_fields(self):
        data = json.loads(JsonFormatter().format(make_record("Test message")))
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        for key in ("timestamp", "module", "function", "line"):
            assert key in data

    def test_exception_info(self):
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record("failed", logging.ERROR, sys.exc_info())

        data = json.loads(JsonFormatter().format(record))
        assert "ValueError: Test exception" in data["exception"]

    def test_extra_fields(self):
        record = make_record("event")
        record.extra_fields = {"phase": "contract", "path": Path("x")}
        data = json.loads(JsonFormatter().format(record))
        assert data["phase"] == "contract"
        assert data["path"] == "x"


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_console_only(self):
        setup_logging("DEBUG")
        logger = logging.getLogger("phaseflow")
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1
        finally:
            logger.handlers.clear()

    def test_with_json_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "phaseflow.log"
            setup_logging(logging.INFO, log_file)
            logger = logging.getLogger("phaseflow")
            try:
                assert len(logger.handlers) == 2
                logging.getLogger("phaseflow.workflow").info("written")
                for handler in logger.handlers:
                    handler.flush()
                lines = log_file.read_text().strip().splitlines()
                assert json.loads(lines[-1])["message"] == "written"
            finally:
                for handler in list(logger.handlers):
                    handler.close()
                logger.handlers.clear()


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_and_get(self):
        monitor = PerformanceMonitor()
        monitor.record_metric("plan_duration", 0.5, {"status": "success"})
        metrics = monitor.get_metrics("plan_duration")["plan_duration"]
        assert metrics[0]["value"] == 0.5
        assert metrics[0]["tags"] == {"status": "success"}

    def test_get_unknown_metric(self):
        assert PerformanceMonitor().get_metrics("missing") == {"missing": []}

    def test_get_all_is_a_copy(self):
        monitor = PerformanceMonitor()
        monitor.record_metric("a", 1)
        metrics = monitor.get_metrics()
        metrics["b"] = []
        assert "b" not in monitor.metrics

    def test_keeps_only_most_recent_samples(self):
        monitor = PerformanceMonitor(max_samples=3)
        for value in range(5):
            monitor.record_metric("plan_duration", value)
        metrics = monitor.get_metrics("plan_duration")["plan_duration"]
        assert [metric["value"] for metric in metrics] == [2, 3, 4]

    def test_default_cap(self):
        monitor = PerformanceMonitor()
        for value in range(MAX_METRIC_SAMPLES + 5):
            monitor.record_metric("plan_duration", value)
        metrics = monitor.get_metrics()["plan_duration"]
        assert len(metrics) == MAX_METRIC_SAMPLES
        assert metrics[0]["value"] == 5


class TestLogPerformance:
    """Test cases for the log_performance decorator."""

    def test_success(self):
        @log_performance("unit_success")
        def operation():
            return 42

        assert operation() == 42
        recorded = performance_monitor.get_metrics("unit_success_duration")["unit_success_duration"]
        assert recorded[-1]["tags"] == {"status": "success"}

    def test_failure_is_reraised(self):
        @log_performance("unit_failure")
        def operation():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            operation()
        recorded = performance_monitor.get_metrics("unit_failure_duration")["unit_failure_duration"]
        assert recorded[-1]["tags"] == {"status": "error", "error_type": "RuntimeError"}


class TestLogOperation:
    """Test cases for the log_operation context manager."""

    def test_success(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="phaseflow.operations"):
            with log_operation("set", current_phase="contract"):
                pass
        assert "Completed operation: set" in caplog.text

    def test_failure(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="phaseflow.operations"):
            with pytest.raises(ValueError):
                with log_operation("done"):
                    raise ValueError("bad index")
        assert "Failed operation: done" in caplog.text


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger(self):
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("phase_completed", callback)
        hooks.trigger_hooks("phase_completed", phase="contract")
        callback.assert_called_once_with(phase="contract")

    def test_unregister(self):
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("tasks_set", callback)
        hooks.unregister_hook("tasks_set", callback)
        hooks.unregister_hook("tasks_set", callback)
        hooks.trigger_hooks("tasks_set")
        callback.assert_not_called()

    def test_failing_hook_does_not_stop_others(self):
        hooks = ObservabilityHooks()
        failing = MagicMock(side_effect=RuntimeError("hook error"))
        succeeding = MagicMock()
        hooks.register_hook("task_done", failing)
        hooks.register_hook("task_done", succeeding)
        hooks.trigger_hooks("task_done", index=0)
        succeeding.assert_called_once_with(index=0)

    def test_workflow_event_passes_phase_and_data(self):
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("phase_transition", callback)
        hooks.log_workflow_event("phase_transition", phase="policy", previous_phase="contract")
        kwargs = callback.call_args.kwargs
        assert kwargs["phase"] == "policy"
        assert kwargs["previous_phase"] == "contract"
        assert "timestamp" in kwargs
        assert "event_type" not in kwargs

    def test_log_phase_event_uses_global_hooks(self):
        callback = MagicMock()
        observability_hooks.register_hook("advance_blocked", callback)
        try:
            log_phase_event("advance_blocked", "contract", pending_count=2)
        finally:
            observability_hooks.unregister_hook("advance_blocked", callback)
        assert callback.call_args.kwargs["pending_count"] == 2


class TestLogErrorWithContext:
    """Test cases for log_error_with_context."""

    def test_logs_operation(self, caplog):
        with caplog.at_level(logging.ERROR, logger="phaseflow.errors"):
            log_error_with_context(ValueError("bad scope"), {"operation": "parse_action"})
        assert "Error in parse_action: bad scope" in caplog.text
