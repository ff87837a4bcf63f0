"""Unit tests for worker models and execution options."""
import pytest
from cartpilot.core.enums import RetryPolicy
from cartpilot.worker.events import WORKER_COMPLETED, WORKER_STARTED, WorkerEvent
from cartpilot.worker.models import ExecutionOptions, WorkerOutcome


class TestWorkerOutcome:
    """Test normalizing worker return values."""

    def test_outcome_passthrough(self):
        """Test a WorkerOutcome is returned as is."""
        outcome = WorkerOutcome(success=True, data={"items": 2})

        assert WorkerOutcome.from_value(outcome) is outcome

    def test_from_mapping(self):
        """Test a mapping with a success key is accepted."""
        outcome = WorkerOutcome.from_value({"success": False, "error": "Target closed"})

        assert outcome.success is False
        assert outcome.data is None
        assert outcome.error == "Target closed"

    def test_unsupported_value_raises(self):
        """Test other return values are rejected."""
        with pytest.raises(TypeError, match="unsupported outcome type: int"):
            WorkerOutcome.from_value(42)


class TestExecutionOptions:
    """Test execution option defaults and validation."""

    def test_defaults_from_settings(self):
        """Test defaults match the configured settings."""
        options = ExecutionOptions()

        assert options.max_concurrency == 2
        assert options.worker_timeout_ms == 300_000
        assert options.max_retries == 2
        assert options.continue_on_failure is True
        assert options.retry_policy == RetryPolicy.IMMEDIATE
        assert options.events is None

    def test_defaults_follow_environment(self, monkeypatch):
        """Test environment overrides reach the defaults."""
        monkeypatch.setenv("WORKER_MAX_RETRIES", "0")

        assert ExecutionOptions().max_retries == 0

    @pytest.mark.parametrize("kwargs", [
        {"max_concurrency": 0},
        {"worker_timeout_ms": 0},
        {"max_retries": -1},
    ])
    def test_invalid_values_raise(self, kwargs):
        """Test out-of-range options are rejected."""
        with pytest.raises(ValueError):
            ExecutionOptions(**kwargs)

    def test_callback_handlers(self):
        """Test callbacks are wrapped as event handlers."""
        started, completed = [], []
        options = ExecutionOptions(
            on_worker_start=started.append,
            on_worker_complete=completed.append,
        )

        handlers = dict(options.callback_handlers())
        handlers[WORKER_STARTED](WorkerEvent(name=WORKER_STARTED, worker_name="a"))
        handlers[WORKER_COMPLETED](
            WorkerEvent(name=WORKER_COMPLETED, worker_name="a", payload={"result": "done"})
        )

        assert started == ["a"]
        assert completed == ["done"]

    def test_no_callbacks_no_handlers(self):
        """Test no handlers are produced without callbacks."""
        assert ExecutionOptions().callback_handlers() == []
