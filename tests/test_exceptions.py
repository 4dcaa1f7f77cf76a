"""Tests for exception hierarchy."""

from __future__ import annotations

from uuid import UUID

import pytest


@pytest.mark.unit
class TestDataflowsError:
    """Tests for base DataflowsError exception."""

    def test_base_exception_creation(self) -> None:
        """Test creating base DataflowsError."""
        from litestar_dataflows.exceptions import DataflowsError

        error = DataflowsError("Test error message")

        assert str(error) == "Test error message"
        assert isinstance(error, Exception)

    def test_all_errors_share_the_base(self) -> None:
        """Every library error can be caught with DataflowsError."""
        from litestar_dataflows.exceptions import (
            ConfigurationError,
            DataflowNotFoundError,
            DataflowsError,
            RunNotFoundError,
            SchedulingError,
            StepExecutionError,
            UnknownStepTypeError,
        )

        for error_class in (
            ConfigurationError,
            DataflowNotFoundError,
            RunNotFoundError,
            SchedulingError,
            StepExecutionError,
            UnknownStepTypeError,
        ):
            assert issubclass(error_class, DataflowsError)


@pytest.mark.unit
class TestConfigurationError:
    """Tests for ConfigurationError and ConfigurationIssue."""

    def test_issue_rendering(self) -> None:
        """Issues render their location before the message."""
        from litestar_dataflows.exceptions import ConfigurationIssue

        assert str(ConfigurationIssue("Dataflow has no trigger step")) == "Dataflow has no trigger step"
        assert str(ConfigurationIssue("bad", step_id="cron")) == "step 'cron': bad"
        assert str(ConfigurationIssue("bad", step_id="cron", field="config_minute")) == (
            "step 'cron', field 'config_minute': bad"
        )

    def test_collects_every_issue(self) -> None:
        """The message lists all issues and they stay accessible."""
        from litestar_dataflows.exceptions import ConfigurationError, ConfigurationIssue

        issues = [ConfigurationIssue("first"), ConfigurationIssue("second", step_id="s")]
        error = ConfigurationError(issues, dataflow_id="nightly")

        assert error.issues == issues
        assert error.errors == ["first", "step 's': second"]
        assert error.dataflow_id == "nightly"
        assert str(error) == "Dataflow 'nightly' configuration is invalid: first; step 's': second"

    def test_without_dataflow(self) -> None:
        from litestar_dataflows.exceptions import ConfigurationError, ConfigurationIssue

        error = ConfigurationError([ConfigurationIssue("oops")])

        assert str(error) == "Dataflow configuration is invalid: oops"


@pytest.mark.unit
class TestStepExecutionError:
    """Tests for StepExecutionError exception."""

    def test_with_cause(self) -> None:
        from litestar_dataflows.exceptions import StepExecutionError

        cause = ValueError("boom")
        error = StepExecutionError("copy", cause)

        assert error.step_id == "copy"
        assert error.cause is cause
        assert str(error) == "Step 'copy' failed: boom"

    def test_without_cause(self) -> None:
        from litestar_dataflows.exceptions import StepExecutionError

        assert str(StepExecutionError("copy")) == "Step 'copy' failed"


@pytest.mark.unit
class TestLookupErrors:
    """Tests for not-found style errors."""

    def test_dataflow_not_found(self) -> None:
        from litestar_dataflows.exceptions import DataflowNotFoundError

        error = DataflowNotFoundError("nightly")

        assert error.dataflow_id == "nightly"
        assert str(error) == "Dataflow 'nightly' not found"

    def test_run_not_found(self) -> None:
        from litestar_dataflows.exceptions import RunNotFoundError

        run_id = UUID(int=1)
        error = RunNotFoundError(run_id)

        assert error.run_id == run_id
        assert str(run_id) in str(error)

    def test_unknown_step_type(self) -> None:
        from litestar_dataflows.exceptions import UnknownStepTypeError

        assert str(UnknownStepTypeError("nope")) == "Step type 'nope' is not registered"

    def test_scheduling_error(self) -> None:
        from litestar_dataflows.exceptions import SchedulingError

        error = SchedulingError("nightly", {"config_minute": "bad", "config_day": "bad"})

        assert error.errors == {"config_minute": "bad", "config_day": "bad"}
        assert str(error) == "Invalid schedule for dataflow 'nightly': config_day, config_minute"
