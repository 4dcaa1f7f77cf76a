"""Tests for domain events."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest


@pytest.mark.unit
class TestRunEvents:
    """Tests for run-level domain events."""

    def test_run_started_event(self) -> None:
        """Test DataflowRunStarted event creation."""
        from litestar_dataflows.core.events import DataflowEvent, DataflowRunStarted

        run_id = uuid4()
        timestamp = datetime.now(timezone.utc)

        event = DataflowRunStarted(
            run_id=run_id,
            dataflow_id="nightly",
            timestamp=timestamp,
            dry_run=True,
            step_count=3,
        )

        assert isinstance(event, DataflowEvent)
        assert isinstance(event.run_id, UUID)
        assert event.timestamp is timestamp
        assert event.dry_run is True
        assert event.step_count == 3

    def test_run_failed_event(self) -> None:
        """Test DataflowRunFailed carries the failed and skipped steps."""
        from litestar_dataflows.core.events import DataflowRunFailed

        event = DataflowRunFailed(
            run_id=uuid4(),
            dataflow_id="nightly",
            timestamp=datetime.now(timezone.utc),
            failed_steps=["copy"],
            skipped_steps=["notify"],
            error="Step 'copy' failed",
        )

        assert event.failed_steps == ["copy"]
        assert event.skipped_steps == ["notify"]
        assert event.error == "Step 'copy' failed"

    def test_run_finished_and_canceled(self) -> None:
        from litestar_dataflows.core.events import DataflowRunCanceled, DataflowRunFinished

        run_id = uuid4()
        now = datetime.now(timezone.utc)

        finished = DataflowRunFinished(run_id=run_id, dataflow_id="d", timestamp=now, duration_seconds=1.5)
        canceled = DataflowRunCanceled(run_id=run_id, dataflow_id="d", timestamp=now, remaining_steps=["a"])

        assert finished.duration_seconds == 1.5
        assert canceled.remaining_steps == ["a"]

    def test_timestamp_is_required(self) -> None:
        from litestar_dataflows.core.events import DataflowRunFinished

        with pytest.raises(TypeError):
            DataflowRunFinished(run_id=uuid4(), dataflow_id="d")  # type: ignore[call-arg]


@pytest.mark.unit
class TestStepEvents:
    """Tests for step-level domain events."""

    def test_step_lifecycle_events(self) -> None:
        from litestar_dataflows.core.events import StepFinalised, StepFinished, StepStarted

        run_id = uuid4()
        now = datetime.now(timezone.utc)

        started = StepStarted(run_id=run_id, dataflow_id="d", timestamp=now, step_id="a", step_type="connector_noop")
        finished = StepFinished(run_id=run_id, dataflow_id="d", timestamp=now, step_id="a", output={"rows": 2})
        finalised = StepFinalised(run_id=run_id, dataflow_id="d", timestamp=now, step_id="a")

        assert started.step_type == "connector_noop"
        assert finished.output == {"rows": 2}
        assert finished.duration_seconds is None
        assert finalised.step_id == "a"

    def test_step_failed_and_skipped(self) -> None:
        from litestar_dataflows.core.events import StepFailed, StepSkipped

        now = datetime.now(timezone.utc)

        failed = StepFailed(
            run_id=uuid4(),
            dataflow_id="d",
            timestamp=now,
            step_id="a",
            error="Step 'a' failed: boom",
            error_type="ValueError",
        )
        skipped = StepSkipped(run_id=uuid4(), dataflow_id="d", timestamp=now, step_id="b", reason="run was canceled")

        assert failed.error_type == "ValueError"
        assert skipped.reason == "run was canceled"
