"""Exception hierarchy for litestar-dataflows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

__all__ = (
    "ConfigurationError",
    "ConfigurationIssue",
    "DataflowNotFoundError",
    "DataflowsError",
    "RunNotFoundError",
    "SchedulingError",
    "StepExecutionError",
    "UnknownStepTypeError",
)


@dataclass(frozen=True)
class ConfigurationIssue:
    """A single problem found while validating a dataflow configuration.

    Attributes:
        message: Human-readable description of the problem.
        step_id: The step the problem belongs to, if any.
        field: The configuration field at fault, if any.
    """

    message: str
    step_id: str | None = None
    field: str | None = None

    def __str__(self) -> str:
        location = ""
        if self.step_id is not None:
            location = f"step '{self.step_id}'"
            if self.field is not None:
                location += f", field '{self.field}'"
            location += ": "
        return f"{location}{self.message}"


class DataflowsError(Exception):
    """Base exception for all litestar-dataflows errors.

    All exceptions raised by litestar-dataflows inherit from this class,
    so callers can catch every dataflow-related error with one except clause.
    """


class ConfigurationError(DataflowsError):
    """Raised when a dataflow or step configuration is invalid.

    Configuration errors are detected before any step executes: bad edge
    cardinality, cycles, a missing or duplicated trigger, unknown step types
    or invalid field syntax. Every problem found is reported, not only the
    first one.

    Attributes:
        issues: The configuration problems that were found.
        dataflow_id: The dataflow being validated, if known.
    """

    def __init__(self, issues: list[ConfigurationIssue], dataflow_id: str | None = None) -> None:
        """Initialize the exception with the list of issues.

        Args:
            issues: The configuration problems that were found.
            dataflow_id: The dataflow being validated, if known.
        """
        self.issues = list(issues)
        self.dataflow_id = dataflow_id
        prefix = f"Dataflow '{dataflow_id}' " if dataflow_id is not None else "Dataflow "
        super().__init__(f"{prefix}configuration is invalid: {'; '.join(str(i) for i in self.issues)}")

    @property
    def errors(self) -> list[str]:
        """The issues rendered as plain messages."""
        return [str(issue) for issue in self.issues]


class StepExecutionError(DataflowsError):
    """Raised when a step fails to execute.

    This wraps the underlying exception that caused the step to fail,
    providing context about which step failed. The engine records it on
    the failing engine step instead of propagating it out of the run.

    Attributes:
        step_id: The id of the step that failed.
        cause: The underlying exception that caused the failure, if any.
    """

    def __init__(self, step_id: str, cause: BaseException | None = None) -> None:
        """Initialize the exception with step execution details.

        Args:
            step_id: The id of the step that failed.
            cause: The underlying exception that caused the failure, if any.
        """
        self.step_id = step_id
        self.cause = cause
        msg = f"Step '{step_id}' failed"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)


class SchedulingError(DataflowsError):
    """Raised when a schedule expression cannot produce a valid run time.

    Attributes:
        dataflow_id: The dataflow whose schedule is invalid.
        errors: Mapping of configuration field name to error message.
    """

    def __init__(self, dataflow_id: str, errors: Mapping[str, str]) -> None:
        """Initialize the exception with the invalid schedule fields.

        Args:
            dataflow_id: The dataflow whose schedule is invalid.
            errors: Mapping of configuration field name to error message.
        """
        self.dataflow_id = dataflow_id
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid schedule for dataflow '{dataflow_id}': {fields}")


class DataflowNotFoundError(DataflowsError):
    """Raised when a dataflow definition is not found.

    Attributes:
        dataflow_id: The id of the dataflow that was not found.
    """

    def __init__(self, dataflow_id: str) -> None:
        """Initialize the exception with dataflow details.

        Args:
            dataflow_id: The id of the dataflow that was not found.
        """
        self.dataflow_id = dataflow_id
        super().__init__(f"Dataflow '{dataflow_id}' not found")


class UnknownStepTypeError(DataflowsError):
    """Raised when a step type name is not registered.

    Attributes:
        type_name: The step type that could not be resolved.
    """

    def __init__(self, type_name: str) -> None:
        """Initialize the exception with the unknown type name.

        Args:
            type_name: The step type that could not be resolved.
        """
        self.type_name = type_name
        super().__init__(f"Step type '{type_name}' is not registered")


class RunNotFoundError(DataflowsError):
    """Raised when a dataflow run is not known to the engine.

    Attributes:
        run_id: The id of the run that was not found.
    """

    def __init__(self, run_id: str | UUID) -> None:
        """Initialize the exception with run details.

        Args:
            run_id: The id of the run that was not found.
        """
        self.run_id = run_id
        super().__init__(f"Dataflow run '{run_id}' not found")
