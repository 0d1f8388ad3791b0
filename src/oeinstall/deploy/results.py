"""Result models for the installer.

Each step of an install produces a ``StepResult`` whose ``outcome`` makes
the failure policy explicit: ``SUCCESS`` and ``SKIPPED`` continue,
``WARNING`` is recorded and continues, ``FATAL`` stops the run. Step
results roll up into an ``InstallResult`` that the CLI renders and maps to
an exit code.

Key Concepts:
    StepOutcome: SUCCESS, WARNING, FATAL, SKIPPED.
    StepResult: Outcome of one step with message, detail and, for
        failures, the error text and category. Built via ``ok()``,
        ``warn()``, ``fatal()``, ``skip()``.
    InstallResult: Aggregates steps and service status. ``mark_complete()``
        finalises timestamps, duration, overall status and summary.
    ServiceStatus: One row of ``docker compose ps``.

Architecture Decisions:
    - Pydantic v2 BaseModel: ``model_dump_json(indent=2)`` backs the
      ``--json`` CLI output.
    - ``mark_complete()`` pattern: the runner calls it once when it stops;
      status and exit code are derived, never set by hand.

Related Modules:
    - :mod:`oeinstall.deploy.workflow` — produces these results
    - :mod:`oeinstall.cli.install` — renders them

Tags:
    results, models, pydantic, status, reporting
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from oeinstall.core.errors import ErrorCategory, InstallError


class OverallStatus(str, Enum):
    """Overall status of an install run."""

    PASSED = "PASSED"  # Every step succeeded
    PARTIAL = "PARTIAL"  # Completed, with warnings
    FAILED = "FAILED"  # A fatal step stopped the run
    PENDING = "PENDING"


class StepOutcome(str, Enum):
    """Outcome of a single step."""

    SUCCESS = "SUCCESS"
    WARNING = "WARNING"  # Recoverable; recorded and the run continues
    FATAL = "FATAL"  # The run stops
    SKIPPED = "SKIPPED"


ServiceState = Literal["running", "healthy", "unhealthy", "exited", "starting", "not_found"]


class ServiceStatus(BaseModel):
    """Status of a single compose service."""

    name: str
    container_name: str | None = None
    image: str | None = None
    status: ServiceState = "not_found"
    ports: str | None = None


class StepResult(BaseModel):
    """Result of executing one install step."""

    name: str
    outcome: StepOutcome
    message: str = ""
    detail: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    error_category: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    duration_seconds: float = 0.0

    @classmethod
    def ok(cls, name: str, message: str = "", **detail: Any) -> StepResult:
        return cls(name=name, outcome=StepOutcome.SUCCESS, message=message, detail=detail)

    @classmethod
    def warn(cls, name: str, message: str, **detail: Any) -> StepResult:
        return cls(name=name, outcome=StepOutcome.WARNING, message=message, detail=detail)

    @classmethod
    def skip(cls, name: str, reason: str) -> StepResult:
        return cls(name=name, outcome=StepOutcome.SKIPPED, message=reason)

    @classmethod
    def fatal(
        cls,
        name: str,
        error: str,
        category: ErrorCategory | str = ErrorCategory.INTERNAL,
        **detail: Any,
    ) -> StepResult:
        if isinstance(category, ErrorCategory):
            category = category.value
        return cls(
            name=name,
            outcome=StepOutcome.FATAL,
            message=error,
            error=error,
            error_category=category,
            detail=detail,
        )

    @classmethod
    def from_error(cls, name: str, exc: InstallError) -> StepResult:
        """Convert a raised ``InstallError`` into a FATAL result."""
        detail = exc.context.to_dict()
        return cls.fatal(name, exc.message, exc.category, **detail)

    @property
    def is_fatal(self) -> bool:
        return self.outcome == StepOutcome.FATAL


class InstallResult(BaseModel):
    """Result of a full install run."""

    run_id: str
    started_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    completed_at: str | None = None
    duration_seconds: float = 0.0
    steps: list[StepResult] = Field(default_factory=list)
    services: list[ServiceStatus] = Field(default_factory=list)
    overall_status: OverallStatus = OverallStatus.PENDING
    user_count: int | None = None
    table_count: int | None = None
    app_reachable: bool = False
    app_url: str = ""
    compose_file: str = ""
    summary: str = ""

    @property
    def failed_step(self) -> StepResult | None:
        return next((s for s in self.steps if s.is_fatal), None)

    @property
    def warnings(self) -> list[StepResult]:
        return [s for s in self.steps if s.outcome == StepOutcome.WARNING]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_step is not None else 0

    def step(self, name: str) -> StepResult | None:
        """Return the result of the step called *name*, if it ran."""
        return next((s for s in self.steps if s.name == name), None)

    def mark_complete(self) -> None:
        """Finalize run: compute duration, overall status and summary."""
        self.completed_at = datetime.now(UTC).isoformat()
        if self.started_at and self.completed_at:
            start = datetime.fromisoformat(self.started_at)
            end = datetime.fromisoformat(self.completed_at)
            self.duration_seconds = (end - start).total_seconds()

        failed = self.failed_step
        if failed is not None:
            self.overall_status = OverallStatus.FAILED
            self.summary = f"Install failed at {failed.name}: {failed.error}"
            return

        if self.warnings:
            self.overall_status = OverallStatus.PARTIAL
        else:
            self.overall_status = OverallStatus.PASSED
        self.summary = (
            f"{len(self.steps)} steps, {len(self.warnings)} warnings "
            f"in {self.duration_seconds:.1f}s"
        )
