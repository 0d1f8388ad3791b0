"""
Structured error types for the OpenEyes installer.

Every failure that should stop an install is raised as an ``InstallError``
subclass. The error carries a category for reporting, a structured context
(step, service, command, url) for logging, and the chained underlying
exception when one exists.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                      InstallError                         │
        │        (category, context, cause, to_dict())              │
        ├──────────────────────────────────────────────────────────┤
        │  ToolNotFoundError        DescriptorNotFoundError         │
        │  (CONFIG)                 (CONFIG)                        │
        │       │                                                   │
        │  DockerNotFoundError      ComposeCommandError             │
        │                           (ORCHESTRATION)                 │
        │                                                           │
        │  QueryError               SampleDataError                 │
        │  (DATABASE)               (SOURCE)                        │
        │                                │                          │
        │                           DownloadError (NETWORK)         │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> error = DescriptorNotFoundError("docker-compose-oe-image.yml")
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.with_context(step="preflight").context.step
    'preflight'

Tags:
    error-handling, exception-hierarchy, error-context, installer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories used for reporting and step outcomes."""

    # Infrastructure
    NETWORK = "NETWORK"  # Download, HTTP probe
    DATABASE = "DATABASE"  # mysql client failures

    # Inputs
    SOURCE = "SOURCE"  # Sample data missing or unreadable
    CONFIG = "CONFIG"  # Missing tool, missing descriptor

    # Execution
    ORCHESTRATION = "ORCHESTRATION"  # docker / docker compose failures
    TIMEOUT = "TIMEOUT"  # docker command exceeded its timeout

    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only the fields that are set end up in ``to_dict()``; anything without a
    dedicated field goes into ``metadata``.
    """

    step: str | None = None
    run_id: str | None = None
    service: str | None = None
    command: str | None = None
    path: str | None = None
    url: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["step", "run_id", "service", "command", "path", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class InstallError(Exception):
    """Base exception for all installer errors.

    Subclasses set ``default_category``; callers may override it per
    instance. ``cause`` is chained onto ``__cause__`` so tracebacks keep the
    original exception.

    Example::

        try:
            response = client.get(url)
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to download {url}", cause=exc).with_context(url=url)
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> InstallError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# ── Configuration / environment ──────────────────────────────────────────


class ToolNotFoundError(InstallError):
    """A required command-line tool is not installed or not on PATH."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, tool: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"{tool} is not installed or not in PATH", **kwargs)
        self.tool = tool


class DockerNotFoundError(ToolNotFoundError):
    """Raised when the ``docker`` CLI is not available."""

    def __init__(self, message: str | None = None, **kwargs: Any):
        super().__init__(
            "docker",
            message
            or (
                "Docker CLI not found on PATH. Install Docker or add it to PATH.\n"
                "  - Linux:   https://docs.docker.com/engine/install/\n"
                "  - macOS:   https://docs.docker.com/desktop/install/mac-install/\n"
                "  - Windows: https://docs.docker.com/desktop/install/windows-install/"
            ),
            **kwargs,
        )


class DescriptorNotFoundError(InstallError):
    """The compose descriptor is missing from the project directory."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, filename: str, **kwargs: Any):
        super().__init__(f"Required Docker Compose file not found: {filename}", **kwargs)
        self.filename = filename


# ── Execution ────────────────────────────────────────────────────────────


class ComposeCommandError(InstallError):
    """A ``docker`` / ``docker compose`` command exited non-zero or timed out."""

    default_category = ErrorCategory.ORCHESTRATION

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.returncode = returncode
        self.stderr = stderr


class QueryError(InstallError):
    """A query through the ``mysql`` client failed or returned unusable output."""

    default_category = ErrorCategory.DATABASE


# ── Sample data ──────────────────────────────────────────────────────────


class SampleDataError(InstallError):
    """The sample database dump could not be produced."""

    default_category = ErrorCategory.SOURCE


class DownloadError(SampleDataError):
    """Downloading the sample data archive failed."""

    default_category = ErrorCategory.NETWORK


__all__ = [
    "ComposeCommandError",
    "DescriptorNotFoundError",
    "DockerNotFoundError",
    "DownloadError",
    "ErrorCategory",
    "ErrorContext",
    "InstallError",
    "QueryError",
    "SampleDataError",
    "ToolNotFoundError",
]
