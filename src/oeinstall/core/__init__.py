"""Core primitives shared by the installer: errors and structured logging."""

from oeinstall.core.errors import (
    ComposeCommandError,
    DescriptorNotFoundError,
    DockerNotFoundError,
    DownloadError,
    ErrorCategory,
    ErrorContext,
    InstallError,
    QueryError,
    SampleDataError,
    ToolNotFoundError,
)
from oeinstall.core.logging import (
    LogContext,
    configure_logging,
    get_logger,
)

__all__ = [
    "ComposeCommandError",
    "DescriptorNotFoundError",
    "DockerNotFoundError",
    "DownloadError",
    "ErrorCategory",
    "ErrorContext",
    "InstallError",
    "LogContext",
    "QueryError",
    "SampleDataError",
    "ToolNotFoundError",
    "configure_logging",
    "get_logger",
]
