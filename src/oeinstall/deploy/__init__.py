"""Container-based install of the OpenEyes demo stack.

Key Concepts:
    InstallConfig: Pydantic model with every parameter of an install.
    InstallRunner: Runs the ordered install steps, config in,
        ``InstallResult`` out.
    ComposeClient: Subprocess wrapper over ``docker`` / ``docker compose``.
    MySQLClient: ``mysql`` operations executed inside the database service.
    SampleDataSource: Existing dump → local archive → download fallback.
    StepResult / StepOutcome: Explicit per-step failure policy
        (SUCCESS, WARNING, FATAL, SKIPPED).

Architecture::

    ┌──────────────────────────────────────────────────────────────┐
    │                       InstallRunner                           │
    ├────────────┬──────────────┬───────────────┬──────────────────┤
    │ Compose    │ MySQLClient  │ SampleData    │ Readiness        │
    │ Client     │ (exec mysql) │ Source        │ (httpx polling)  │
    ├────────────┴──────────────┴───────────────┴──────────────────┤
    │              InstallConfig │ StepResult / InstallResult       │
    └──────────────────────────────────────────────────────────────┘

Example:
    >>> from oeinstall.deploy import InstallConfig
    >>> InstallConfig().compose_file
    'docker-compose-oe-image.yml'
"""

from __future__ import annotations

from oeinstall.deploy.compose import CommandResult, ComposeClient
from oeinstall.deploy.config import InstallConfig
from oeinstall.deploy.database import MySQLClient
from oeinstall.deploy.results import (
    InstallResult,
    OverallStatus,
    ServiceStatus,
    StepOutcome,
    StepResult,
)
from oeinstall.deploy.sample_data import AcquiredDump, SampleDataSource
from oeinstall.deploy.workflow import STEPS, InstallRunner

__all__ = [
    "STEPS",
    "AcquiredDump",
    "CommandResult",
    "ComposeClient",
    "InstallConfig",
    "InstallResult",
    "InstallRunner",
    "MySQLClient",
    "OverallStatus",
    "SampleDataSource",
    "ServiceStatus",
    "StepOutcome",
    "StepResult",
]
