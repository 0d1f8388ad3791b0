"""Configuration model for the OpenEyes installer.

All environment-specific parameters of an install live on one Pydantic v2
model. Defaults reproduce the stock demo setup (compose descriptor, images,
credentials, sample data location, application URL), so ``InstallConfig()``
with no arguments is a complete configuration.

Key Concepts:
    InstallConfig: Every parameter of a run. ``from_env()`` reads
        ``OE_INSTALL_*`` variables; keyword overrides win over the
        environment, the environment wins over field defaults.
    compose_path / sql_path / archive_path: File locations resolved
        against ``project_dir``.

Architecture Decisions:
    - Pydantic v2 (not dataclass): ``model_dump_json()`` for ``--json``
      output and validation of timeouts and URLs at construction time.
    - from_env() classmethod: explicit env-var parsing rather than
      ``pydantic-settings``, keeping the dependency surface small.
    - ``run_id`` is generated in a ``model_validator`` so every run can be
      correlated across log lines.

Related Modules:
    - :mod:`oeinstall.deploy.workflow` — consumes the config
    - :mod:`oeinstall.cli.install` — maps CLI options onto overrides

Tags:
    config, settings, pydantic, environment
"""

from __future__ import annotations

import os
import re
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "OE_INSTALL_"

DEFAULT_DOWNLOAD_URL = (
    "https://github.com/AppertaFoundation/openeyes-sample-db/raw/refs/heads/"
    "release/v6.8.0/sql/sample_db.zip"
)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")


class InstallConfig(BaseModel):
    """Parameters for one install run.

    Example::

        config = InstallConfig(project_dir=Path("/opt/openeyes"), pull_images=False)
        config.compose_path   # /opt/openeyes/docker-compose-oe-image.yml
    """

    # Project layout
    project_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory holding the compose descriptor and sample data",
    )
    compose_file: str = Field(
        default="docker-compose-oe-image.yml",
        description="Compose descriptor filename (relative to project_dir)",
    )

    # Images and services
    images: list[str] = Field(
        default=["codewasher/oe-docker:latest", "mariadb:10.6"],
        description="Images pulled before the stack is started",
    )
    pull_images: bool = Field(default=True, description="Pull images before starting")
    db_service: str = Field(default="db", description="Compose service name of the database")
    app_service: str = Field(default="app", description="Compose service name of the application")

    # Credentials
    root_user: str = Field(default="root", description="Database administrative account")
    root_password: str = Field(default="openeyesroot", description="Administrative password")
    db_name: str = Field(default="openeyes", description="Application schema name")
    db_user: str = Field(default="openeyes", description="Application database user")
    db_password: str = Field(default="openeyes", description="Application database password")

    # Sample data
    sample_sql: str = Field(default="sample_db.sql", description="Uncompressed dump filename")
    sample_archive: str = Field(
        default="sample_db.zip",
        description="Compressed dump filename (gzip content despite the .zip name)",
    )
    download_url: str = Field(default=DEFAULT_DOWNLOAD_URL, description="Sample archive URL")
    verify_table: str = Field(default="user", description="Table counted to verify the import")

    # Application
    app_url: str = Field(default="http://localhost:8080/", description="Application base URL")
    assets_dir: str = Field(
        default="/var/www/html/assets/",
        description="Directory inside the app container populated on first request",
    )
    admin_username: str = Field(default="admin", description="Sample database login (display only)")
    admin_password: str = Field(default="admin", description="Sample database password (display only)")

    # Timing
    db_wait_timeout: int = Field(default=180, gt=0, description="compose --wait timeout for the database")
    app_ready_timeout: float = Field(default=60.0, gt=0, description="Application readiness polling limit")
    asset_wait_timeout: float = Field(default=60.0, gt=0, description="Asset directory polling limit")
    poll_interval: float = Field(default=2.0, gt=0, description="Delay between readiness polls")
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout of a single HTTP probe")
    download_timeout: float = Field(default=300.0, gt=0, description="Sample archive download timeout")
    command_timeout: int = Field(default=600, gt=0, description="Timeout for a single docker command")

    # Internal
    run_id: str = Field(default="", description="Unique run identifier (auto-generated)")

    @field_validator("db_name", "db_user", "verify_table")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"{value!r} is not a plain SQL identifier")
        return value

    @field_validator("images", mode="before")
    @classmethod
    def _split_images(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @model_validator(mode="after")
    def _set_defaults(self) -> InstallConfig:
        if not self.run_id:
            self.run_id = uuid.uuid4().hex[:12]
        return self

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def compose_path(self) -> Path:
        return self.project_dir / self.compose_file

    @property
    def sql_path(self) -> Path:
        return self.project_dir / self.sample_sql

    @property
    def archive_path(self) -> Path:
        return self.project_dir / self.sample_archive

    @classmethod
    def from_env(cls, **overrides: Any) -> InstallConfig:
        """Create config from OE_INSTALL_* environment variables.

        ``None`` overrides are ignored so CLI options that were not given
        fall through to the environment and defaults.
        """
        bool_fields = {"pull_images"}
        values: dict[str, Any] = {}
        for field_name in cls.model_fields:
            if field_name == "run_id":
                continue
            env_val = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
            if env_val is None:
                continue
            if field_name in bool_fields:
                values[field_name] = env_val.lower() in ("true", "1", "yes")
            else:
                values[field_name] = env_val
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
