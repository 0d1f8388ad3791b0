"""Install workflow orchestrator.

``InstallRunner`` drives the fixed install sequence: preflight → image pull
→ database start → application start → schema reset → sample data → import
→ verification → asset warm-up → final check. Each step returns a
``StepResult``; the runner records it, stops at the first ``FATAL`` and
never revisits or retries a step.

Key Concepts:
    InstallRunner: Config → ``InstallResult``. ``run()`` executes every
        step; the ``step_*`` methods can be called on their own.
    STEPS: The ordered step names, also used for console progress.
    on_step: Optional callback invoked with each ``StepResult`` as soon as
        it is recorded, so the CLI can print progress while the run is
        still going.

Architecture Decisions:
    - Steps raise ``InstallError``; the runner turns it into a FATAL
      result with the error's category. Any other exception is a bug and
      propagates.
    - Tolerated failures (verification, asset warm-up, final probe) are
      WARNING results, so the exit code stays 0.
    - No teardown: a failed run leaves the services as compose left them.

Related Modules:
    - :mod:`oeinstall.deploy.config` — InstallConfig
    - :mod:`oeinstall.deploy.compose` — docker / docker compose calls
    - :mod:`oeinstall.deploy.database` — mysql calls
    - :mod:`oeinstall.deploy.sample_data` — dump acquisition
    - :mod:`oeinstall.deploy.readiness` — bounded polling
    - :mod:`oeinstall.deploy.results` — StepResult and InstallResult

Tags:
    workflow, orchestration, install, runner
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Callable

import httpx

from oeinstall.core.errors import (
    ComposeCommandError,
    DescriptorNotFoundError,
    DockerNotFoundError,
    InstallError,
    QueryError,
    ToolNotFoundError,
)
from oeinstall.core.logging import LogContext, get_logger
from oeinstall.deploy.compose import ComposeClient
from oeinstall.deploy.config import InstallConfig
from oeinstall.deploy.database import MySQLClient
from oeinstall.deploy.readiness import probe_http, wait_for_http, wait_until
from oeinstall.deploy.results import InstallResult, ServiceStatus, StepResult
from oeinstall.deploy.sample_data import SampleDataSource

logger = get_logger(__name__)

STEPS = [
    "preflight",
    "pull_images",
    "start_database",
    "start_application",
    "prepare_database",
    "acquire_sample_data",
    "import_sample_data",
    "verify",
    "warm_assets",
    "final_check",
]

StepCallback = Callable[[StepResult], None]


class InstallRunner:
    """Runs the full install against one compose descriptor.

    Parameters
    ----------
    config
        Install configuration.
    http_client
        Optional ``httpx.Client`` for probes and the sample download.
    on_step
        Called with each ``StepResult`` as soon as it is recorded.

    Example::

        from oeinstall.deploy import InstallConfig, InstallRunner

        result = InstallRunner(InstallConfig.from_env()).run()
        print(result.summary)
        raise SystemExit(result.exit_code)
    """

    def __init__(
        self,
        config: InstallConfig,
        http_client: httpx.Client | None = None,
        on_step: StepCallback | None = None,
    ) -> None:
        self.config = config
        self.http_client = http_client
        self.on_step = on_step
        self.compose: ComposeClient | None = None
        self.mysql: MySQLClient | None = None
        self._dump = None

    def run(self) -> InstallResult:
        """Execute every step in order, stopping at the first fatal one."""
        result = InstallResult(
            run_id=self.config.run_id,
            app_url=self.config.app_url,
            compose_file=self.config.compose_file,
        )

        with LogContext(run_id=self.config.run_id):
            logger.info("install.started", project_dir=str(self.config.project_dir))
            for name in STEPS:
                step = self._execute(name, result)
                if step.is_fatal:
                    break
            else:
                if self.compose is not None:
                    result.services = self._collect_services()

            result.mark_complete()
            logger.info(
                "install.complete",
                status=result.overall_status.value,
                summary=result.summary,
            )
        return result

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    def _execute(self, name: str, result: InstallResult) -> StepResult:
        method = getattr(self, f"step_{name}")
        started = datetime.now(UTC)
        t0 = time.monotonic()
        with LogContext(step=name):
            logger.info("step.started")
            try:
                step = method(result)
            except InstallError as exc:
                logger.error("step.failed", **exc.to_dict())
                step = StepResult.from_error(name, exc.with_context(step=name, run_id=self.config.run_id))
            step.started_at = started.isoformat()
            step.completed_at = datetime.now(UTC).isoformat()
            step.duration_seconds = time.monotonic() - t0
            logger.info("step.completed", outcome=step.outcome.value, message=step.message)

        result.steps.append(step)
        if self.on_step is not None:
            self.on_step(step)
        return step

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def step_preflight(self, result: InstallResult) -> StepResult:
        """Check docker, docker compose and the compose descriptor."""
        cfg = self.config
        if not ComposeClient.is_docker_available():
            raise DockerNotFoundError("Docker is not installed or not in PATH")
        if not ComposeClient.is_compose_available():
            raise ToolNotFoundError("docker compose", "Docker Compose is not available")
        if not cfg.compose_path.is_file():
            raise DescriptorNotFoundError(cfg.compose_file).with_context(path=str(cfg.compose_path))

        self.compose = ComposeClient(
            cfg.compose_path,
            project_dir=cfg.project_dir,
            timeout=cfg.command_timeout,
        )
        self.mysql = MySQLClient(self.compose, cfg)
        return StepResult.ok(
            "preflight",
            f"Docker and Docker Compose are available; using {cfg.compose_file}",
            project_dir=str(cfg.project_dir),
        )

    def step_pull_images(self, result: InstallResult) -> StepResult:
        """Pull every configured image (compose would pull on ``up`` anyway)."""
        if not self.config.pull_images:
            return StepResult.skip("pull_images", "Image pull disabled")
        for image in self.config.images:
            logger.info("image.pulling", image=image)
            self._compose().pull(image)
        return StepResult.ok(
            "pull_images",
            f"Pulled {len(self.config.images)} images",
            images=list(self.config.images),
        )

    def step_start_database(self, result: InstallResult) -> StepResult:
        """Start the database and block until compose reports it healthy."""
        service = self.config.db_service
        self._compose().up(service, wait=True, wait_timeout=self.config.db_wait_timeout)
        return StepResult.ok("start_database", "Database service is running and healthy", service=service)

    def step_start_application(self, result: InstallResult) -> StepResult:
        """Start the application and poll its URL until it answers."""
        cfg = self.config
        self._compose().up(cfg.app_service)
        ready = wait_for_http(
            cfg.app_url,
            timeout=cfg.app_ready_timeout,
            interval=cfg.poll_interval,
            probe_timeout=cfg.http_timeout,
            client=self.http_client,
        )
        if not ready:
            return StepResult.warn(
                "start_application",
                f"Application did not answer on {cfg.app_url} within {cfg.app_ready_timeout:.0f}s",
                service=cfg.app_service,
            )
        return StepResult.ok("start_application", f"Application answers on {cfg.app_url}", service=cfg.app_service)

    def step_prepare_database(self, result: InstallResult) -> StepResult:
        """Drop and recreate the schema, grant the application user."""
        self._mysql().reset_schema()
        return StepResult.ok(
            "prepare_database",
            f"Database {self.config.db_name} recreated",
            schema=self.config.db_name,
        )

    def step_acquire_sample_data(self, result: InstallResult) -> StepResult:
        """Locate, extract or download the sample dump."""
        dump = SampleDataSource(self.config, client=self.http_client).acquire()
        self._dump = dump
        messages = {
            "existing": f"Found existing {dump.path.name}",
            "archive": f"Extracted {dump.path.name} from {self.config.sample_archive}",
            "download": f"Downloaded and extracted {dump.path.name}",
        }
        return StepResult.ok("acquire_sample_data", messages[dump.tier], tier=dump.tier, path=str(dump.path))

    def step_import_sample_data(self, result: InstallResult) -> StepResult:
        """Stream the dump into the schema with the application credentials."""
        path = self._dump.path if self._dump is not None else self.config.sql_path
        self._mysql().import_dump(path)
        return StepResult.ok("import_sample_data", "Sample database imported successfully", path=str(path))

    def step_verify(self, result: InstallResult) -> StepResult:
        """Count rows in the verification table, falling back to a table count."""
        mysql = self._mysql()
        table = self.config.verify_table
        try:
            result.user_count = mysql.count_rows(table)
            return StepResult.ok(
                "verify",
                f"Database verification successful - Found {result.user_count} users",
                user_count=result.user_count,
            )
        except QueryError as exc:
            logger.warning("verify.table_query_failed", table=table, error=exc.message)

        try:
            result.table_count = mysql.count_tables()
        except QueryError as exc:
            return StepResult.warn("verify", f"Database verification failed: {exc.message}")
        return StepResult.warn(
            "verify",
            f"Database verification failed - Found {result.table_count} tables in the database",
            table_count=result.table_count,
        )

    def step_warm_assets(self, result: InstallResult) -> StepResult:
        """Request the homepage to trigger asset generation, then wait for the assets."""
        cfg = self.config
        if not probe_http(cfg.app_url, timeout=cfg.http_timeout, client=self.http_client):
            logger.info("assets.initial_request_failed", url=cfg.app_url)

        generated = wait_until(
            self._assets_present,
            timeout=cfg.asset_wait_timeout,
            interval=cfg.poll_interval,
            what=cfg.assets_dir,
        )
        if not generated:
            return StepResult.warn("warm_assets", "Assets directory may still be generating")
        return StepResult.ok("warm_assets", "Assets directory has contents")

    def step_final_check(self, result: InstallResult) -> StepResult:
        """One last reachability probe; failure only changes the guidance."""
        cfg = self.config
        result.app_reachable = probe_http(cfg.app_url, timeout=cfg.http_timeout, client=self.http_client)
        if result.app_reachable:
            return StepResult.ok("final_check", f"OpenEyes is accessible at {cfg.app_url}")
        return StepResult.warn(
            "final_check",
            "OpenEyes may still be starting up, please wait a moment",
            hint=f"docker compose -f {cfg.compose_file} logs -f",
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _collect_services(self) -> list[ServiceStatus]:
        """Service status for the summary; a failing ``ps`` leaves it empty."""
        try:
            return self._compose().ps()
        except InstallError as exc:
            logger.warning("install.status_unavailable", **exc.to_dict())
            return []

    def _assets_present(self) -> bool:
        cfg = self.config
        try:
            listing = self._compose().exec(cfg.app_service, ["ls", cfg.assets_dir], check=False)
        except ComposeCommandError as exc:
            logger.debug("assets.list_failed", error=exc.message)
            return False
        return listing.ok and bool(listing.stdout.strip())

    def _compose(self) -> ComposeClient:
        if self.compose is None:
            self.compose = ComposeClient(
                self.config.compose_path,
                project_dir=self.config.project_dir,
                timeout=self.config.command_timeout,
            )
        return self.compose

    def _mysql(self) -> MySQLClient:
        if self.mysql is None:
            self.mysql = MySQLClient(self._compose(), self.config)
        return self.mysql
