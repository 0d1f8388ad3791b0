"""Docker Compose wrapper for the installer.

Drives the ``docker`` CLI and its ``compose`` plugin via subprocess. Every
call is bounded by a timeout and returns a ``CommandResult``; with
``check=True`` a non-zero exit raises ``ComposeCommandError`` carrying the
exit code and stderr.

Key Concepts:
    ComposeClient: ``pull()``, ``up()``, ``exec()``, ``ps()``, ``down()``,
        ``logs()`` against one compose descriptor.
    CommandResult: argv, return code and captured output of one call.
    is_docker_available() / is_compose_available(): preflight probes that
        never raise.

Architecture Decisions:
    - subprocess, not docker-py: works with any runtime exposing a
      ``docker`` CLI with the compose plugin.
    - ``exec`` always passes ``-T``: no pseudo-TTY, so stdin can be a dump
      file and stdout can be captured and parsed.
    - Passwords in ``-p<secret>`` arguments are masked before logging.

Related Modules:
    - :mod:`oeinstall.deploy.database` — builds mysql commands run via ``exec``
    - :mod:`oeinstall.deploy.workflow` — sequences compose calls

Tags:
    compose, docker, subprocess, lifecycle, health
"""

from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from oeinstall.core.errors import ComposeCommandError, DockerNotFoundError, ErrorCategory
from oeinstall.core.logging import get_logger
from oeinstall.deploy.results import ServiceState, ServiceStatus

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of one docker CLI invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class ComposeClient:
    """Runs ``docker`` and ``docker compose`` commands for one descriptor.

    Parameters
    ----------
    compose_file
        Path to the compose descriptor (passed with ``-f``).
    project_dir
        Working directory for every command (defaults to the descriptor's
        directory).
    timeout
        Default per-command timeout in seconds.

    Example::

        compose = ComposeClient(Path("docker-compose-oe-image.yml"))
        compose.up("db", wait=True, wait_timeout=180)
        compose.exec("db", ["mysql", "-uroot", "-e", "SELECT 1"])
    """

    compose_file: Path
    project_dir: Path | None = None
    timeout: int = 600
    _docker_cmd: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.compose_file = Path(self.compose_file)
        if self.project_dir is None:
            self.project_dir = self.compose_file.parent
        self._docker_cmd = self._find_docker()

    # ------------------------------------------------------------------
    # Docker CLI discovery
    # ------------------------------------------------------------------

    @staticmethod
    def _find_docker() -> str:
        docker = shutil.which("docker")
        if docker is None:
            raise DockerNotFoundError()
        return docker

    @staticmethod
    def is_docker_available() -> bool:
        """Check that the ``docker`` CLI is on PATH."""
        return shutil.which("docker") is not None

    @staticmethod
    def is_compose_available() -> bool:
        """Check that ``docker compose`` responds to ``version``."""
        docker = shutil.which("docker")
        if docker is None:
            return False
        try:
            result = subprocess.run(
                [docker, "compose", "version"],
                capture_output=True,
                timeout=30,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, OSError):
            return False

    # ------------------------------------------------------------------
    # Image and service lifecycle
    # ------------------------------------------------------------------

    def pull(self, image: str, check: bool = True) -> CommandResult:
        """``docker pull <image>``."""
        return self._run([self._docker_cmd, "pull", image], check=check)

    def up(
        self,
        *services: str,
        wait: bool = False,
        wait_timeout: int | None = None,
        check: bool = True,
    ) -> CommandResult:
        """``docker compose up -d [--wait] <services>``.

        With ``wait=True`` compose blocks until the services report healthy
        (or ``wait_timeout`` seconds pass, after which compose exits non-zero).
        """
        args = ["up", "-d"]
        if wait:
            args.append("--wait")
            if wait_timeout is not None:
                args.extend(["--wait-timeout", str(wait_timeout)])
        args.extend(services)
        timeout = self.timeout
        if wait_timeout is not None:
            timeout = max(timeout, wait_timeout + 60)
        return self._compose(args, check=check, timeout=timeout)

    def down(self, check: bool = True) -> CommandResult:
        """``docker compose down``."""
        return self._compose(["down"], check=check)

    def exec(
        self,
        service: str,
        command: list[str],
        input_path: Path | None = None,
        check: bool = True,
    ) -> CommandResult:
        """``docker compose exec -T <service> <command>``.

        When *input_path* is given the file is streamed to the command's
        stdin without being read into memory.
        """
        args = ["exec", "-T", service, *command]
        if input_path is None:
            return self._compose(args, check=check)
        with open(input_path, "rb") as stdin:
            return self._compose(args, check=check, stdin=stdin)

    def ps(self) -> list[ServiceStatus]:
        """Status of every service in the descriptor."""
        result = self._compose(["ps", "--all", "--format", "json"], check=False, timeout=60)
        if not result.ok or not result.stdout.strip():
            return []
        return parse_ps_output(result.stdout)

    def logs(
        self,
        service: str | None = None,
        tail: int = 100,
        follow: bool = False,
    ) -> int:
        """Stream ``docker compose logs`` to the terminal; returns the exit code."""
        args = [*self._base_args(), "logs", "--tail", str(tail)]
        if follow:
            args.append("--follow")
        if service:
            args.append(service)
        logger.debug("compose.logs", cmd=_redact(args))
        return subprocess.run(args, cwd=self.project_dir, check=False).returncode  # noqa: S603

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _base_args(self) -> list[str]:
        return [self._docker_cmd, "compose", "-f", str(self.compose_file)]

    def _compose(
        self,
        args: list[str],
        check: bool = True,
        timeout: int | None = None,
        stdin: IO[bytes] | None = None,
    ) -> CommandResult:
        return self._run([*self._base_args(), *args], check=check, timeout=timeout, stdin=stdin)

    def _run(
        self,
        cmd: list[str],
        check: bool = True,
        timeout: int | None = None,
        stdin: IO[bytes] | None = None,
    ) -> CommandResult:
        """Run a docker CLI command and capture its output."""
        timeout = timeout or self.timeout
        printable = _redact(cmd)
        logger.debug("compose.exec", cmd=printable)
        try:
            proc = subprocess.run(  # noqa: S603
                cmd,
                stdin=stdin,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=self.project_dir,
            )
        except subprocess.TimeoutExpired as exc:
            raise ComposeCommandError(
                f"Docker command timed out after {timeout}s: {printable}",
                category=ErrorCategory.TIMEOUT,
                cause=exc,
            ).with_context(command=printable) from exc

        result = CommandResult(
            args=cmd,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if check and not result.ok:
            logger.error("compose.failed", cmd=printable, returncode=result.returncode)
            raise ComposeCommandError(
                f"Docker command failed (exit {result.returncode}): {printable}\n"
                f"{result.stderr.strip()}",
                returncode=result.returncode,
                stderr=result.stderr,
            ).with_context(command=printable)
        return result


def parse_ps_output(output: str) -> list[ServiceStatus]:
    """Parse ``docker compose ps --format json``.

    Compose v2.21+ prints one JSON object per line; older releases print a
    single JSON array. Both are accepted.
    """
    text = output.strip()
    rows: list[dict] = []
    if text.startswith("["):
        try:
            rows = json.loads(text)
        except json.JSONDecodeError:
            rows = []
    else:
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug("compose.ps_unparsable", line=line)

    services = []
    for data in rows:
        services.append(
            ServiceStatus(
                name=data.get("Service", data.get("Name", "unknown")),
                container_name=data.get("Name"),
                image=data.get("Image"),
                status=map_compose_status(data.get("State", ""), data.get("Health", "")),
                ports=_format_publishers(data.get("Publishers")) or data.get("Ports") or None,
            )
        )
    return services


def map_compose_status(state: str, health: str = "") -> ServiceState:
    """Map Docker Compose state/health to ``ServiceStatus.status`` values."""
    state = (state or "").lower()
    health = (health or "").lower()
    if health in ("healthy", "unhealthy"):
        return health  # type: ignore[return-value]
    if "unhealthy" in state:
        return "unhealthy"
    if "healthy" in state:
        return "healthy"
    if state == "running" and health == "starting":
        return "starting"
    if state == "running":
        return "running"
    if "exit" in state or state == "dead":
        return "exited"
    if "starting" in state or "created" in state or "restarting" in state:
        return "starting"
    return "not_found"


def _format_publishers(publishers: list[dict] | None) -> str | None:
    if not publishers:
        return None
    ports = [
        f"{p.get('PublishedPort')}->{p.get('TargetPort')}"
        for p in publishers
        if p.get("PublishedPort")
    ]
    return ", ".join(ports) or None


def _redact(cmd: list[str]) -> str:
    """Join *cmd* for logging with ``-p<password>`` arguments masked."""
    parts = []
    for arg in cmd:
        if arg.startswith("-p") and len(arg) > 2 and not arg.startswith("--"):
            parts.append("-p****")
        else:
            parts.append(arg)
    return " ".join(parts)
