"""
CLI: install and stack management commands.

Usage::

    oe-install                      # full install with defaults
    oe-install install --no-pull    # skip the explicit image pull
    oe-install install --json       # machine-readable result

    oe-install status               # docker compose ps
    oe-install down                 # stop the stack
    oe-install restart              # start the stack again
    oe-install logs -s app --follow # follow application logs
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from oeinstall.core.errors import InstallError
from oeinstall.core.logging import configure_logging
from oeinstall.deploy.compose import ComposeClient
from oeinstall.deploy.config import InstallConfig
from oeinstall.deploy.results import InstallResult, ServiceStatus, StepOutcome, StepResult
from oeinstall.deploy.workflow import STEPS, InstallRunner

console = Console()
err_console = Console(stderr=True)

STEP_TITLES = {
    "preflight": "Checking prerequisites",
    "pull_images": "Pulling required images from Docker Hub",
    "start_database": "Starting database service",
    "start_application": "Starting OpenEyes application service",
    "prepare_database": "Preparing database",
    "acquire_sample_data": "Locating sample database",
    "import_sample_data": "Importing sample database",
    "verify": "Verifying installation",
    "warm_assets": "Generating application assets",
    "final_check": "Final status check",
}

_OUTCOME_MARKS = {
    StepOutcome.SUCCESS: "[green]✓[/]",
    StepOutcome.WARNING: "[yellow]⚠[/]",
    StepOutcome.FATAL: "[red]✗[/]",
    StepOutcome.SKIPPED: "[dim]-[/]",
}


# ── Install ──────────────────────────────────────────────────────────────


def install(
    project_dir: Path | None = typer.Option(
        None, "--dir", "-d", help="Directory with the compose file and sample data.",
    ),
    compose_file: str | None = typer.Option(None, "--compose-file", "-f", help="Compose descriptor filename."),
    pull: bool | None = typer.Option(None, "--pull/--no-pull", help="Pull images before starting."),
    app_url: str | None = typer.Option(None, "--app-url", help="Application URL to probe."),
    json_out: bool = typer.Option(False, "--json", help="Output the result as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
    log_json: bool = typer.Option(False, "--log-json", help="Emit logs as JSON."),
) -> None:
    """Install OpenEyes: start the stack, seed the sample database, check it answers."""
    config = _load_config(
        project_dir=project_dir,
        compose_file=compose_file,
        pull_images=pull,
        app_url=app_url,
    )
    code = run_install(config, json_out=json_out, verbose=verbose, log_json=log_json)
    if code:
        raise typer.Exit(code=code)


def run_install(
    config: InstallConfig,
    *,
    json_out: bool = False,
    verbose: bool = False,
    log_json: bool = False,
) -> int:
    """Run the install and render it; returns the process exit code."""
    configure_logging(level="DEBUG" if verbose else "WARNING", json_format=log_json or None)

    if not json_out:
        _print_banner()
        console.print(f"Current directory: {config.project_dir}")

    runner = InstallRunner(config, on_step=None if json_out else _print_step)
    result = runner.run()

    if json_out:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _print_install_result(result, config)
    return result.exit_code


# ── Stack management ─────────────────────────────────────────────────────


def status(
    project_dir: Path | None = typer.Option(None, "--dir", "-d", help="Project directory."),
    compose_file: str | None = typer.Option(None, "--compose-file", "-f", help="Compose descriptor filename."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show the status of the OpenEyes services."""
    compose = _compose_client(project_dir, compose_file)
    services = compose.ps()
    if json_out:
        typer.echo("[" + ",".join(s.model_dump_json() for s in services) + "]")
        return
    _print_services(services)


def down(
    project_dir: Path | None = typer.Option(None, "--dir", "-d", help="Project directory."),
    compose_file: str | None = typer.Option(None, "--compose-file", "-f", help="Compose descriptor filename."),
) -> None:
    """Stop OpenEyes."""
    compose = _compose_client(project_dir, compose_file)
    console.print("[bold red]▼ down[/]")
    try:
        compose.down()
    except InstallError as exc:
        err_console.print(f"[red]✗ {exc.message}[/]")
        raise typer.Exit(code=1)
    console.print("[green]✓ Services stopped[/]")


def restart(
    project_dir: Path | None = typer.Option(None, "--dir", "-d", help="Project directory."),
    compose_file: str | None = typer.Option(None, "--compose-file", "-f", help="Compose descriptor filename."),
) -> None:
    """Start OpenEyes again (``docker compose up -d``)."""
    compose = _compose_client(project_dir, compose_file)
    console.print("[bold yellow]↻ restart[/]")
    try:
        compose.up()
    except InstallError as exc:
        err_console.print(f"[red]✗ {exc.message}[/]")
        raise typer.Exit(code=1)
    console.print("[green]✓ Services started[/]")


def logs(
    service: str | None = typer.Option(None, "--service", "-s", help="Service name."),
    tail: int = typer.Option(100, "--tail", "-n", help="Number of lines."),
    follow: bool = typer.Option(False, "--follow", help="Follow log output."),
    project_dir: Path | None = typer.Option(None, "--dir", "-d", help="Project directory."),
    compose_file: str | None = typer.Option(None, "--compose-file", "-f", help="Compose descriptor filename."),
) -> None:
    """Show logs from the OpenEyes services."""
    compose = _compose_client(project_dir, compose_file)
    code = compose.logs(service=service, tail=tail, follow=follow)
    if code:
        raise typer.Exit(code=code)


# ── Helpers ──────────────────────────────────────────────────────────────


def _load_config(**overrides) -> InstallConfig:
    try:
        return InstallConfig.from_env(**overrides)
    except ValueError as exc:
        err_console.print(f"[red]Invalid configuration:[/] {exc}")
        raise typer.Exit(code=1)


def _compose_client(project_dir: Path | None, compose_file: str | None) -> ComposeClient:
    config = _load_config(project_dir=project_dir, compose_file=compose_file)
    try:
        return ComposeClient(config.compose_path, project_dir=config.project_dir)
    except InstallError as exc:
        err_console.print(f"[red]{exc.message}[/]")
        raise typer.Exit(code=1)


# ── Output formatters ────────────────────────────────────────────────────


def _print_banner() -> None:
    console.print("=" * 42)
    console.print("[bold]OpenEyes Docker Image Installation Script[/]")
    console.print("=" * 42)


def _print_step(step: StepResult) -> None:
    """Print one step as soon as it completes."""
    number = STEPS.index(step.name) + 1 if step.name in STEPS else "?"
    title = STEP_TITLES.get(step.name, step.name)
    console.print(f"\n[bold]Step {number}:[/] {title}...")
    mark = _OUTCOME_MARKS[step.outcome]
    console.print(f"{mark} {step.message}")
    hint = step.detail.get("hint")
    if hint:
        console.print(f"You can check the status with: {hint}")


def _print_services(services: list[ServiceStatus]) -> None:
    table = Table(title="Service Status")
    table.add_column("Service", style="bold")
    table.add_column("Status")
    table.add_column("Container")
    table.add_column("Image")
    table.add_column("Ports")

    for svc in services:
        status_style = {
            "running": "green",
            "healthy": "green bold",
            "starting": "yellow",
            "unhealthy": "red",
            "exited": "red",
            "not_found": "dim",
        }.get(svc.status, "white")
        table.add_row(
            svc.name,
            f"[{status_style}]{svc.status}[/{status_style}]",
            svc.container_name or "—",
            svc.image or "—",
            svc.ports or "—",
        )

    console.print(table)


def _print_install_result(result: InstallResult, config: InstallConfig) -> None:
    compose_file = config.compose_file
    failed = result.failed_step
    console.print()
    if failed is not None:
        err_console.print(f"[bold red]✗ Installation failed[/] — {result.summary}")
        return

    console.print("=" * 42)
    console.print("[bold green]OpenEyes Installation Complete! 🚀[/]")
    console.print("=" * 42)
    console.print(f"\nOpenEyes is now running at: {config.app_url}\n")
    console.print("Default login credentials (from sample database):")
    console.print(f"  Username: {config.admin_username}")
    console.print(f"  Password: {config.admin_password}\n")
    if result.services:
        _print_services(result.services)
    console.print(f"\nTo stop OpenEyes: docker compose -f {compose_file} down")
    console.print(f"To restart OpenEyes: docker compose -f {compose_file} up -d")
    console.print(f"To view logs: docker compose -f {compose_file} logs -f")
    console.print(f"\n[dim]{result.summary}[/]")
