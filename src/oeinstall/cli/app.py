"""
Root Typer application for the ``oe-install`` command.

Running ``oe-install`` with no sub-command performs the full install with
the configuration taken from ``OE_INSTALL_*`` environment variables and
defaults.
"""

from __future__ import annotations

import typer
from typer import Typer

from oeinstall.cli import install as install_cmds
from oeinstall.cli.install import _load_config, run_install
from oeinstall.core.logging import configure_logging

app = Typer(
    name="oe-install",
    help="Install and manage the OpenEyes demo stack.",
    invoke_without_command=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("openeyes-installer")
        except PackageNotFoundError:
            from oeinstall import __version__ as v
        typer.echo(f"oe-install {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """oe-install — pull, start and seed the OpenEyes demo stack."""
    configure_logging()
    if ctx.invoked_subcommand is None:
        code = run_install(_load_config())
        if code:
            raise typer.Exit(code=code)


# ── Sub-command registration ─────────────────────────────────────────────

app.command("install")(install_cmds.install)
app.command("status")(install_cmds.status)
app.command("down")(install_cmds.down)
app.command("restart")(install_cmds.restart)
app.command("logs")(install_cmds.logs)
