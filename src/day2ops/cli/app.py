"""
Root Typer application for the day2ops CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from day2ops.cli.plan import app as plan_app
from day2ops.core.logging import configure_logging
from day2ops.core.settings import get_settings

app = Typer(
    name="day2ops",
    help="day2ops - etcd snapshot and restore operations through the plan store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("day2ops")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"day2ops {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override DAY2OPS_LOG_LEVEL."),
) -> None:
    """day2ops CLI - inspect and drive plan records."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.log_json)


app.add_typer(plan_app, name="plan", help="Plan record operations.")


if __name__ == "__main__":
    app()
