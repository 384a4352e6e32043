"""Configuration commands."""

import click

from ..config import load_config
from ..decorators import reports_errors
from ..formatters import print_config


@click.group()
def config() -> None:
    """Inspect cluster configuration."""


@config.command("show")
@click.pass_context
@reports_errors
def config_show(ctx: click.Context) -> None:
    """Show effective configuration and where each value came from."""
    host = ctx.obj.get("host")
    print_config(load_config(ctx.obj.get("config_path"), env=host.env if host else None))
