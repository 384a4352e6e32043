"""CLI main entry point."""

import click

from . import __version__
from .commands import config, plan, status, up
from .shared.logging import LOG_FORMATS, configure_logging


@click.group()
@click.option("-c", "--config", "config_path", type=click.Path(), help="Config file path")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option("--log-file", type=click.Path(), help="Write logs to a file instead of stderr")
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMATS),
    default="console",
    show_default=True,
    help="Log renderer",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    verbose: int,
    log_file: str | None,
    log_format: str,
    json_output: bool,
) -> None:
    """Provision and inspect a single-node Kubernetes cluster."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.obj["json_output"] = json_output
    configure_logging(verbose, log_file=log_file, log_format=log_format)


@cli.command()
def version() -> None:
    """Show version."""
    click.echo(f"onenode {__version__}")


cli.add_command(up)
cli.add_command(plan)
cli.add_command(status)
cli.add_command(config)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
