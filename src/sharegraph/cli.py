"""``sharegraph`` entry point: global flags and the command tree."""

from __future__ import annotations

import click

from sharegraph import __version__
from sharegraph.commands import register_commands
from sharegraph.commands._context import AppContext
from sharegraph.config.settings import ConfigError, ShareGraphSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="sharegraph")
@click.option(
    "--as",
    "actor",
    default=None,
    metavar="USER",
    help="Act as USER (email or user ID). Defaults to SHAREGRAPH_ACTOR.",
)
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
@click.option("-q", "--quiet", is_flag=True, help="Print IDs and one-line statuses only.")
@click.option("-v", "--verbose", is_flag=True, help="Add timings, error details and debug logs.")
@click.option("--log-json", is_flag=True, help="Write logs to stderr as JSON lines.")
@click.option(
    "-c",
    "--config",
    "config_path",
    default=None,
    help="Use this sharegraph.toml instead of searching for one.",
)
@click.option("--sync", is_flag=True, help="Run plugin hooks before the command returns.")
@click.pass_context
def cli(ctx: click.Context, actor: str | None, config_path: str | None, **flags: bool) -> None:
    """Manage sharegraph connections, households and shared documents."""
    # An unset flag must not shadow SHAREGRAPH_* or the TOML file.
    overrides = {name: True for name, value in flags.items() if value}
    try:
        settings = ShareGraphSettings.from_cli(config_path=config_path, actor=actor, **overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    app = AppContext(settings)
    ctx.obj = app
    ctx.call_on_close(app.close)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
