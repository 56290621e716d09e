"""Commands that look after the database itself: ``check`` and ``upgrade``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sharegraph.commands._base import ShareGraphCommand

if TYPE_CHECKING:
    from sharegraph.commands._context import AppContext


@click.command(
    cls=ShareGraphCommand,
    examples="""\
  sharegraph check
  sharegraph check --errors-only
  sharegraph check --fix
  sharegraph --json check""",
)
@click.option("--errors-only", is_flag=True, help="Leave warnings out of the report.")
@click.option("--fix", is_flag=True, help="Back up the database, then repair what was found.")
@click.pass_obj
def check(app: AppContext, errors_only: bool, fix: bool) -> None:
    """Look for one-sided connections, admin-less households and stale grants."""
    from sharegraph.services.check import SEVERITY_ERROR, SEVERITY_WARNING, CheckService

    service = CheckService(app.store)
    if fix:
        app.emit(service.fix())
        return
    app.emit(service.check(min_severity=SEVERITY_ERROR if errors_only else SEVERITY_WARNING))


@click.command(
    cls=ShareGraphCommand,
    examples="""\
  sharegraph upgrade --check
  sharegraph upgrade
  sharegraph --json upgrade --check""",
)
@click.option("--check", "dry_run", is_flag=True, help="List pending migrations only.")
@click.pass_obj
def upgrade(app: AppContext, dry_run: bool) -> None:
    """Migrate the database schema to the newest revision."""
    from sharegraph.services.upgrade import UpgradeService

    service = UpgradeService(app.store)
    app.emit(service.pending() if dry_run else service.apply())
