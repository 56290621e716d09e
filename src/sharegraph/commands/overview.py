"""Command: per-user summary of the graph."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sharegraph.commands._base import ShareGraphCommand

if TYPE_CHECKING:
    from sharegraph.commands._context import AppContext


@click.command(
    cls=ShareGraphCommand,
    examples="""\
  sharegraph --as ann@example.com overview
  sharegraph --json --as ann@example.com overview""",
)
@click.pass_obj
def overview(app: AppContext) -> None:
    """Count your connections, requests, households and shares."""
    from sharegraph.services.read_model import GraphReadModel

    app.emit(GraphReadModel(app.store).overview(app.actor()))
