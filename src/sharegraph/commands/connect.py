"""Command group: connection requests and the connection list."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sharegraph.commands._base import ShareGraphGroup
from sharegraph.domain.lifecycle import RelationshipKind
from sharegraph.services.connections import ConnectionService
from sharegraph.services.read_model import GraphReadModel

if TYPE_CHECKING:
    from sharegraph.commands._context import AppContext

_CONNECT_EXAMPLES = """\
  sharegraph --as ann@example.com connect request bob@example.com --kind sibling
  sharegraph --as bob@example.com connect pending
  sharegraph --as bob@example.com connect accept con_1a2b3c4d5e6f
  sharegraph --as ann@example.com connect list
  sharegraph --as ann@example.com connect show con_1a2b3c4d5e6f
  sharegraph --as ann@example.com connect remove con_1a2b3c4d5e6f"""


@click.group(cls=ShareGraphGroup, examples=_CONNECT_EXAMPLES)
@click.pass_obj
def connect(app: AppContext) -> None:
    """Send, answer and remove connection requests."""


@connect.command(
    examples="""\
  sharegraph --as ann@example.com connect request bob@example.com
  sharegraph --as ann@example.com connect request bob@example.com --kind spouse"""
)
@click.argument("target")
@click.option(
    "--kind",
    "relationship_kind",
    default=RelationshipKind.FRIEND.value,
    type=click.Choice([k.value for k in RelationshipKind]),
    help="How you know this person.",
)
@click.pass_obj
def request(app: AppContext, target: str, relationship_kind: str) -> None:
    """Ask TARGET (email or user ID) to connect."""
    app.emit(ConnectionService(app.store).send_request(app.actor(), target, relationship_kind))


@connect.command(
    examples="""\
  sharegraph --as bob@example.com connect accept con_1a2b3c4d5e6f"""
)
@click.argument("connection_id")
@click.pass_obj
def accept(app: AppContext, connection_id: str) -> None:
    """Accept a pending request sent to you."""
    app.emit(ConnectionService(app.store).accept(connection_id, app.actor()))


@connect.command(
    examples="""\
  sharegraph --as bob@example.com connect decline con_1a2b3c4d5e6f"""
)
@click.argument("connection_id")
@click.pass_obj
def decline(app: AppContext, connection_id: str) -> None:
    """Decline a pending request sent to you."""
    app.emit(ConnectionService(app.store).decline(connection_id, app.actor()))


@connect.command(
    examples="""\
  sharegraph --as ann@example.com connect cancel con_1a2b3c4d5e6f"""
)
@click.argument("connection_id")
@click.pass_obj
def cancel(app: AppContext, connection_id: str) -> None:
    """Withdraw a request you sent."""
    app.emit(ConnectionService(app.store).cancel(connection_id, app.actor()))


@connect.command(
    examples="""\
  sharegraph --as ann@example.com connect remove con_1a2b3c4d5e6f"""
)
@click.argument("connection_id")
@click.pass_obj
def remove(app: AppContext, connection_id: str) -> None:
    """Remove a connection in both directions."""
    app.emit(ConnectionService(app.store).remove(connection_id, app.actor()))


@connect.command(
    "list",
    examples="""\
  sharegraph --as ann@example.com connect list
  sharegraph --json --as ann@example.com connect list""",
)
@click.pass_obj
def list_cmd(app: AppContext) -> None:
    """List your accepted connections."""
    app.emit(GraphReadModel(app.store).connections(app.actor()))


@connect.command(
    examples="""\
  sharegraph --as bob@example.com connect pending
  sharegraph --as ann@example.com connect pending --outgoing"""
)
@click.option("--outgoing", is_flag=True, help="Show requests you sent instead.")
@click.pass_obj
def pending(app: AppContext, outgoing: bool) -> None:
    """List pending requests addressed to you."""
    model = GraphReadModel(app.store)
    user_id = app.actor()
    app.emit(model.pending_outgoing(user_id) if outgoing else model.pending_incoming(user_id))


@connect.command(
    examples="""\
  sharegraph --as ann@example.com connect show con_1a2b3c4d5e6f
  sharegraph --json --as bob@example.com connect show con_1a2b3c4d5e6f"""
)
@click.argument("connection_id")
@click.pass_obj
def show(app: AppContext, connection_id: str) -> None:
    """Show one connection with the documents exchanged and recent activity."""
    app.emit(GraphReadModel(app.store).member_details(connection_id, app.actor()))
