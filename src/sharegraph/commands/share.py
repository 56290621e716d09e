"""Command group: document sharing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sharegraph.commands._base import ShareGraphGroup
from sharegraph.domain.lifecycle import Permission
from sharegraph.services.sharing import SharingService

if TYPE_CHECKING:
    from sharegraph.commands._context import AppContext

_SHARE_EXAMPLES = """\
  sharegraph --as ann@example.com share grant doc_passport bob@example.com
  sharegraph --as ann@example.com share grant doc_passport bob@example.com -p edit
  sharegraph --as ann@example.com share grant-household doc_lease hh_0a1b2c3d4e5f
  sharegraph --as bob@example.com share with-me
  sharegraph --as ann@example.com share revoke shr_0a1b2c3d4e5f"""

_PERMISSION = click.option(
    "-p",
    "--permission",
    default=Permission.VIEW.value,
    type=click.Choice([p.value for p in Permission]),
    help="Access level.",
)
_MESSAGE = click.option("--message", default=None, help="Note shown to recipients.")


@click.group(cls=ShareGraphGroup, examples=_SHARE_EXAMPLES)
@click.pass_obj
def share(app: AppContext) -> None:
    """Grant, revoke and list shared documents."""


@share.command(
    examples="""\
  sharegraph --as ann@example.com share grant doc_passport bob@example.com
  sharegraph --as ann@example.com share grant doc_passport bob@example.com cy@example.com"""
)
@click.argument("document_id")
@click.argument("recipients", nargs=-1, required=True)
@_PERMISSION
@_MESSAGE
@click.pass_obj
def grant(
    app: AppContext,
    document_id: str,
    recipients: tuple[str, ...],
    permission: str,
    message: str | None,
) -> None:
    """Share DOCUMENT_ID with one or more RECIPIENTS (email or user ID)."""
    owner_id = app.actor()
    recipient_ids = [app.resolve_user(r) or r for r in recipients]
    svc = SharingService(app.store)
    if len(recipient_ids) == 1:
        app.emit(svc.grant(owner_id, document_id, recipient_ids[0], permission, message))
    else:
        app.emit(svc.grant_many(owner_id, document_id, recipient_ids, permission, message))


@share.command(
    "grant-household",
    examples="""\
  sharegraph --as ann@example.com share grant-household doc_lease hh_0a1b2c3d4e5f""",
)
@click.argument("document_id")
@click.argument("household_id")
@_PERMISSION
@_MESSAGE
@click.pass_obj
def grant_household(
    app: AppContext,
    document_id: str,
    household_id: str,
    permission: str,
    message: str | None,
) -> None:
    """Share DOCUMENT_ID with every other member of HOUSEHOLD_ID."""
    app.emit(
        SharingService(app.store).grant_to_household(
            app.actor(), document_id, household_id, permission, message
        )
    )


@share.command(
    examples="""\
  sharegraph --as ann@example.com share revoke shr_0a1b2c3d4e5f"""
)
@click.argument("share_id")
@click.pass_obj
def revoke(app: AppContext, share_id: str) -> None:
    """Revoke a grant you issued."""
    app.emit(SharingService(app.store).revoke(share_id, app.actor()))


@share.command(
    "with-me",
    examples="""\
  sharegraph --as bob@example.com share with-me""",
)
@click.pass_obj
def with_me(app: AppContext) -> None:
    """Documents others have shared with you."""
    app.emit(SharingService(app.store).list_shared_with_me(app.actor()))


@share.command(
    "by-me",
    examples="""\
  sharegraph --as ann@example.com share by-me""",
)
@click.pass_obj
def by_me(app: AppContext) -> None:
    """Documents you have shared."""
    app.emit(SharingService(app.store).list_shared_by_me(app.actor()))


@share.command(
    examples="""\
  sharegraph --as bob@example.com share permission doc_passport"""
)
@click.argument("document_id")
@click.pass_obj
def permission(app: AppContext, document_id: str) -> None:
    """Show your access level to DOCUMENT_ID."""
    app.emit(SharingService(app.store).permission_for(app.actor(), document_id))
