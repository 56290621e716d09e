"""Command group: seed the local user and document directory."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sharegraph.commands._base import ShareGraphGroup
from sharegraph.services.directory import DirectoryService

if TYPE_CHECKING:
    from sharegraph.commands._context import AppContext

_DIRECTORY_EXAMPLES = """\
  sharegraph directory add-user ann@example.com --name "Ann Smith"
  sharegraph directory add-document ann@example.com "Passport" --type passport
  sharegraph directory transfer doc_passport bob@example.com"""


@click.group(cls=ShareGraphGroup, examples=_DIRECTORY_EXAMPLES)
@click.pass_obj
def directory(app: AppContext) -> None:
    """Manage the bundled user and document directory."""


@directory.command(
    "add-user",
    examples="""\
  sharegraph directory add-user ann@example.com
  sharegraph directory add-user ann@example.com --name "Ann Smith" --id usr_ann""",
)
@click.argument("email")
@click.option("--name", "display_name", default=None, help="Display name.")
@click.option("--id", "user_id", default=None, help="Explicit user ID.")
@click.pass_obj
def add_user(app: AppContext, email: str, display_name: str | None, user_id: str | None) -> None:
    """Register a user by EMAIL."""
    app.emit(
        DirectoryService(app.store).add_user(email, display_name=display_name, user_id=user_id)
    )


@directory.command(
    "add-document",
    examples="""\
  sharegraph directory add-document ann@example.com "Passport"
  sharegraph directory add-document ann@example.com "Lease" --expires 2027-05-01""",
)
@click.argument("owner")
@click.argument("name")
@click.option("--type", "document_type", default=None, help="Document type.")
@click.option("--category", default=None, help="Category.")
@click.option("--expires", "expires_on", default=None, help="Expiry date (YYYY-MM-DD).")
@click.option("--id", "document_id", default=None, help="Explicit document ID.")
@click.pass_obj
def add_document(
    app: AppContext,
    owner: str,
    name: str,
    document_type: str | None,
    category: str | None,
    expires_on: str | None,
    document_id: str | None,
) -> None:
    """Register a document NAME owned by OWNER (email or user ID)."""
    owner_id = app.resolve_user(owner) or owner
    app.emit(
        DirectoryService(app.store).add_document(
            owner_id,
            name,
            document_type=document_type,
            category=category,
            expires_on=expires_on,
            document_id=document_id,
        )
    )


@directory.command(
    examples="""\
  sharegraph directory transfer doc_passport bob@example.com"""
)
@click.argument("document_id")
@click.argument("new_owner")
@click.pass_obj
def transfer(app: AppContext, document_id: str, new_owner: str) -> None:
    """Hand DOCUMENT_ID to NEW_OWNER. Existing grants are kept."""
    owner_id = app.resolve_user(new_owner) or new_owner
    app.emit(DirectoryService(app.store).transfer_document(document_id, owner_id))
