"""Pluggy hook specifications for sharegraph events.

``deliver_notification`` carries every NotificationEvent to whatever
delivery plugins are installed. The ``post_*`` hooks are lifecycle events
fired after the corresponding write transaction commits.
"""

from __future__ import annotations

from typing import Any

import pluggy

PROJECT_NAME = "sharegraph"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class ShareGraphHookSpec:
    """Hook specifications for the sharegraph plugin system."""

    @hookspec
    def deliver_notification(
        self,
        target_user_id: str,
        kind: str,
        payload: dict[str, Any],
    ) -> None:
        """Deliver a notification event to its target user."""

    @hookspec
    def post_connection_accepted(
        self,
        connection_id: str,
        owner_id: str,
        peer_id: str,
        relationship_kind: str,
    ) -> None:
        """Called after a connection request is accepted."""

    @hookspec
    def post_connection_removed(
        self,
        owner_id: str,
        peer_id: str,
        shares_revoked: int,
    ) -> None:
        """Called after a mutual connection is removed."""

    @hookspec
    def post_household_created(
        self,
        household_id: str,
        name: str,
        created_by: str,
        member_ids: list[str],
    ) -> None:
        """Called after a household is created."""

    @hookspec
    def post_share_granted(
        self,
        share_id: str,
        document_id: str,
        owner_id: str,
        recipient_id: str,
        permission: str,
        created: bool,
    ) -> None:
        """Called after a grant is created or updated."""

    @hookspec
    def post_share_revoked(
        self,
        share_id: str,
        document_id: str,
        owner_id: str,
        recipient_id: str,
    ) -> None:
        """Called after a grant is revoked."""

    @hookspec
    def post_check(
        self,
        issues_found: int,
        issues_fixed: int,
    ) -> None:
        """Called after an integrity check."""
