"""HouseholdService — household creation and membership listing.

Creation writes the household, the creator's admin row and every resolved
member row in a single transaction, so no household is ever visible
without an admin. Identifiers that do not resolve are reported back as a
partial failure alongside the created household.
"""

from __future__ import annotations

import logging

from sqlalchemy import insert, select

from sharegraph.domain.ids import generate_id, normalize_identifier
from sharegraph.domain.lifecycle import HouseholdRole
from sharegraph.domain.models import Household, HouseholdMember
from sharegraph.infrastructure.database.schema import household_members, households
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.result import ErrorCode, ServiceError, ServiceResult
from sharegraph.services.timing import stage, traced

logger = logging.getLogger(__name__)


class HouseholdService(BaseService):
    """Owns ``households`` and ``household_members``."""

    @traced
    @guarded("create_household")
    def create(
        self,
        creator_id: str,
        name: str,
        member_identifiers: list[str] | None = None,
    ) -> ServiceResult:
        """Create a household with *creator_id* as admin.

        Unresolvable identifiers do not abort creation. They come back in
        ``data["failed"]`` and in a ``PARTIAL_FAILURE`` error on an
        otherwise successful result.
        """
        op = "create_household"
        warnings: list[str] = []
        cfg = self._store.settings.households

        clean_name = name.strip()
        if not clean_name:
            return self._fail(op, ErrorCode.INVALID_ARGUMENT, "Household name is required")
        if len(clean_name) > cfg.max_name_length:
            return self._fail(
                op,
                ErrorCode.INVALID_ARGUMENT,
                f"Household name exceeds {cfg.max_name_length} characters",
                max_name_length=cfg.max_name_length,
            )

        # ── RESOLVE ──────────────────────────────────────────────
        member_ids: list[str] = []
        failed: list[str] = []
        seen: set[str] = set()
        with stage("resolve_members"):
            for raw in member_identifiers or []:
                key = normalize_identifier(raw)
                if not key:
                    continue
                if key in seen:
                    warnings.append(f"Duplicate invitee skipped: {raw}")
                    continue
                seen.add(key)

                user_id = self._store.identity.resolve(raw)
                if user_id is None:
                    failed.append(raw)
                elif user_id == creator_id:
                    warnings.append(f"Creator is already a member: {raw}")
                elif user_id in member_ids:
                    warnings.append(f"Duplicate invitee skipped: {raw}")
                else:
                    member_ids.append(user_id)

        if len(member_ids) + 1 > cfg.max_members:
            return self._fail(
                op,
                ErrorCode.INVALID_ARGUMENT,
                f"A household can have at most {cfg.max_members} members",
                max_members=cfg.max_members,
            )

        # ── WRITE ────────────────────────────────────────────────
        household_id = generate_id("household")
        with self._store.transaction() as txn:
            txn.conn.execute(
                insert(households).values(
                    id=household_id,
                    name=clean_name,
                    created_by=creator_id,
                    created_at=txn.now,
                )
            )
            txn.conn.execute(
                insert(household_members),
                [
                    {
                        "household_id": household_id,
                        "user_id": creator_id,
                        "role": HouseholdRole.ADMIN,
                        "joined_at": txn.now,
                    },
                    *(
                        {
                            "household_id": household_id,
                            "user_id": user_id,
                            "role": HouseholdRole.MEMBER,
                            "joined_at": txn.now,
                        }
                        for user_id in member_ids
                    ),
                ],
            )
            created_at = txn.now

        household = Household(
            id=household_id,
            name=clean_name,
            created_by=creator_id,
            created_at=created_at,
            members=[
                HouseholdMember(
                    household_id=household_id,
                    user_id=creator_id,
                    role=HouseholdRole.ADMIN,
                    joined_at=created_at,
                ),
                *(
                    HouseholdMember(
                        household_id=household_id,
                        user_id=user_id,
                        role=HouseholdRole.MEMBER,
                        joined_at=created_at,
                    )
                    for user_id in member_ids
                ),
            ],
        )
        logger.info(
            "Created household %s with %d members (%d unresolved)",
            household_id,
            len(household.members),
            len(failed),
        )

        self._dispatch_event(
            "post_household_created",
            {
                "household_id": household_id,
                "name": clean_name,
                "created_by": creator_id,
                "member_ids": [creator_id, *member_ids],
            },
            warnings,
        )

        error = None
        if failed:
            error = ServiceError(
                code=ErrorCode.PARTIAL_FAILURE,
                message=f"Invited {len(member_ids)} of {len(member_ids) + len(failed)}",
                detail={"failed": failed},
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"household": household.model_dump(mode="json"), "failed": failed},
            warnings=warnings,
            error=error,
        )

    @traced
    @guarded("list_households")
    def list_for_user(self, user_id: str) -> ServiceResult:
        """Households *user_id* belongs to, each with its full member list."""
        op = "list_households"

        with self._store.engine.connect() as conn:
            mine = (
                select(household_members.c.household_id)
                .where(household_members.c.user_id == user_id)
                .scalar_subquery()
            )
            hh_rows = conn.execute(
                select(households)
                .where(households.c.id.in_(mine))
                .order_by(households.c.created_at, households.c.id)
            ).fetchall()
            ids = [r.id for r in hh_rows]
            member_rows = (
                conn.execute(
                    select(household_members)
                    .where(household_members.c.household_id.in_(ids))
                    .order_by(household_members.c.joined_at, household_members.c.user_id)
                ).fetchall()
                if ids
                else []
            )

        summaries = self._store.identity.summaries(r.user_id for r in member_rows)
        by_household: dict[str, list[HouseholdMember]] = {hid: [] for hid in ids}
        for m in member_rows:
            by_household[m.household_id].append(
                HouseholdMember(
                    household_id=m.household_id,
                    user_id=m.user_id,
                    role=HouseholdRole(m.role),
                    joined_at=m.joined_at,
                    user=summaries.get(m.user_id),
                )
            )

        items = [
            Household(
                id=r.id,
                name=r.name,
                created_by=r.created_by,
                created_at=r.created_at,
                members=sorted(
                    by_household[r.id],
                    key=lambda m: (m.role != HouseholdRole.ADMIN, m.joined_at),
                ),
            ).model_dump(mode="json")
            for r in hh_rows
        ]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})
