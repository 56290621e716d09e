"""Tests for operation-specific Rich renderers."""

from sharegraph.output.renderers import render_quiet, render_result
from sharegraph.services.result import ServiceError, ServiceResult

# ── Helpers ───────────────────────────────────────────────────────────


def _ok(op: str, **data: object) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data=dict(data))


def _err(op: str, code: str, message: str, **detail: object) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=code, message=message, detail=dict(detail)),
    )


_ANN = {"id": "usr_ann", "email": "ann@example.com", "display_name": "Ann"}
_BOB = {"id": "usr_bob", "email": "bob@example.com", "display_name": None}


# ── Error rendering ──────────────────────────────────────────────────


class TestErrorRenderer:
    def test_basic_error(self) -> None:
        output = render_result(_err("accept", "FORBIDDEN", "Only the invitee can accept"))
        assert "ERROR" in output
        assert "accept" in output
        assert "Only the invitee can accept" in output
        assert "code: FORBIDDEN" in output

    def test_verbose_shows_detail(self) -> None:
        result = _err("send_request", "NOT_FOUND", "No such user", identifier="zed@x")
        output = render_result(result, verbose=True)
        assert "detail" in output
        assert "identifier" in output
        assert "zed@x" in output

    def test_detail_hidden_by_default(self) -> None:
        result = _err("send_request", "NOT_FOUND", "No such user", identifier="zed@x")
        assert "identifier" not in render_result(result)

    def test_no_error_object(self) -> None:
        output = render_result(ServiceResult(ok=False, op="grant"))
        assert "Unknown error" in output


# ── Mutation renderers ───────────────────────────────────────────────


class TestConnectionRenderer:
    def test_request(self) -> None:
        result = _ok(
            "send_request",
            connection={
                "id": "con_000000000001",
                "owner_id": "usr_ann",
                "peer_id": "usr_bob",
                "relationship_kind": "sibling",
                "status": "pending",
                "created_at": "2026-01-01T00:00:00+00:00",
            },
            created=True,
            implicit_accept=False,
        )
        output = render_result(result)
        assert output.startswith("OK")
        assert "con_000000000001" in output
        assert "sibling" in output
        assert "pending" in output
        assert "created_at" not in output
        assert "Accepted their pending request" not in output

    def test_implicit_accept_note(self) -> None:
        result = _ok(
            "send_request",
            connection={"id": "con_000000000002", "status": "accepted"},
            created=False,
            implicit_accept=True,
        )
        assert "Accepted their pending request to you" in render_result(result)

    def test_verbose_timestamps(self) -> None:
        result = _ok(
            "accept",
            connection={
                "id": "con_000000000001",
                "status": "accepted",
                "created_at": "2026-01-01T00:00:00+00:00",
                "accepted_at": "2026-01-02T00:00:00+00:00",
            },
        )
        output = render_result(result, verbose=True)
        assert "accepted_at" in output
        assert "2026-01-02" in output


class TestMutationRenderer:
    def test_remove(self) -> None:
        result = _ok(
            "remove",
            owner_id="usr_ann",
            peer_id="usr_bob",
            rows_removed=2,
            shares_revoked=1,
        )
        output = render_result(result)
        assert "OK" in output
        assert "remove" in output
        assert "rows_removed: 2" in output
        assert "shares_revoked: 1" in output

    def test_revoke(self) -> None:
        result = _ok(
            "revoke", id="shr_000000000001", document_id="doc_1", recipient_id="usr_bob"
        )
        output = render_result(result)
        assert "shr_000000000001" in output
        assert "recipient_id: usr_bob" in output


class TestHouseholdRenderer:
    def test_create(self) -> None:
        result = _ok(
            "create_household",
            household={
                "id": "hh_000000000001",
                "name": "Home",
                "members": [
                    {"user_id": "usr_ann", "role": "admin"},
                    {"user_id": "usr_bob", "role": "member"},
                ],
            },
            failed=[],
        )
        output = render_result(result)
        assert "hh_000000000001" in output
        assert "Home" in output
        assert "members: 2" in output
        assert "usr_bob (member)" not in output
        assert "usr_bob (member)" in render_result(result, verbose=True)

    def test_partial_block(self) -> None:
        result = ServiceResult(
            ok=True,
            op="create_household",
            data={"household": {"id": "hh_1", "name": "Home", "members": []}, "failed": ["x@y"]},
            error=ServiceError(
                code="PARTIAL_FAILURE", message="Invited 1 of 2", detail={"failed": ["x@y"]}
            ),
        )
        output = render_result(result)
        assert output.startswith("OK")
        assert "PARTIAL" in output
        assert "Invited 1 of 2" in output
        assert "failed x@y" in output


class TestShareRenderers:
    def test_grant(self) -> None:
        result = _ok(
            "grant",
            share={
                "id": "shr_000000000001",
                "document_id": "doc_1",
                "recipient_id": "usr_bob",
                "permission": "edit",
                "message": "for the trip",
            },
            created=False,
        )
        output = render_result(result)
        assert "permission: edit" in output
        assert "created: False" in output
        assert "for the trip" not in output
        assert "for the trip" in render_result(result, verbose=True)

    def test_grant_many(self) -> None:
        result = _ok(
            "grant_many",
            document_id="doc_1",
            count=2,
            created=1,
            items=[
                {"recipient_id": "usr_bob", "permission": "view"},
                {"recipient_id": "usr_cy", "permission": "view"},
            ],
            failed=[],
        )
        output = render_result(result, verbose=True)
        assert "count: 2" in output
        assert "usr_cy (view)" in output

    def test_permission_none(self) -> None:
        result = _ok("permission", document_id="doc_1", user_id="usr_cy", permission=None)
        assert "permission: none" in render_result(result)


# ── Query renderers ──────────────────────────────────────────────────


class TestQueryRenderers:
    def test_member_details(self) -> None:
        result = _ok(
            "member_details",
            connection={
                "id": "con_1",
                "owner_id": "usr_ann",
                "peer_id": "usr_bob",
                "relationship_kind": "sibling",
                "status": "accepted",
                "peer": {"id": "usr_bob", "email": "bob@example.com", "display_name": "Bob"},
            },
            shared_documents=[
                {
                    "id": "shr_1",
                    "document_id": "doc_1",
                    "permission": "view",
                    "shared_at": "2026-03-01T00:00:00+00:00",
                    "direction": "received",
                    "document": {"id": "doc_1", "name": "Lease"},
                }
            ],
            activity=[
                {"kind": "document_shared", "at": "2026-03-01", "description": 'Shared "Lease"'},
                {"kind": "connection_accepted", "at": "2026-02-01", "description": "Connected"},
            ],
        )
        output = render_result(result)
        assert "peer: Bob" in output
        assert "Lease" in output
        assert "received" in output
        assert "1 shared documents" in output
        assert "Recent activity" in output
        assert "Connected" in output

    def test_connections_table(self) -> None:
        result = _ok(
            "connections",
            count=1,
            items=[
                {
                    "id": "con_000000000001",
                    "peer_id": "usr_bob",
                    "peer": _BOB,
                    "relationship_kind": "friend",
                    "shared_documents_count": 3,
                    "accepted_at": "2026-01-02T00:00:00+00:00",
                }
            ],
        )
        output = render_result(result)
        assert "Connected to" in output
        assert "bob@example.com" in output
        assert "1 connections" in output
        assert "Since" not in output
        assert "Since" in render_result(result, verbose=True)

    def test_pending_incoming_uses_requester(self) -> None:
        result = _ok(
            "pending_incoming",
            count=1,
            items=[
                {
                    "id": "con_000000000001",
                    "owner_id": "usr_ann",
                    "peer_id": "usr_bob",
                    "requester": _ANN,
                    "relationship_kind": "parent",
                    "created_at": "2026-01-01T00:00:00+00:00",
                }
            ],
        )
        output = render_result(result)
        assert "From" in output
        assert "Ann" in output
        assert "1 pending requests" in output

    def test_pending_outgoing_falls_back_to_id(self) -> None:
        result = _ok(
            "pending_outgoing",
            count=1,
            items=[
                {
                    "id": "con_000000000001",
                    "owner_id": "usr_ann",
                    "peer_id": "usr_ghost",
                    "invitee": None,
                    "relationship_kind": "friend",
                    "created_at": "2026-01-01T00:00:00+00:00",
                }
            ],
        )
        output = render_result(result)
        assert "To" in output
        assert "usr_ghost" in output

    def test_no_households(self) -> None:
        assert render_result(_ok("list_households", count=0, items=[])) == "No households."

    def test_households(self) -> None:
        result = _ok(
            "list_households",
            count=1,
            items=[
                {
                    "id": "hh_000000000001",
                    "name": "Home",
                    "members": [
                        {
                            "user_id": "usr_ann",
                            "user": _ANN,
                            "role": "admin",
                            "joined_at": "2026-01-01T00:00:00+00:00",
                        }
                    ],
                }
            ],
        )
        output = render_result(result)
        assert "Home" in output
        assert "admin" in output
        assert "1 households" in output

    def test_shared_with_me(self) -> None:
        result = _ok(
            "shared_with_me",
            count=1,
            items=[
                {
                    "id": "shr_000000000001",
                    "document_id": "doc_1",
                    "document": {"id": "doc_1", "name": "Passport"},
                    "owner_id": "usr_ann",
                    "owner": _ANN,
                    "recipient": None,
                    "recipient_id": "usr_bob",
                    "permission": "view",
                    "shared_at": "2026-01-01T00:00:00+00:00",
                    "message": None,
                }
            ],
        )
        output = render_result(result)
        assert "Passport" in output
        assert "From" in output
        assert "Ann" in output
        assert "1 shared documents" in output


# ── Check / upgrade ──────────────────────────────────────────────────


class TestCheckRenderer:
    def test_clean(self) -> None:
        output = render_result(_ok("check", issues=[], count=0))
        assert "No issues found" in output

    def test_grouped_issues(self) -> None:
        result = _ok(
            "check",
            count=2,
            issues=[
                {
                    "category": "connections",
                    "severity": "error",
                    "id": "con_000000000001",
                    "message": "Accepted connection has no mirror row",
                    "fix_action": "delete_connection",
                },
                {
                    "category": "households",
                    "severity": "warning",
                    "id": "hh_000000000001",
                    "message": "Household has no admin",
                    "fix_action": "promote_admin",
                },
            ],
        )
        output = render_result(result)
        assert "connections" in output
        assert "households" in output
        assert "[con_000000000001]" in output
        assert "1 errors, 1 warnings" in output
        assert "fix: promote_admin" not in output
        assert "fix: promote_admin" in render_result(result, verbose=True)

    def test_fix(self) -> None:
        result = _ok(
            "fix",
            fixes=["Deleted connection con_1"],
            count=1,
            backup="/tmp/b.db",
        )
        output = render_result(result, verbose=True)
        assert "fixes_applied: 1" in output
        assert "backup: /tmp/b.db" in output
        assert "Deleted connection con_1" in output


class TestUpgradeRenderer:
    def test_pending(self) -> None:
        result = _ok(
            "upgrade",
            pending_count=1,
            pending=[{"revision": "001_baseline", "description": "baseline"}],
            current=None,
            head="001_baseline",
        )
        output = render_result(result)
        assert "pending_count: 1" in output
        assert "001_baseline  baseline" in output
        assert "current" not in output


# ── Generic / meta / quiet ───────────────────────────────────────────


class TestGenericAndMeta:
    def test_unknown_op(self) -> None:
        output = render_result(_ok("something_new", answer=42))
        assert "something_new" in output
        assert "answer: 42" in output

    def test_meta_only_when_verbose(self) -> None:
        result = ServiceResult(
            ok=True,
            op="connections",
            data={"items": [], "count": 0},
            meta={
                "timing": {
                    "op": "GraphReadModel.connections",
                    "total_ms": 1.5,
                    "stages": {"share_counts": 0.25},
                }
            },
        )
        assert "meta" not in render_result(result)
        verbose = render_result(result, verbose=True)
        assert "GraphReadModel.connections" in verbose
        assert "1.50ms" in verbose
        assert "0.25ms  share_counts" in verbose


class TestQuiet:
    def test_ok(self) -> None:
        assert render_quiet(_ok("accept", connection={})) == "OK: accept"

    def test_list_ids(self) -> None:
        result = _ok("connections", items=[{"id": "con_1"}, {"id": "con_2"}], count=2)
        assert render_quiet(result) == "con_1\ncon_2"

    def test_error(self) -> None:
        result = _err("revoke", "NOT_FOUND", "No such grant")
        assert render_quiet(result) == "ERROR: revoke — No such grant"
