"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console backed by a StringIO buffer;
:func:`render_result` returns the buffer contents.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

from io import StringIO
from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from sharegraph.output.console import create_console, value_style

if TYPE_CHECKING:
    from rich.console import Console

    from sharegraph.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    buffer = StringIO()
    console = create_console(buffer)

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
        if result.partial:
            _render_partial(result, console)
        if verbose:
            _render_meta(console, result)
    else:
        _render_error(result, console, verbose=verbose)

    return buffer.getvalue().rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"

    # For list results, return IDs only
    items = result.data.get("items")
    if items and isinstance(items, list):
        return "\n".join(str(item["id"]) for item in items if isinstance(item, dict))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK/ERROR status line."""
    label = Text("OK", style="sg.ok")
    op = Text(f"  {result.op}", style="sg.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="sg.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="sg.id")
    elif key == "name":
        v = Text(str(value), style="sg.name")
    elif key == "status":
        v = Text(str(value), style=value_style("status", str(value)))
    elif key == "permission":
        v = Text(str(value), style=value_style("perm", str(value)))
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _person(summary: dict[str, Any] | None, fallback: str) -> str:
    """Display name, then email, then raw ID."""
    if not summary:
        return fallback
    return str(summary.get("display_name") or summary.get("email") or fallback)


def _render_partial(result: ServiceResult, console: Console) -> None:
    err = result.error
    if err is None:
        return
    console.print(Text("PARTIAL", style="sg.warning"), f" {err.message}")
    for failed in err.detail.get("failed", []):
        console.print(f"  [sg.error]failed[/sg.error] {escape(str(failed))}")


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, expanding stage timings (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "timing":
            _render_timing(console, v)
        else:
            console.print(f"    {k}: {escape(str(v))}")


def _render_timing(console: Console, timing: dict[str, Any]) -> None:
    console.print(f"    {_ms(timing.get('total_ms', 0.0))}  {escape(str(timing.get('op', '?')))}")
    for name, ms in timing.get("stages", {}).items():
        console.print(f"      {_ms(ms)}  {escape(name)}")


def _ms(value: float) -> str:
    if value > 1000:
        style = "bold red"
    elif value > 100:
        style = "yellow"
    else:
        style = "dim"
    return f"[{style}]{value:>8.2f}ms[/{style}]"


def _table(*columns: str) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    for i, col in enumerate(columns):
        if i == 0:
            table.add_column(col, style="sg.id", no_wrap=True)
        else:
            table.add_column(col)
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="sg.error")
    op = Text(f"  {result.op}", style="sg.op")
    sep = Text(" — ")
    console.print(label, op, sep, msg)
    if err is not None:
        console.print(Text(f"  code: {err.code}", style="dim"))
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Mutation renderers ────────────────────────────────────────────────


def _render_mutation(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render flat mutation results (decline, cancel, revoke, directory)."""
    _status_line(console, result)
    for key in (
        "id",
        "email",
        "name",
        "owner_id",
        "peer_id",
        "document_id",
        "recipient_id",
        "rows_removed",
        "shares_revoked",
    ):
        if key in result.data:
            _field(console, key, result.data[key])


def _render_connection(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render send_request / accept results."""
    _status_line(console, result)
    conn = result.data.get("connection", {})
    for key in ("id", "owner_id", "peer_id", "relationship_kind", "status"):
        if key in conn:
            _field(console, key, conn[key])
    if result.data.get("implicit_accept"):
        console.print("  [sg.ok]Accepted their pending request to you[/sg.ok]")
    if verbose:
        for key in ("created_at", "accepted_at"):
            if conn.get(key):
                _field(console, key, conn[key])


def _render_household(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render create_household with its member list."""
    _status_line(console, result)
    hh = result.data.get("household", {})
    _field(console, "id", hh.get("id", ""))
    _field(console, "name", hh.get("name", ""))
    members = hh.get("members", [])
    _field(console, "members", len(members))
    if verbose:
        for m in members:
            console.print(f"    {m['user_id']} ({m['role']})")


def _render_share(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a single grant."""
    _status_line(console, result)
    share = result.data.get("share", {})
    for key in ("id", "document_id", "recipient_id", "permission"):
        if key in share:
            _field(console, key, share[key])
    _field(console, "created", result.data.get("created", False))
    if verbose and share.get("message"):
        _field(console, "message", share["message"])


def _render_share_batch(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render grant_many / grant_household results."""
    _status_line(console, result)
    d = result.data
    for key in ("document_id", "household_id", "count", "created"):
        if key in d:
            _field(console, key, d[key])
    if verbose:
        for item in d.get("items", []):
            console.print(f"    {item['recipient_id']} ({item['permission']})")


def _render_permission(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "document_id", result.data.get("document_id", ""))
    _field(console, "permission", result.data.get("permission") or "none")


# ── Query renderers ───────────────────────────────────────────────────


def _render_connections(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render accepted connections as a table."""
    items = result.data.get("items", [])
    table = _table("ID", "Connected to", "Relationship", "Shared docs")
    if verbose:
        table.add_column("Since", style="dim")
    for item in items:
        row = [
            str(item["id"]),
            _person(item.get("peer"), item["peer_id"]),
            str(item["relationship_kind"]),
            str(item.get("shared_documents_count", 0)),
        ]
        if verbose:
            row.append(str(item.get("accepted_at") or ""))
        table.add_row(*row)
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} connections")


def _render_member(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render one connection with the documents exchanged and recent activity."""
    _status_line(console, result)
    conn = result.data.get("connection", {})
    peer = conn.get("peer") or {}
    _field(console, "id", conn.get("id", ""))
    _field(console, "peer", _person(peer, str(peer.get("id", ""))))
    for key in ("relationship_kind", "status"):
        _field(console, key, conn.get(key, ""))

    shared = result.data.get("shared_documents", [])
    if shared:
        console.print()
        table = _table("ID", "Document", "Direction", "Permission", "Shared")
        for item in shared:
            doc = item.get("document") or {}
            perm = str(item["permission"])
            table.add_row(
                str(item["id"]),
                str(doc.get("name") or item["document_id"]),
                str(item.get("direction", "")),
                Text(perm, style=value_style("perm", perm)),
                Text(str(item["shared_at"]), style="dim"),
            )
        console.print(table)
    console.print(f"\n{len(shared)} shared documents")

    activity = result.data.get("activity", [])
    if activity:
        console.print(Text("\nRecent activity", style="sg.key"))
        for event in activity if verbose else activity[:5]:
            console.print(f"  [dim]{event['at']}[/dim]  {escape(str(event['description']))}")


def _render_pending(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render pending incoming or outgoing requests."""
    items = result.data.get("items", [])
    incoming = result.op == "pending_incoming"
    table = _table("ID", "From" if incoming else "To", "Relationship", "Requested")
    for item in items:
        other = item.get("requester") if incoming else item.get("invitee")
        fallback = item["owner_id"] if incoming else item["peer_id"]
        table.add_row(
            str(item["id"]),
            _person(other, fallback),
            str(item["relationship_kind"]),
            Text(str(item["created_at"]), style="dim"),
        )
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} pending requests")


def _render_households(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render each household with a member table."""
    items = result.data.get("items", [])
    if not items:
        console.print("No households.")
        return
    for hh in items:
        console.print(f"\n[sg.name]{hh['name']}[/sg.name]  [sg.id]{hh['id']}[/sg.id]")
        table = _table("User", "Name", "Role", "Joined")
        for m in hh.get("members", []):
            role = str(m["role"])
            table.add_row(
                str(m["user_id"]),
                _person(m.get("user"), ""),
                Text(role, style=value_style("role", role)),
                Text(str(m["joined_at"]), style="dim"),
            )
        console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} households")


def _render_shared(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render shared_with_me / shared_by_me tables."""
    items = result.data.get("items", [])
    with_me = result.op == "shared_with_me"
    table = _table("ID", "Document", "From" if with_me else "To", "Permission", "Shared")
    if verbose:
        table.add_column("Message", style="dim")
    for item in items:
        doc = item.get("document") or {}
        person = item.get("owner") if with_me else item.get("recipient")
        fallback = item["owner_id"] if with_me else item["recipient_id"]
        perm = str(item["permission"])
        row: list[Any] = [
            str(item["id"]),
            str(doc.get("name") or item["document_id"]),
            _person(person, fallback),
            Text(perm, style=value_style("perm", perm)),
            Text(str(item["shared_at"]), style="dim"),
        ]
        if verbose:
            row.append(str(item.get("message") or ""))
        table.add_row(*row)
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} shared documents")


def _render_overview(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


# ── Check / upgrade renderers ─────────────────────────────────────────


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    issues = result.data.get("issues", [])
    count = result.data.get("count", len(issues))

    if count == 0:
        console.print("[sg.ok]OK[/sg.ok]  No issues found.")
        return

    severity_styles = {"error": "sg.error", "warning": "sg.warning"}

    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        cat = str(issue.get("category", "unknown"))
        by_category.setdefault(cat, []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print(f"\n[bold]{cat}[/bold]")
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            style = severity_styles.get(sev, "")
            prefix = f"[{style}]{sev}[/{style}]" if style else sev
            row_id = issue.get("id")
            rid = escape(f" [{row_id}]") if row_id else ""
            console.print(f"  {prefix}{rid}: {escape(str(issue.get('message', '')))}")
            if verbose and issue.get("fix_action"):
                console.print(f"    fix: {issue['fix_action']}")

    errors = sum(1 for i in issues if i.get("severity") == "error")
    console.print(f"\n{errors} errors, {count - errors} warnings")


def _render_fix(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render fix results."""
    _status_line(console, result)
    fixes = result.data.get("fixes", [])
    _field(console, "fixes_applied", result.data.get("count", len(fixes)))
    if result.data.get("backup"):
        _field(console, "backup", result.data["backup"])
    if verbose:
        for fix in fixes:
            console.print(f"  - {fix}")


def _render_upgrade(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    for key in ("current", "head", "pending_count", "applied_count", "backup_path", "message"):
        if key in d and d[key] is not None:
            _field(console, key, d[key])
    for rev in d.get("pending", []):
        console.print(f"    {rev['revision']}  {rev['description']}")


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render any result as indented key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


_OP_RENDERERS: dict[str, Any] = {
    # Connections
    "send_request": _render_connection,
    "accept": _render_connection,
    "decline": _render_mutation,
    "cancel": _render_mutation,
    "remove": _render_mutation,
    "connections": _render_connections,
    "member_details": _render_member,
    "pending_incoming": _render_pending,
    "pending_outgoing": _render_pending,
    "overview": _render_overview,
    # Households
    "create_household": _render_household,
    "list_households": _render_households,
    # Sharing
    "grant": _render_share,
    "grant_many": _render_share_batch,
    "grant_household": _render_share_batch,
    "revoke": _render_mutation,
    "shared_with_me": _render_shared,
    "shared_by_me": _render_shared,
    "permission": _render_permission,
    # Directory
    "add_user": _render_mutation,
    "add_document": _render_mutation,
    "transfer_document": _render_mutation,
    # Maintenance
    "check": _render_check,
    "fix": _render_fix,
    "upgrade": _render_upgrade,
}
