"""ID generation and identifier normalization.

Entities owned by this core carry a type prefix followed by 12 hex chars
drawn from a random UUID. User and document IDs belong to external
systems and are treated as opaque strings.

INVARIANT: IDs are permanent. Once generated, an ID never changes.
"""

from __future__ import annotations

import uuid

TYPE_PREFIXES: dict[str, str] = {
    "connection": "con_",
    "household": "hh_",
    "share": "shr_",
}


def generate_id(kind: str) -> str:
    """Generate a new ID for *kind* (``connection``, ``household``, ``share``)."""
    prefix = TYPE_PREFIXES.get(kind)
    if prefix is None:
        msg = f"Unknown ID kind: {kind!r}. Expected one of {sorted(TYPE_PREFIXES)}"
        raise ValueError(msg)
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def normalize_identifier(raw: str) -> str:
    """Normalize a user-facing identifier (email or handle) for lookup."""
    return raw.strip().lower()
