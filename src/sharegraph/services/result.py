"""ServiceResult and ServiceError: what every service operation returns.

INVARIANT: All service-layer methods return ServiceResult.
The CLI and any future transport adapter consume this type; no
operation raises an untyped error to its caller.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(StrEnum):
    """Tagged failure taxonomy shared by every operation."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    CONFLICT = "CONFLICT"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    UNAVAILABLE = "UNAVAILABLE"


RETRYABLE_CODES = frozenset({ErrorCode.UNAVAILABLE})


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry (with backoff)."""
        return self.code in RETRYABLE_CODES


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded. A ``PARTIAL_FAILURE`` is
            ``ok=True`` with ``error`` describing what was left out.
        op: Name of the operation (e.g. ``"send_request"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False, or the partial-failure
            detail when ``ok`` is True.
        meta: Optional metadata (timing, counts, etc.).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @property
    def partial(self) -> bool:
        """True for a successful result that still reports a partial failure."""
        return (
            self.ok and self.error is not None and self.error.code == ErrorCode.PARTIAL_FAILURE
        )
