# app/core/errors.py
"""
Domain errors raised by the commission / payout core.

Routers never translate these by hand; app.main registers a single handler
that renders {"detail": {"code", "message", ...context}} with `status_code`.
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str, *, code: str | None = None, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        for k, v in self.context.items():
            detail[k] = v if isinstance(v, (int, bool, type(None))) else str(v)
        return detail


class ValidationError(DomainError):
    """Malformed or out-of-range input. Never retried."""

    status_code = 422
    code = "validation_error"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class StaleStateError(DomainError):
    """The request is not in the source state the action needs; refresh and retry."""

    status_code = 409
    code = "stale_state"


class LedgerInvariantError(DomainError):
    """A balance would go negative or a fee split is malformed. Aborts the transaction."""

    status_code = 409
    code = "ledger_invariant"


class AttributionConflictError(DomainError):
    """An attribution already exists for the order id (handled as an idempotent success)."""

    status_code = 409
    code = "attribution_conflict"
