# app/core/moderation.py
"""
Moderated actions: the pending -> approved | rejected review lifecycle shared
by withdrawal requests and Head-of-Ops requests.

A workflow is a table of named transitions over a model with a `status`
column. Applying one:
  1. validates required values (e.g. a rejection reason)
  2. loads the row FOR UPDATE (NotFoundError if missing)
  3. compare-and-swaps `status` from the transition's source state
     (StaleStateError if it moved; nothing is written)
  4. runs the transition's effect callback in the same transaction
  5. commits, or rolls everything back on any error
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.errors import NotFoundError, StaleStateError, ValidationError

Effect = Callable[[AsyncSession, Any, datetime], Awaitable[None]]


@dataclass(frozen=True)
class Transition:
    action: str
    source: str
    target: str
    # values that must be present and non-blank
    required: tuple[str, ...] = ()
    # values copied onto the row when given
    record: tuple[str, ...] = ()
    # timestamp column set to `now`
    stamp: Optional[str] = "reviewed_at"
    # column receiving the acting user's id
    actor_field: Optional[str] = "reviewed_by"
    effect: Optional[Effect] = None


def _clean(values: Optional[dict[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in (values or {}).items():
        if isinstance(v, str):
            v = v.strip()
            if not v:
                continue
        if v is not None:
            out[k] = v
    return out


class ModeratedAction:
    def __init__(self, model, transitions: Iterable[Transition], *, label: str) -> None:
        self.model = model
        self.label = label
        self._transitions = {t.action: t for t in transitions}

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(self._transitions)

    def transition(self, action: str) -> Transition:
        t = self._transitions.get(action)
        if t is None:
            allowed = ", ".join(sorted(self._transitions))
            raise ValidationError(
                f"Unknown {self.label} action {action!r}. Allowed: [{allowed}]",
                code="unknown_action",
            )
        return t

    def is_terminal(self, status: str) -> bool:
        return not any(t.source == status for t in self._transitions.values())

    async def apply(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
        action: str,
        *,
        actor_id: uuid.UUID,
        values: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ):
        t = self.transition(action)
        values = _clean(values)
        for name in t.required:
            if name not in values:
                raise ValidationError(f"{name} is required to {action}.", code=f"{name}_required")

        now = now or utcnow()
        model = self.model
        try:
            row = (
                await db.execute(
                    select(model)
                    .where(model.id == request_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if row is None:
                raise NotFoundError(f"{self.label} not found", request_id=request_id)
            if row.status != t.source:
                raise StaleStateError(
                    f"Cannot {action} a {self.label} that is {row.status}.",
                    request_id=request_id,
                    status=row.status,
                    expected=t.source,
                )

            changes: dict[str, Any] = {"status": t.target}
            changes.update({k: values[k] for k in t.record if k in values})
            if t.stamp:
                changes[t.stamp] = now
            if t.actor_field:
                changes[t.actor_field] = actor_id

            res = await db.execute(
                update(model)
                .where(model.id == request_id, model.status == t.source)
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise StaleStateError(
                    f"{self.label} changed concurrently; refresh and retry.",
                    request_id=request_id,
                    expected=t.source,
                )

            if t.effect is not None:
                await t.effect(db, row, now)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(row)
        logger.info(
            f"{self.label} {action}",
            extra={"request_id": str(request_id), "actor_id": str(actor_id), "status": row.status},
        )
        return row
