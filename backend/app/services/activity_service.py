# Overview: Service-layer operations for the activity log; append-only domain event trail.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import ActivityEvent

"""
Activity log invariants

- Append-only audit log for cross-cutting domain events.
- No domain/business logic in the log itself.
- Events are written inside the same DB transaction as the domain event they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_activity(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    merchant_id: int | None = None,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> ActivityEvent:
    """
    Append an activity event to the current transaction.

    Does not commit: the caller's unit of work owns the transaction.
    """
    ev = ActivityEvent(
        merchant_id=merchant_id,
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_activity(
    *,
    merchant_id: int | None,
    event_category: str | None = None,
    limit: int = 50,
) -> list[dict]:
    query = db.session.query(ActivityEvent).filter(ActivityEvent.merchant_id == merchant_id)
    if event_category:
        query = query.filter(ActivityEvent.event_category == event_category)
    events = (
        query.order_by(ActivityEvent.occurred_at.desc(), ActivityEvent.id.desc())
        .limit(min(max(limit, 1), 200))
        .all()
    )
    return [e.to_dict() for e in events]
