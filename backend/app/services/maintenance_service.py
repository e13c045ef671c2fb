# Overview: Service-layer operations for scheduled maintenance jobs (daily ads rollover, cleanup).

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import ActivityEvent, TeamInvitation
from app.time_utils import utcnow
from . import session_service, subscription_service


def reset_daily_ads(today=None) -> int:
    """Daily job: zero ad counters from previous days. Safe to run more than once."""
    return subscription_service.reset_daily_ad_counters(today)


def expire_invitations() -> int:
    """Mark past-due pending invitations expired so they stop holding team slots."""
    expired = db.session.query(TeamInvitation).filter(
        TeamInvitation.status == "pending",
        TeamInvitation.expires_at <= utcnow(),
    ).update({"status": "expired"}, synchronize_session=False)
    db.session.commit()
    return expired


def cleanup_activity(*, retention_days: int = 365) -> int:
    """Delete activity events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(ActivityEvent).filter(
        ActivityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_sessions() -> int:
    return session_service.cleanup_expired_sessions()
