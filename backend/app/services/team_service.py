# Overview: Service-layer operations for merchant team members and invitations.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..limits import RESOURCE_TEAM_MEMBERS
from ..models import TeamInvitation, User
from ..models.auth import ROLE_STAFF
from ..validation import ConflictError
from app.time_utils import utcnow
from .activity_service import append_activity
from .auth_service import normalize_email
from .concurrency import begin_write, run_with_retry
from .subscription_service import require_within_limit

INVITATION_TTL = timedelta(days=7)


def list_team(merchant_id: int) -> dict:
    members = (
        db.session.query(User)
        .filter(User.merchant_id == merchant_id, User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )
    invitations = (
        db.session.query(TeamInvitation)
        .filter(TeamInvitation.merchant_id == merchant_id, TeamInvitation.status == "pending")
        .order_by(TeamInvitation.id.asc())
        .all()
    )
    return {
        "members": [m.to_dict() for m in members],
        "invitations": [i.to_dict() for i in invitations],
    }


def invite_member(
    *,
    merchant_id: int,
    email: str,
    name: str | None = None,
    invited_by_user_id: int | None = None,
) -> dict:
    """
    Invite a staff member. Pending invitations count toward the team limit,
    so the limit is checked before the invitation row exists.

    Raises ConflictError if the email already has a user or a pending invite.
    """
    email = normalize_email(email)

    def _op():
        begin_write()
        if db.session.query(User.id).filter_by(email=email).first():
            raise ConflictError("A user with this email already exists")

        now = utcnow()
        existing = db.session.query(TeamInvitation).filter_by(merchant_id=merchant_id, email=email).first()
        if existing is not None and existing.status == "pending" and existing.expires_at > now:
            raise ConflictError("Invitation already pending")

        require_within_limit(merchant_id, RESOURCE_TEAM_MEMBERS)

        if existing is not None:
            # Re-invite after expiry reuses the row
            invitation = existing
            invitation.status = "pending"
            invitation.name = name or existing.name
            invitation.invited_by_user_id = invited_by_user_id
            invitation.expires_at = now + INVITATION_TTL
        else:
            invitation = TeamInvitation(
                merchant_id=merchant_id,
                email=email,
                name=(name or "").strip() or email,
                invited_by_user_id=invited_by_user_id,
                status="pending",
                expires_at=now + INVITATION_TTL,
            )
            db.session.add(invitation)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Invitation already pending")

        append_activity(
            merchant_id=merchant_id,
            event_type="team.invited",
            event_category="team",
            entity_type="team_invitation",
            entity_id=invitation.id,
            actor_user_id=invited_by_user_id,
            occurred_at=now,
            note=f"Invited {email}",
        )
        db.session.commit()
        return invitation.to_dict()

    return run_with_retry(_op)


def accept_invitation(*, invitation_id: int, password: str) -> User:
    """
    Turn a pending invitation into an active staff user.

    The slot was already counted while the invitation was pending, so no
    second limit check happens here.
    """
    from .auth_service import create_user

    invitation = db.session.get(TeamInvitation, invitation_id)
    if invitation is None or invitation.status != "pending":
        raise ConflictError("Invitation is not pending")
    if invitation.expires_at <= utcnow():
        invitation.status = "expired"
        db.session.commit()
        raise ConflictError("Invitation has expired")

    user = create_user(
        invitation.email, invitation.name, password,
        role=ROLE_STAFF, merchant_id=invitation.merchant_id, commit=False,
    )
    invitation.status = "accepted"
    append_activity(
        merchant_id=invitation.merchant_id,
        event_type="team.joined",
        event_category="team",
        entity_type="user",
        entity_id=user.id,
        actor_user_id=user.id,
        note=f"{user.email} joined",
    )
    db.session.commit()
    return user


def revoke_invitation(*, invitation_id: int, merchant_id: int) -> bool:
    invitation = (
        db.session.query(TeamInvitation)
        .filter_by(id=invitation_id, merchant_id=merchant_id, status="pending")
        .first()
    )
    if invitation is None:
        return False
    invitation.status = "expired"
    db.session.commit()
    return True
