# Overview: Service-layer operations for auth; password hashing, users and merchant signup.

"""
Authentication Service with Merchant Tenancy

WHY: Every action must be attributable. Uses bcrypt for password hashing
and validates password strength.

MULTI-TENANT: merchant and staff users belong to exactly one merchant.
Platform admins have no merchant. Emails are globally unique because
login is by email alone.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, mixed case, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Merchant
from ..models.auth import ROLE_ADMIN, ROLE_MERCHANT, ROLE_STAFF, USER_ROLES
from ..validation import ConflictError, ValidationError
from app.time_utils import utcnow
from .activity_service import append_activity


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash with cost factor 12."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("A valid email is required", field="email")
    return email


def create_user(
    email: str,
    name: str,
    password: str,
    *,
    role: str = ROLE_MERCHANT,
    merchant_id: int | None = None,
    commit: bool = True,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: bad email/role, or tenant rules broken
        ConflictError: email already registered
        PasswordValidationError: weak password
    """
    email = normalize_email(email)
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}", field="role")
    if role == ROLE_ADMIN and merchant_id is not None:
        raise ValidationError("Platform admins cannot belong to a merchant", field="merchant_id")
    if role in (ROLE_MERCHANT, ROLE_STAFF) and merchant_id is None:
        raise ValidationError("merchant_id is required", field="merchant_id")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(
        merchant_id=merchant_id,
        email=email,
        name=(name or "").strip() or email,
        role=role,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user for these credentials, else None.

    Users of inactive or suspended merchants cannot log in.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if user.merchant_id is not None:
        merchant = db.session.get(Merchant, user.merchant_id)
        if not merchant or not merchant.is_active or merchant.is_suspended:
            return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def register_merchant(
    *,
    business_name: str,
    owner_email: str,
    owner_name: str,
    password: str,
    plan_slug: str | None = None,
) -> tuple[Merchant, User]:
    """
    Signup: merchant, owner user and trial subscription in one transaction.
    """
    from . import subscription_service

    business_name = (business_name or "").strip()
    if not business_name:
        raise ValidationError("business_name is required", field="business_name")
    owner_email = normalize_email(owner_email)

    if db.session.query(Merchant).filter_by(owner_email=owner_email).first():
        raise ConflictError("A merchant with this email already exists")

    try:
        merchant = Merchant(business_name=business_name, owner_email=owner_email)
        db.session.add(merchant)
        db.session.flush()

        owner = create_user(
            owner_email, owner_name, password,
            role=ROLE_MERCHANT, merchant_id=merchant.id, commit=False,
        )
        subscription_service.start_trial(merchant.id, plan_slug, commit=False)

        append_activity(
            merchant_id=merchant.id,
            event_type="merchant.registered",
            event_category="merchant",
            entity_type="merchant",
            entity_id=merchant.id,
            actor_user_id=owner.id,
            note=f"Merchant {business_name} registered",
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return merchant, owner
