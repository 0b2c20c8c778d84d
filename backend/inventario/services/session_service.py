# Overview: Service-layer operations for sessions; encapsulates business logic and database work.

"""
Bearer-token sessions.

The client holds a random 64-hex-char token; the database only keeps its
SHA-256 digest. A session dies when it passes its absolute expiry, sits
unused longer than the idle window, its user is deactivated, or it is
revoked on logout. Both windows come from the app config
(SESSION_ABSOLUTE_TIMEOUT_HOURS, SESSION_IDLE_TIMEOUT_HOURS).
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from inventario.time_utils import utcnow


def _hours(key: str) -> timedelta:
    return timedelta(hours=current_app.config[key])


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens carry 256 bits of entropy, so a plain digest is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (row, plaintext token). The plaintext is never stored.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("User not found or inactive")

    token = generate_token()
    started = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=started,
        last_used_at=started,
        expires_at=started + _hours("SESSION_ABSOLUTE_TIMEOUT_HOURS"),
        user_agent=user_agent[:255] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, token


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> User | None:
    """The token's user, or None. Idle or orphaned sessions are revoked on the way out."""
    if not token:
        return None

    record = _live_session(token)
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None
    if now - record.last_used_at > _hours("SESSION_IDLE_TIMEOUT_HOURS"):
        _revoke(record, "Idle timeout")
        return None
    if record.user is None or not record.user.is_active:
        _revoke(record, "User account deactivated")
        return None

    record.last_used_at = now
    db.session.commit()
    return record.user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """False when the token is unknown or already revoked."""
    record = _live_session(token)
    if record is None:
        return False
    _revoke(record, reason)
    return True


def revoke_user_sessions(user_id: int, reason: str, *, keep_token: str | None = None) -> int:
    """
    Revoke every live session of a user, optionally sparing the caller's own.

    Returns the number of sessions revoked.
    """
    query = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False)
    if keep_token:
        query = query.filter(SessionToken.token_hash != hash_token(keep_token))

    now = utcnow()
    count = 0
    for record in query.all():
        record.is_revoked = True
        record.revoked_at = now
        record.revoked_reason = reason
        count += 1

    db.session.commit()
    return count
