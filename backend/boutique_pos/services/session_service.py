# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: The API authenticates with an opaque bearer token. Tokens are random,
stored only as a hash, time-limited and revocable.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or when the account is deactivated

The verified identity handed to routes is SessionContext.claims:
{id, email, role, name}.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..errors import NotFoundError, ValidationError
from ..models import SessionToken, User
from ..time_utils import utcnow
from .concurrency import transaction

SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    user: User
    session: SessionToken

    @property
    def claims(self) -> dict:
        return self.user.claims()


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 for storage. Tokens are already high-entropy, so a slow
    password hash buys nothing here.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    session,
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an active user.

    Returns (session_record, plaintext_token).
    """
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    if not user.is_active:
        raise ValidationError("User account is deactivated.")

    plaintext_token = generate_token()
    now = utcnow()

    with transaction(session):
        record = SessionToken(
            user_id=user_id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            last_used_at=now,
            expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
            user_agent=(user_agent or "")[:255] or None,
            ip_address=ip_address,
            is_revoked=False,
        )
        session.add(record)
        session.flush()

    return record, plaintext_token


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason


def validate_session(session, token: str) -> SessionContext | None:
    """
    Verify a bearer token.

    Returns None if the token is unknown, revoked, expired, idle too long, or
    belongs to a deactivated user. Idle and deactivated sessions are revoked
    on the way out. A valid call refreshes last_used_at.
    """
    if not token:
        return None

    now = utcnow()
    record = session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if record is None:
        return None

    if record.expires_at < now:
        return None

    with transaction(session):
        if now - record.last_used_at > SESSION_IDLE_TIMEOUT:
            _revoke(record, "Idle timeout")
            return None

        user = record.user
        if user is None or not user.is_active:
            _revoke(record, "User account deactivated")
            return None

        record.last_used_at = now

    return SessionContext(user=user, session=record)


def revoke_session(session, token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked."""
    with transaction(session):
        record = session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()
        if record is None:
            return False
        _revoke(record, reason)
    return True


def revoke_all_user_sessions(session, user_id: int, reason: str = "Revoke all sessions") -> int:
    """Returns count of sessions revoked."""
    with transaction(session):
        records = session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
        for record in records:
            _revoke(record, reason)
    return len(records)
