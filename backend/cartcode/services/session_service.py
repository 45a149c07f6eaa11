# Overview: Bearer token validation against tokens issued by the auth provider.

"""
Session tokens are issued by the external auth provider; this service only
stores and checks SHA-256 hashes of them.

- Tokens are high-entropy random strings; only the hash is stored
- Expired or revoked tokens, and tokens of deactivated users, do not validate
- create_session exists for the CLI and tests, which stand in for the provider
"""

import secrets
import hashlib
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User
from cartcode.time_utils import utcnow, as_naive_utc


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; tokens are already high-entropy, so no slow hash is needed."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int, ttl: timedelta = SESSION_ABSOLUTE_TIMEOUT) -> tuple[SessionToken, str]:
    """
    Register a token for user_id.

    Returns (session_record, plaintext_token).
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """Active user for a valid token, or None."""
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if as_naive_utc(session.expires_at) < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    return user


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
