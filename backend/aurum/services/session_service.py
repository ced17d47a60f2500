# Overview: Bearer session tokens used to put a name on audit entries.

"""
Session tokens.

Tokens are 32 random bytes handed to the client once; the database only
keeps their SHA-256 hash. They identify the actor, nothing more: an
absent or stale token simply means the request runs as the guest actor.
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..validation import NotFoundError, ValidationError, require_text
from aurum.time_utils import utcnow
from .concurrency import atomic


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough here; tokens are already high-entropy."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_user(username: str) -> User:
    username = require_text(username, "username", max_length=64)
    with atomic() as session:
        if session.query(User).filter_by(username=username).first():
            raise ValidationError(f"User {username} already exists")
        user = User(username=username, is_active=True)
        session.add(user)
        session.flush()
        user_id = user.id
    return db.session.get(User, user_id)


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Issue a token for `user_id`.

    Returns (session_record, plaintext_token).
    """
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))
    plaintext_token = generate_token()

    with atomic() as session:
        user = session.get(User, user_id)
        if not user or not user.is_active:
            raise NotFoundError("Active user not found")

        now = utcnow()
        record = SessionToken(
            user_id=user.id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            expires_at=now + ttl,
            is_revoked=False,
        )
        session.add(record)

    return record, plaintext_token


def validate_session(token: str) -> User | None:
    """Return the active user behind `token`, or None for unknown/expired/revoked tokens."""
    if not token:
        return None

    record = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record or record.expires_at < utcnow():
        return None

    user = record.user
    if not user or not user.is_active:
        return None
    return user
