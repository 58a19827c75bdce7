# Overview: Service-layer operations for ledger operators.

from __future__ import annotations

from ..errors import ReferentialError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_ADMIN, ROLES


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def require_active_user(user_id: int | None) -> User:
    """Every ledger document is attributed to an existing, active user."""
    if not user_id:
        raise ReferentialError("A user is required to post ledger documents")
    user = get_user(user_id)
    if user is None:
        raise ReferentialError(f"User {user_id} not found", details={"user_id": user_id})
    if not user.is_active:
        raise ReferentialError(f"User {user_id} is inactive", details={"user_id": user_id})
    return user


def create_user(username: str, role: str = ROLE_ADMIN, full_name: str | None = None) -> User:
    role = (role or "").strip().upper()
    if role not in ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(sorted(ROLES))}")
    if db.session.query(User).filter_by(username=username).first():
        raise ValidationError(f"User {username!r} already exists")

    user = User(username=username, role=role, full_name=full_name, is_active=True)
    db.session.add(user)
    db.session.flush()
    return user
