from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from app.gamenight.audit import record_event
from app.gamenight.errors import Conflict, NotFound, ValidationError, data_access
from app.gamenight.models import User

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def user_to_dict(user: User) -> dict:
    """Public fields only; never the password hash or email."""
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "img": user.img,
        "equipment": user.equipment,
    }


def normalize_email(raw: str | None) -> str:
    return (raw or "").strip().lower()


def validate_registration(payload: dict) -> list[str]:
    errors = []
    email = normalize_email(payload.get("email"))
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    if len(payload.get("password") or "") < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if not (payload.get("first_name") or "").strip():
        errors.append("First name is required.")
    if not (payload.get("last_name") or "").strip():
        errors.append("Last name is required.")
    return errors


def list_users(s: "Session") -> list[User]:
    with data_access("list users"):
        return list(s.scalars(select(User).where(User.is_active.is_(True)).order_by(User.id)))


def get_user(s: "Session", user_id: int) -> User:
    with data_access("get user"):
        user = s.get(User, user_id)
    if not user or not user.is_active:
        raise NotFound("User", user_id)
    return user


def get_user_by_email(s: "Session", email: str) -> User | None:
    with data_access("get user by email"):
        return s.scalars(select(User).where(func.lower(User.email) == normalize_email(email))).one_or_none()


def create_user(s: "Session", payload: dict) -> User:
    errors = validate_registration(payload)
    if errors:
        raise ValidationError(errors)

    email = normalize_email(payload.get("email"))
    if get_user_by_email(s, email) is not None:
        raise Conflict(f"Email already registered: {email}")

    user = User(
        email=email,
        password_hash=generate_password_hash(payload["password"]),
        first_name=payload["first_name"].strip(),
        last_name=payload["last_name"].strip(),
        equipment=(payload.get("equipment") or "").strip() or None,
        is_active=True,
    )
    with data_access("create user"):
        s.add(user)
        try:
            s.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email.
            s.rollback()
            raise Conflict(f"Email already registered: {email}") from e
        record_event(s, actor_user_id=user.id, action="user.register", entity_type="User", entity_id=str(user.id))
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate(s: "Session", email: str, password: str) -> User | None:
    user = get_user_by_email(s, email)
    if not user or not user.is_active or not check_password_hash(user.password_hash, password or ""):
        return None
    return user


def update_profile(s: "Session", user: User, payload: dict) -> User:
    """Partial update: only keys present in the payload are touched."""
    changes = {}
    errors = []
    for field in ("first_name", "last_name"):
        if field in payload:
            value = (payload.get(field) or "").strip()
            if not value:
                errors.append(f"{field.replace('_', ' ').capitalize()} cannot be empty.")
            elif value != getattr(user, field):
                changes[field] = {"old": getattr(user, field), "new": value}
                setattr(user, field, value)
    if "equipment" in payload:
        value = (payload.get("equipment") or "").strip() or None
        if value != user.equipment:
            changes["equipment"] = {"old": user.equipment, "new": value}
            user.equipment = value
    if errors:
        raise ValidationError(errors)

    with data_access("update profile"):
        record_event(
            s,
            actor_user_id=user.id,
            action="user.edit",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"changes": changes},
        )
    return user


def set_picture(s: "Session", user: User, url: str, storage_key: str) -> User:
    user.img = url
    with data_access("set picture"):
        record_event(
            s,
            actor_user_id=user.id,
            action="user.picture_upload",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"storage_key": storage_key},
        )
    return user
