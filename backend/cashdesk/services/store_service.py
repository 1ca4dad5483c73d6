# Overview: Store and staff bootstrap used by the CLI and tests.

from __future__ import annotations

from ..extensions import db
from ..models import Store, User
from ..validation import ConflictError, NotFoundError, ValidationError


def create_store(name: str, code: str | None = None) -> Store:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Store name is required", {"field": "name"})

    if code:
        existing = db.session.query(Store).filter_by(code=code).first()
        if existing:
            raise ConflictError(f"Store code '{code}' already exists", {"code": code})

    store = Store(name=name, code=code, is_active=True)
    db.session.add(store)
    db.session.commit()
    return store


def create_user(store_id: int, username: str, display_name: str | None = None) -> User:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required", {"field": "username"})

    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found", {"store_id": store_id})

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError(f"Username '{username}' already exists", {"username": username})

    user = User(store_id=store_id, username=username, display_name=display_name, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user
