"""Users: registration and username lookup (no authentication)."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from taskbook.errors import ValidationError
from taskbook.storage import Storage, load_records
from taskbook.tasks.model import generate_id, to_datetime, to_iso, utcnow

USERS_KEY = "users"

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,32}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class User:
    id: str
    username: str
    email: str = ""
    full_name: str = ""
    created_at: datetime = field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "fullName": self.full_name,
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> User:
        username = str(data.get("username") or "").strip()
        if not username:
            raise ValidationError("Username wajib diisi")
        return cls(
            id=str(data["id"]),
            username=username,
            email=str(data.get("email") or ""),
            full_name=str(data.get("fullName") or ""),
            created_at=to_datetime(data.get("createdAt")) or utcnow(),
        )


class UserRepository:
    """Registered users, persisted under the ``users`` key."""

    def __init__(self, storage: Storage, storage_key: str = USERS_KEY) -> None:
        self._storage = storage
        self._key = storage_key
        self._users: dict[str, User] = {}
        users, self.rejected_records = load_records(storage, storage_key, User.from_dict)
        for user in users:
            self._users[user.id] = user

    def create(self, data: Mapping[str, Any]) -> User:
        username = (data.get("username") or "").strip()
        email = (data.get("email") or "").strip()
        if not username:
            raise ValidationError("Username wajib diisi")
        if not _USERNAME_RE.match(username):
            raise ValidationError(
                "Username harus 3-32 karakter (huruf, angka, titik, strip, garis bawah)"
            )
        if self.find_by_username(username) is not None:
            raise ValidationError(f"Username '{username}' sudah digunakan")
        if email and not _EMAIL_RE.match(email):
            raise ValidationError("Format email tidak valid")

        user = User(
            id=generate_id("user"),
            username=username,
            email=email,
            full_name=(data.get("full_name") or "").strip(),
        )
        self._users[user.id] = user
        self._save()
        return user

    def find_all(self) -> list[User]:
        return list(self._users.values())

    def find_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_by_username(self, username: str) -> User | None:
        """Case-insensitive username lookup."""
        wanted = (username or "").strip().lower()
        for user in self._users.values():
            if user.username.lower() == wanted:
                return user
        return None

    def _save(self) -> None:
        records = [u.to_dict() for u in self._users.values()]
        self._storage.save(self._key, records + self.rejected_records)
