"""Task entity: validation rules, lifecycle transitions, and serialization."""

from __future__ import annotations

import math
import secrets
import string
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from taskbook.errors import ValidationError


class Category(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    STUDY = "study"
    HEALTH = "health"
    FINANCE = "finance"
    SHOPPING = "shopping"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


DEFAULT_CATEGORY = Category.PERSONAL
DEFAULT_PRIORITY = Priority.MEDIUM
DEFAULT_STATUS = TaskStatus.PENDING

CATEGORY_DISPLAY_NAMES: dict[str, str] = {
    "work": "Work & Business",
    "personal": "Personal",
    "study": "Study & Learning",
    "health": "Health & Fitness",
    "finance": "Finance & Money",
    "shopping": "Shopping",
    "other": "Other",
}

# Keys accepted by Task.from_options; anything else is ignored.
OPTION_KEYS: tuple[str, ...] = (
    "assignee_id",
    "category",
    "tags",
    "priority",
    "status",
    "due_date",
    "estimated_hours",
)

_SECONDS_PER_DAY = 86_400
_ID_ALPHABET = string.digits + string.ascii_lowercase


def available_categories() -> list[str]:
    """Category values in enumeration order."""
    return [c.value for c in Category]


def display_name_for(category: str) -> str:
    """Human-readable label for *category*; unmapped values come back unchanged."""
    key = category.value if isinstance(category, Category) else category
    return CATEGORY_DISPLAY_NAMES.get(key, key)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """``<prefix>_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def to_datetime(value: Any) -> datetime | None:
    """Coerce a datetime, date, or ISO-8601 string into an aware UTC datetime.

    Naive values are taken to be UTC. Empty values return ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Tanggal tidak valid: {value}") from None
    else:
        raise ValidationError(f"Tanggal tidak valid: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def validate_category(value: Any) -> Category:
    try:
        return Category(value)
    except ValueError:
        raise ValidationError(f"Kategori tidak valid: {value}") from None


def coerce_priority(value: Any) -> Priority:
    """Unknown priorities fall back to medium instead of failing."""
    try:
        return Priority(value)
    except ValueError:
        return DEFAULT_PRIORITY


def coerce_status(value: Any) -> TaskStatus:
    """Unknown statuses fall back to pending instead of failing."""
    try:
        return TaskStatus(value)
    except ValueError:
        return DEFAULT_STATUS


def _non_negative_hours(value: Any, label: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} harus berupa angka") from None
    if math.isnan(hours) or hours < 0:
        raise ValidationError(f"{label} tidak boleh negatif")
    return hours


@dataclass(frozen=True)
class Note:
    id: str | int
    content: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "content": self.content, "createdAt": to_iso(self.created_at)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Note:
        return cls(
            id=data.get("id") or generate_id("note"),
            content=str(data.get("content", "")),
            created_at=to_datetime(data.get("createdAt")) or utcnow(),
        )


class Task:
    """One unit of work.

    State is only changed through the named ``update_*``/``set_*``/``add_*``
    methods; every attribute is exposed through a single read-only property.

    ``category`` is validated strictly (``ValidationError``), while
    ``priority`` and ``status`` silently fall back to their defaults.
    ``completed_at`` is stamped on the first entry into ``completed`` and kept
    as history if the task is later reopened.
    """

    def __init__(
        self,
        title: str,
        description: str | None,
        owner_id: str | None,
        *,
        assignee_id: str | None = None,
        category: str | None = None,
        tags: Iterable[str] | None = None,
        priority: str | None = None,
        status: str | None = None,
        due_date: datetime | date | str | None = None,
        estimated_hours: float | None = 0,
    ) -> None:
        if not title or not str(title).strip():
            raise ValidationError("Judul task wajib diisi")
        if not owner_id:
            raise ValidationError("Owner ID wajib diisi")

        self._id = generate_id("task")
        self._title = str(title).strip()
        self._description = (description or "").strip()
        self._owner_id = owner_id
        self._assignee_id = assignee_id or owner_id

        self._category = validate_category(category or DEFAULT_CATEGORY)
        self._tags: list[str] = []
        for tag in tags or ():
            self._append_tag(tag)
        self._priority = coerce_priority(priority or DEFAULT_PRIORITY)
        self._status = coerce_status(status or DEFAULT_STATUS)

        now = utcnow()
        self._due_date = to_datetime(due_date)
        self._created_at = now
        self._updated_at = now
        self._completed_at = now if self._status is TaskStatus.COMPLETED else None
        self._estimated_hours = _non_negative_hours(estimated_hours, "Estimasi jam")
        self._actual_hours = 0.0

        self._notes: list[Note] = []

    @classmethod
    def from_options(
        cls,
        title: str,
        description: str | None,
        owner_id: str | None,
        options: Mapping[str, Any] | None = None,
    ) -> Task:
        """Build a task from a loose options mapping, ignoring unknown keys."""
        opts = {k: v for k, v in (options or {}).items() if k in OPTION_KEYS}
        return cls(title, description, owner_id, **opts)

    def __repr__(self) -> str:
        return (
            f"Task(id={self._id!r}, title={self._title!r}, "
            f"category={self._category.value!r}, status={self._status.value!r})"
        )

    # ── read accessors ───────────────────────────────────────────

    @property
    def id(self) -> str:
        return self._id

    @property
    def title(self) -> str:
        return self._title

    @property
    def description(self) -> str:
        return self._description

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def assignee_id(self) -> str:
        return self._assignee_id

    @property
    def category(self) -> Category:
        return self._category

    @property
    def tags(self) -> list[str]:
        return list(self._tags)

    @property
    def priority(self) -> Priority:
        return self._priority

    @property
    def status(self) -> TaskStatus:
        return self._status

    @property
    def due_date(self) -> datetime | None:
        return self._due_date

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def completed_at(self) -> datetime | None:
        return self._completed_at

    @property
    def estimated_hours(self) -> float:
        return self._estimated_hours

    @property
    def actual_hours(self) -> float:
        return self._actual_hours

    @property
    def notes(self) -> list[Note]:
        return list(self._notes)

    # ── derived ──────────────────────────────────────────────────

    @property
    def is_completed(self) -> bool:
        return self._status is TaskStatus.COMPLETED

    @property
    def is_overdue(self) -> bool:
        if self._due_date is None or self.is_completed:
            return False
        return utcnow() > self._due_date

    @property
    def days_until_due(self) -> int | None:
        """Whole days until the due date, rounded up; ``None`` without one."""
        if self._due_date is None:
            return None
        delta = (self._due_date - utcnow()).total_seconds()
        return math.ceil(delta / _SECONDS_PER_DAY)

    @property
    def category_display_name(self) -> str:
        return display_name_for(self._category)

    def is_in_category(self, category: str) -> bool:
        return self._category == category

    # ── mutations ────────────────────────────────────────────────

    def update_title(self, new_title: str) -> None:
        if not new_title or not str(new_title).strip():
            raise ValidationError("Judul task tidak boleh kosong")
        self._title = str(new_title).strip()
        self._touch()

    def update_description(self, description: str | None) -> None:
        self._description = (description or "").strip()
        self._touch()

    def update_category(self, new_category: str) -> None:
        self._category = validate_category(new_category)
        self._touch()

    def update_priority(self, new_priority: str) -> None:
        self._priority = coerce_priority(new_priority)
        self._touch()

    def update_status(self, new_status: str) -> None:
        was_completed = self.is_completed
        self._status = coerce_status(new_status)
        if self.is_completed and not was_completed and self._completed_at is None:
            self._completed_at = utcnow()
        self._touch()

    def set_due_date(self, due_date: datetime | date | str | None) -> None:
        self._due_date = to_datetime(due_date)
        self._touch()

    def assign_to(self, user_id: str | None) -> None:
        """Reassign the task; an empty id hands it back to the owner."""
        self._assignee_id = user_id or self._owner_id
        self._touch()

    def set_estimated_hours(self, hours: float) -> None:
        self._estimated_hours = _non_negative_hours(hours, "Estimasi jam")
        self._touch()

    def log_hours(self, hours: float) -> None:
        """Add *hours* of work to ``actual_hours``."""
        self._actual_hours += _non_negative_hours(hours, "Jam kerja")
        self._touch()

    def add_tag(self, tag: str) -> None:
        self._append_tag(tag)
        self._touch()

    def remove_tag(self, tag: str) -> None:
        if tag in self._tags:
            self._tags.remove(tag)
            self._touch()

    def add_note(self, text: str | None) -> None:
        if not text or not text.strip():
            return
        self._notes.append(Note(id=generate_id("note"), content=text.strip(), created_at=utcnow()))
        self._touch()

    def _append_tag(self, tag: str) -> None:
        if not isinstance(tag, str):
            return
        tag = tag.strip()
        if tag and tag not in self._tags:
            self._tags.append(tag)

    def _touch(self) -> None:
        self._updated_at = utcnow()

    # ── serialization ────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-compatible record in the persisted camelCase shape."""
        return {
            "id": self._id,
            "title": self._title,
            "description": self._description,
            "ownerId": self._owner_id,
            "assigneeId": self._assignee_id,
            "category": self._category.value,
            "status": self._status.value,
            "priority": self._priority.value,
            "tags": list(self._tags),
            "dueDate": to_iso(self._due_date),
            "createdAt": to_iso(self._created_at),
            "updatedAt": to_iso(self._updated_at),
            "completedAt": to_iso(self._completed_at),
            "estimatedHours": self._estimated_hours,
            "actualHours": self._actual_hours,
            "notes": [n.to_dict() for n in self._notes],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        """Rebuild a task from :meth:`to_dict` output.

        Identity, timestamps, hours and notes are restored verbatim rather than
        regenerated. Records written before ``completedAt`` existed load with
        ``completed_at = None``.
        """
        task = cls(
            data.get("title", ""),
            data.get("description", ""),
            data.get("ownerId"),
            assignee_id=data.get("assigneeId"),
            category=data.get("category"),
            tags=data.get("tags") or [],
            priority=data.get("priority"),
            status=data.get("status"),
            due_date=data.get("dueDate"),
            estimated_hours=data.get("estimatedHours") or 0,
        )
        if data.get("id"):
            task._id = data["id"]
        task._created_at = to_datetime(data.get("createdAt")) or task._created_at
        task._updated_at = to_datetime(data.get("updatedAt")) or task._created_at
        task._completed_at = to_datetime(data.get("completedAt"))
        task._actual_hours = _non_negative_hours(data.get("actualHours"), "Jam kerja")
        task._notes = [Note.from_dict(n) for n in data.get("notes") or []]
        return task
