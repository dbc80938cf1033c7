"""In-memory task collection with persistence through an injected store."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from taskbook.storage import Storage, load_records
from taskbook.tasks.model import Task, available_categories, display_name_for

TASKS_KEY = "tasks"


def _empty_stats() -> dict[str, int]:
    return {"total": 0, "completed": 0, "pending": 0, "overdue": 0}


class TaskRepository:
    """Authoritative collection of :class:`Task` objects for the process lifetime.

    Usage::

        repo = TaskRepository(storage)
        task = repo.create({"title": "Buy milk", "owner_id": "u1"})
        repo.update(task.id, {"status": "completed"})
        repo.get_category_stats("u1")["personal"]["completed"]   # 1

    Every mutating call saves the whole collection under ``storage_key``.
    If the save fails the in-memory change is *not* rolled back.
    Stored records that cannot be parsed are kept aside in ``rejected_records``
    and written back unchanged on every save.
    """

    def __init__(self, storage: Storage, storage_key: str = TASKS_KEY) -> None:
        self._storage = storage
        self._key = storage_key
        self._tasks: dict[str, Task] = {}
        self.rejected_records: list[Any] = []
        self._load()

    # ── CRUD ─────────────────────────────────────────────────────

    def create(self, data: Mapping[str, Any]) -> Task:
        task = Task.from_options(
            data.get("title", ""),
            data.get("description", ""),
            data.get("owner_id"),
            data,
        )
        self._tasks[task.id] = task
        self._save()
        return task

    def find_all(self) -> list[Task]:
        return list(self._tasks.values())

    def find_by_id(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def find_by_owner(self, owner_id: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.owner_id == owner_id]

    def find_by_assignee(self, user_id: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.assignee_id == user_id]

    def find_by_category(self, category: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.category == category]

    def count(self) -> int:
        return len(self._tasks)

    def update(self, task_id: str, updates: Mapping[str, Any]) -> Task | None:
        """Apply each recognized key in *updates* through the entity.

        Keys mapped to ``None`` count as absent and unknown keys are ignored.
        The changes are all-or-nothing: they are first tried on a scratch copy,
        so a ``ValidationError`` leaves the stored task untouched.
        Returns ``None`` when *task_id* is unknown.
        """
        task = self.find_by_id(task_id)
        if task is None:
            return None

        changes = [
            (apply, updates[key])
            for key, apply in _UPDATE_HANDLERS.items()
            if updates.get(key) is not None
        ]
        scratch = Task.from_dict(task.to_dict())
        for apply, value in changes:
            apply(scratch, value)
        for apply, value in changes:
            apply(task, value)

        self._save()
        return task

    def delete(self, task_id: str) -> bool:
        if self._tasks.pop(task_id, None) is None:
            return False
        self._save()
        return True

    # ── statistics ───────────────────────────────────────────────

    def get_category_stats(self, owner_id: str | None = None) -> dict[str, dict[str, int]]:
        """Per-category counts, recomputed on every call.

        All categories are present (in enumeration order) even when empty.
        """
        tasks = self.find_by_owner(owner_id) if owner_id else self.find_all()
        stats = {cat: _empty_stats() for cat in available_categories()}

        for task in tasks:
            bucket = stats.get(task.category.value)
            if bucket is None:
                continue
            bucket["total"] += 1
            if task.is_completed:
                bucket["completed"] += 1
            else:
                bucket["pending"] += 1
            if task.is_overdue:
                bucket["overdue"] += 1
        return stats

    def get_most_used_categories(
        self, owner_id: str | None = None, limit: int = 5
    ) -> list[dict[str, Any]]:
        """Categories by task count, highest first; ties keep enumeration order."""
        stats = self.get_category_stats(owner_id)
        ranked = sorted(stats.items(), key=lambda item: item[1]["total"], reverse=True)
        return [
            {
                "category": category,
                "count": data["total"],
                "displayName": display_name_for(category),
            }
            for category, data in ranked[: max(0, limit)]
        ]

    # ── storage ──────────────────────────────────────────────────

    def _load(self) -> None:
        tasks, self.rejected_records = load_records(self._storage, self._key, Task.from_dict)
        for task in tasks:
            self._tasks[task.id] = task

    def _save(self) -> None:
        records = [t.to_dict() for t in self._tasks.values()]
        self._storage.save(self._key, records + self.rejected_records)


_UPDATE_HANDLERS: dict[str, Callable[[Task, Any], None]] = {
    "title": Task.update_title,
    "description": Task.update_description,
    "category": Task.update_category,
    "priority": Task.update_priority,
    "status": Task.update_status,
    "due_date": Task.set_due_date,
    "assignee_id": Task.assign_to,
    "estimated_hours": Task.set_estimated_hours,
    "add_tag": Task.add_tag,
    "remove_tag": Task.remove_tag,
    "add_note": Task.add_note,
}

