"""Controllers: user-facing operations that wrap the repositories.

Every method returns a :class:`Response` envelope instead of raising, so the
CLI (or any other front end) only ever branches on ``success``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from taskbook import log
from taskbook.config import DEFAULT_DUE_SOON_DAYS, DEFAULT_MOST_USED_LIMIT
from taskbook.errors import PersistenceError, ValidationError
from taskbook.tasks.model import (
    Priority,
    Task,
    TaskStatus,
    available_categories,
    display_name_for,
)
from taskbook.tasks.repository import TaskRepository
from taskbook.users import User, UserRepository

ERR_NOT_LOGGED_IN = "User harus login terlebih dahulu"
ERR_TASK_NOT_FOUND = "Task tidak ditemukan"
ERR_NO_ACCESS = "Anda tidak memiliki akses ke task ini"
ERR_OWNER_ONLY = "Hanya pemilik yang dapat menghapus task ini"
ERR_ASSIGNEE_NOT_FOUND = "User yang di-assign tidak ditemukan"
ERR_INVALID_CATEGORY = "Kategori tidak valid"
ERR_EMPTY_QUERY = "Kata kunci pencarian wajib diisi"
ERR_USER_NOT_FOUND = "User tidak ditemukan"


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


@dataclass
class Response:
    """Uniform result from any controller call."""

    success: bool
    data: Any = None
    error: str | None = None
    message: str | None = None
    count: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None, **extra: Any) -> Response:
        count = len(data) if isinstance(data, list) else None
        return cls(True, data=data, message=message, count=count, extra=extra)

    @classmethod
    def fail(cls, error: str) -> Response:
        return cls(False, error=error)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready envelope; unset fields are left out."""
        out: dict[str, Any] = {"success": self.success}
        if self.success:
            out["data"] = _serialize(self.data)
        else:
            out["error"] = self.error
        if self.message is not None:
            out["message"] = self.message
        if self.count is not None:
            out["count"] = self.count
        out.update(self.extra)
        return out


def _failure(exc: Exception, action: str) -> Response:
    if isinstance(exc, PersistenceError):
        log.debug(f"{action}: persistence failed for key={exc.key}: {exc.reason}")
    else:
        log.debug(f"{action}: {exc}")
    return Response.fail(str(exc))


class TaskController:
    """Task operations scoped to the logged-in user.

    A user sees and edits tasks they own or are assigned to. Only the owner
    may delete a task.
    """

    def __init__(
        self,
        task_repository: TaskRepository,
        user_repository: UserRepository,
        *,
        most_used_limit: int = DEFAULT_MOST_USED_LIMIT,
    ) -> None:
        self.tasks = task_repository
        self.users = user_repository
        self.most_used_limit = most_used_limit
        self.current_user: User | None = None

    def set_current_user(self, user_id: str | None) -> Response:
        if not user_id:
            self.current_user = None
            return Response.ok(None)
        user = self.users.find_by_id(user_id)
        if user is None:
            self.current_user = None
            return Response.fail(ERR_USER_NOT_FOUND)
        self.current_user = user
        return Response.ok(user)

    # ── helpers ──────────────────────────────────────────────────

    def _visible_tasks(self) -> list[Task]:
        uid = self.current_user.id if self.current_user else ""
        return [t for t in self.tasks.find_all() if t.owner_id == uid or t.assignee_id == uid]

    def _can_access(self, task: Task) -> bool:
        uid = self.current_user.id if self.current_user else ""
        return uid in (task.owner_id, task.assignee_id)

    def _lookup(self, task_id: str) -> Task | Response:
        """Return the task, or a failed envelope explaining why it is unavailable."""
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        task = self.tasks.find_by_id(task_id)
        if task is None:
            return Response.fail(ERR_TASK_NOT_FOUND)
        if not self._can_access(task):
            return Response.fail(ERR_NO_ACCESS)
        return task

    def _assignee_missing(self, data: Mapping[str, Any]) -> bool:
        assignee = data.get("assignee_id")
        return bool(assignee) and self.users.find_by_id(assignee) is None

    @staticmethod
    def _newest_first(tasks: Iterable[Task]) -> list[Task]:
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    # ── CRUD ─────────────────────────────────────────────────────

    def create_task(self, data: Mapping[str, Any]) -> Response:
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        if self._assignee_missing(data):
            return Response.fail(ERR_ASSIGNEE_NOT_FOUND)

        payload = dict(data)
        payload["owner_id"] = self.current_user.id
        try:
            task = self.tasks.create(payload)
        except (ValidationError, PersistenceError) as exc:
            return _failure(exc, "create_task")
        log.debug(f"Created {task.id} for {self.current_user.username}")
        return Response.ok(task, f"Task '{task.title}' berhasil dibuat")

    def get_tasks(self, filters: Mapping[str, Any] | None = None) -> Response:
        """Visible tasks, newest first.

        Recognized filters: ``status``, ``priority``, ``category``,
        ``overdue`` (bool) and ``query`` (substring of title, description, or tag).
        """
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        filters = filters or {}
        tasks = self._visible_tasks()

        if filters.get("status"):
            tasks = [t for t in tasks if t.status == filters["status"]]
        if filters.get("priority"):
            tasks = [t for t in tasks if t.priority == filters["priority"]]
        if filters.get("category"):
            tasks = [t for t in tasks if t.category == filters["category"]]
        if filters.get("overdue"):
            tasks = [t for t in tasks if t.is_overdue]
        if filters.get("query"):
            tasks = [t for t in tasks if _matches(t, filters["query"])]

        return Response.ok(self._newest_first(tasks))

    def get_task(self, task_id: str) -> Response:
        found = self._lookup(task_id)
        if isinstance(found, Response):
            return found
        return Response.ok(found)

    def update_task(self, task_id: str, updates: Mapping[str, Any]) -> Response:
        found = self._lookup(task_id)
        if isinstance(found, Response):
            return found
        if self._assignee_missing(updates):
            return Response.fail(ERR_ASSIGNEE_NOT_FOUND)
        try:
            task = self.tasks.update(task_id, updates)
        except (ValidationError, PersistenceError) as exc:
            return _failure(exc, "update_task")
        if task is None:
            return Response.fail(ERR_TASK_NOT_FOUND)
        return Response.ok(task, "Task berhasil diperbarui")

    def toggle_task_status(self, task_id: str) -> Response:
        found = self._lookup(task_id)
        if isinstance(found, Response):
            return found
        new_status = TaskStatus.PENDING if found.is_completed else TaskStatus.COMPLETED
        return self.update_task(task_id, {"status": new_status.value})

    def update_task_category(self, task_id: str, category: str) -> Response:
        return self.update_task(task_id, {"category": category})

    def delete_task(self, task_id: str) -> Response:
        found = self._lookup(task_id)
        if isinstance(found, Response):
            return found
        if found.owner_id != self.current_user.id:
            return Response.fail(ERR_OWNER_ONLY)
        try:
            self.tasks.delete(task_id)
        except PersistenceError as exc:
            return _failure(exc, "delete_task")
        return Response.ok(found, f"Task '{found.title}' berhasil dihapus")

    # ── queries ──────────────────────────────────────────────────

    def search_tasks(self, query: str) -> Response:
        if not query or not query.strip():
            return Response.fail(ERR_EMPTY_QUERY)
        return self.get_tasks({"query": query.strip()})

    def get_task_stats(self) -> Response:
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        tasks = self._visible_tasks()
        by_status = {s.value: 0 for s in TaskStatus}
        by_priority = {p.value: 0 for p in Priority}
        for task in tasks:
            by_status[task.status.value] += 1
            by_priority[task.priority.value] += 1
        completed = by_status[TaskStatus.COMPLETED.value]
        return Response.ok(
            {
                "total": len(tasks),
                "completed": completed,
                "pending": len(tasks) - completed,
                "overdue": sum(1 for t in tasks if t.is_overdue),
                "byStatus": by_status,
                "byPriority": by_priority,
            }
        )

    def get_tasks_by_category(self, category: str) -> Response:
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        if category not in available_categories():
            return Response.fail(ERR_INVALID_CATEGORY)
        tasks = [t for t in self._visible_tasks() if t.category == category]
        return Response.ok(
            self._newest_first(tasks),
            categoryDisplayName=display_name_for(category),
        )

    def get_category_stats(self) -> Response:
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        uid = self.current_user.id
        return Response.ok(
            {
                "byCategory": self.tasks.get_category_stats(uid),
                "mostUsed": self.tasks.get_most_used_categories(uid, self.most_used_limit),
            }
        )

    def get_available_categories(self) -> Response:
        return Response.ok(
            [{"value": c, "label": display_name_for(c)} for c in available_categories()]
        )

    def get_overdue_tasks(self) -> Response:
        return self.get_tasks({"overdue": True})

    def get_tasks_due_soon(self, days: int = DEFAULT_DUE_SOON_DAYS) -> Response:
        """Open tasks due within *days* days that are not overdue yet."""
        if self.current_user is None:
            return Response.fail(ERR_NOT_LOGGED_IN)
        due_soon = [
            t
            for t in self._visible_tasks()
            if not t.is_completed
            and not t.is_overdue
            and t.days_until_due is not None
            and t.days_until_due <= days
        ]
        due_soon.sort(key=lambda t: t.due_date)
        return Response.ok(due_soon)


def _matches(task: Task, query: str) -> bool:
    needle = query.lower()
    return (
        needle in task.title.lower()
        or needle in task.description.lower()
        or any(needle in tag.lower() for tag in task.tags)
    )


class UserController:
    """Registration and the username-only login used to pick a current user."""

    def __init__(self, user_repository: UserRepository) -> None:
        self.users = user_repository
        self.current_user: User | None = None

    def register(self, data: Mapping[str, Any]) -> Response:
        try:
            user = self.users.create(data)
        except (ValidationError, PersistenceError) as exc:
            return _failure(exc, "register")
        return Response.ok(user, f"User '{user.username}' berhasil didaftarkan")

    def login(self, username: str) -> Response:
        if not username or not username.strip():
            return Response.fail("Username wajib diisi")
        user = self.users.find_by_username(username)
        if user is None:
            return Response.fail(ERR_USER_NOT_FOUND)
        self.current_user = user
        return Response.ok(user, f"Selamat datang, {user.display_name}!")

    def logout(self) -> Response:
        self.current_user = None
        return Response.ok(None, "Berhasil logout")

    def get_all_users(self) -> Response:
        return Response.ok(sorted(self.users.find_all(), key=lambda u: u.username.lower()))
