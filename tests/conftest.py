"""Shared fixtures for taskbook tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Repositories run against MemoryStorage (or the fakes in tests/fakes.py) unless
  the test is about on-disk persistence.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from taskbook import log
from taskbook.config import ENV_DATA_DIR, ENV_USER
from taskbook.controller import TaskController, UserController
from taskbook.storage import MemoryStorage
from taskbook.tasks.model import Task
from taskbook.tasks.repository import TaskRepository
from taskbook.users import UserRepository


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep every test away from the real ~/.taskbook and any exported user."""
    monkeypatch.setenv(ENV_DATA_DIR, str(tmp_path / "data"))
    monkeypatch.delenv(ENV_USER, raising=False)
    yield
    log.set_verbose(False)


def _make_task(
    title: str = "Write report",
    description: str = "",
    owner_id: str = "user1",
    **options: Any,
) -> Task:
    return Task(title, description, owner_id, **options)


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def repo(storage: MemoryStorage) -> TaskRepository:
    return TaskRepository(storage)


@pytest.fixture
def user_repo(storage: MemoryStorage) -> UserRepository:
    return UserRepository(storage)


@pytest.fixture
def alice(user_repo: UserRepository):
    return user_repo.create({"username": "alice", "email": "alice@example.com", "full_name": "Alice A."})


@pytest.fixture
def bob(user_repo: UserRepository):
    return user_repo.create({"username": "bob", "email": "bob@example.com"})


@pytest.fixture
def controller(repo: TaskRepository, user_repo: UserRepository, alice) -> TaskController:
    """TaskController with alice logged in."""
    ctl = TaskController(repo, user_repo)
    ctl.set_current_user(alice.id)
    return ctl


@pytest.fixture
def user_controller(user_repo: UserRepository) -> UserController:
    return UserController(user_repo)
