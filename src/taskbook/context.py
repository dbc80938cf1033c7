"""Application wiring: build every component once and hand it around explicitly."""

from __future__ import annotations

from dataclasses import dataclass

from taskbook import log
from taskbook.config import VERSION, Config
from taskbook.controller import TaskController, UserController
from taskbook.errors import PersistenceError, ValidationError
from taskbook.storage import JsonFileStorage, MemoryStorage, Storage
from taskbook.tasks.repository import TaskRepository
from taskbook.users import UserRepository

DEMO_USER = {"username": "demo", "email": "demo@example.com", "full_name": "Demo User"}


@dataclass
class AppContext:
    config: Config
    storage: Storage
    user_repository: UserRepository
    task_repository: TaskRepository
    user_controller: UserController
    task_controller: TaskController

    def login(self, username: str) -> bool:
        """Look *username* up and make it the current user of both controllers."""
        response = self.user_controller.login(username)
        if not response.success:
            log.debug(f"Login failed for {username!r}: {response.error}")
            return False
        self.task_controller.set_current_user(response.data.id)
        return True


def make_storage(cfg: Config) -> Storage:
    if cfg.ephemeral:
        return MemoryStorage()
    return JsonFileStorage(cfg.data_dir, namespace=cfg.namespace, version=VERSION)


def bootstrap(cfg: Config, storage: Storage | None = None) -> AppContext:
    """Create storage, repositories and controllers for one run."""
    store = storage if storage is not None else make_storage(cfg)
    log.debug(f"Storage: {type(store).__name__} ({cfg.store_dir if not cfg.ephemeral else 'memory'})")

    users = UserRepository(store)
    tasks = TaskRepository(store)
    log.debug(f"Loaded {len(users.find_all())} user(s), {tasks.count()} task(s)")
    for label, repo in (("user", users), ("task", tasks)):
        if repo.rejected_records:
            log.warn(
                f"Skipped {len(repo.rejected_records)} unreadable {label} record(s); "
                "they are kept unchanged in storage."
            )

    ctx = AppContext(
        config=cfg,
        storage=store,
        user_repository=users,
        task_repository=tasks,
        user_controller=UserController(users),
        task_controller=TaskController(tasks, users, most_used_limit=cfg.most_used_limit),
    )

    if cfg.create_demo_user and not users.find_all():
        _create_demo_user(users)
    return ctx


def _create_demo_user(users: UserRepository) -> None:
    try:
        users.create(DEMO_USER)
    except (ValidationError, PersistenceError) as exc:
        log.warn(f"Could not create demo user: {exc}")
        return
    log.debug("Demo user created")
