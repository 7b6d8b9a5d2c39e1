from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from taskshare_api.ports import AccessGrant, GrantConflictError, TaskRecord
from taskshare_api.schemas import TaskCreate, TaskRead, TaskStatus, UserCreate, UserIdentity
from taskshare_api.validation import page_slice

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    pass


class ConflictError(Exception):
    pass


@dataclass
class _UserRecord:
    id: int
    email: str


@dataclass
class _TaskRecord:
    id: int
    owner_id: int
    title: str
    description: str | None
    created_at: str
    status: str = TaskStatus.NOT_STARTED.value
    due_date: str | None = None


@dataclass
class _GrantRecord:
    task_id: int
    user_id: int
    created_at: str
    seq: int


class InMemoryStore:
    """Users, tasks and access grants behind one lock, optionally snapshotted to disk.

    Mutations run inside ``transaction()``: the lock is held from the first
    check to the last write, the state file is written once on clean exit and
    the in-memory state is put back if anything raises. Mutating methods
    called outside a transaction open one for themselves.
    """

    def __init__(self, state_file: str | None = None) -> None:
        self._state_file = Path(state_file).expanduser() if state_file else None
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._backup: dict[str, Any] | None = None
        self._users: dict[int, _UserRecord] = {}
        self._user_emails: dict[str, int] = {}
        self._tasks: dict[int, _TaskRecord] = {}
        self._grants: dict[tuple[int, int], _GrantRecord] = {}
        self._user_seq = 1
        self._task_seq = 1
        self._grant_seq = 1
        self._load_state()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            outermost = self._tx_depth == 0
            self._tx_depth += 1
            try:
                yield
                if outermost and self._backup is not None:
                    self._persist_state()
            except BaseException:
                if outermost and self._backup is not None:
                    logger.warning("rolling back store transaction")
                    self._restore(self._backup)
                raise
            finally:
                self._tx_depth -= 1
                if outermost:
                    self._backup = None

    def _begin_write(self) -> None:
        # Called inside a transaction right before the first change to state.
        if self._backup is None:
            self._backup = self._snapshot()

    # users

    def create_user(self, user: UserCreate) -> UserIdentity:
        with self.transaction():
            if user.email in self._user_emails:
                raise ConflictError(f"user with email '{user.email}' already exists")
            self._begin_write()
            user_id = self._user_seq
            self._user_seq += 1
            record = _UserRecord(id=user_id, email=user.email)
            self._users[user_id] = record
            self._user_emails[record.email] = user_id
        return UserIdentity(id=record.id, email=record.email)

    def get_user(self, user_id: int) -> UserIdentity | None:
        with self._lock:
            record = self._users.get(user_id)
        if record is None:
            return None
        return UserIdentity(id=record.id, email=record.email)

    def resolve_by_email(self, normalized_email: str) -> UserIdentity | None:
        with self._lock:
            user_id = self._user_emails.get(normalized_email)
            record = self._users.get(user_id) if user_id is not None else None
        if record is None:
            return None
        return UserIdentity(id=record.id, email=record.email)

    # tasks

    def create_task(self, owner_id: int, task: TaskCreate) -> TaskRead:
        with self.transaction():
            if owner_id not in self._users:
                raise NotFoundError(f"user {owner_id} not found")
            self._begin_write()
            task_id = self._task_seq
            self._task_seq += 1
            record = _TaskRecord(
                id=task_id,
                owner_id=owner_id,
                title=task.title,
                description=task.description,
                created_at=self._utc_now(),
                status=task.status.value,
                due_date=task.due_date.isoformat() if task.due_date is not None else None,
            )
            self._tasks[task_id] = record
        return self._to_task_read(record)

    def get_task(self, task_id: int) -> TaskRecord | None:
        with self._lock:
            record = self._tasks.get(task_id)
        if record is None:
            return None
        return TaskRecord(
            id=record.id,
            owner_id=record.owner_id,
            title=record.title,
            description=record.description,
            created_at=datetime.fromisoformat(record.created_at),
            status=TaskStatus(record.status),
            due_date=_parse_optional_datetime(record.due_date),
        )

    def task_exists(self, task_id: int) -> bool:
        with self._lock:
            return task_id in self._tasks

    def is_owner(self, task_id: int, user_id: int) -> bool:
        with self._lock:
            record = self._tasks.get(task_id)
            return record is not None and record.owner_id == user_id

    def delete_task(self, task_id: int, owner_id: int) -> int:
        """Delete an owned task together with every grant on it.

        Returns the number of grants removed with the task.
        """
        with self.transaction():
            record = self._tasks.get(task_id)
            if record is None or record.owner_id != owner_id:
                raise NotFoundError(f"task {task_id} not found")
            self._begin_write()
            removed = self.delete_all_by_task(task_id)
            del self._tasks[task_id]
        logger.info("deleted task %s with %s grant(s)", task_id, removed)
        return removed

    # grants

    def exists(self, task_id: int, user_id: int) -> bool:
        with self._lock:
            return (task_id, user_id) in self._grants

    def get_grant(self, task_id: int, user_id: int) -> AccessGrant | None:
        with self._lock:
            record = self._grants.get((task_id, user_id))
        return self._to_grant(record) if record is not None else None

    def add_grant(self, task_id: int, user_id: int, created_at: datetime) -> AccessGrant:
        with self.transaction():
            key = (task_id, user_id)
            if key in self._grants:
                raise GrantConflictError(task_id, user_id)
            if task_id not in self._tasks:
                raise NotFoundError(f"task {task_id} not found")
            if user_id not in self._users:
                raise NotFoundError(f"user {user_id} not found")
            self._begin_write()
            record = _GrantRecord(
                task_id=task_id,
                user_id=user_id,
                created_at=created_at.isoformat(),
                seq=self._grant_seq,
            )
            self._grant_seq += 1
            self._grants[key] = record
        return self._to_grant(record)

    def delete_one(self, task_id: int, user_id: int) -> int:
        with self.transaction():
            key = (task_id, user_id)
            if key not in self._grants:
                return 0
            self._begin_write()
            del self._grants[key]
            return 1

    def delete_all_by_task(self, task_id: int) -> int:
        with self.transaction():
            keys = [key for key in self._grants if key[0] == task_id]
            if keys:
                self._begin_write()
            for key in keys:
                del self._grants[key]
            return len(keys)

    def delete_all_by_user(self, user_id: int) -> int:
        with self.transaction():
            keys = [key for key in self._grants if key[1] == user_id]
            if keys:
                self._begin_write()
            for key in keys:
                del self._grants[key]
            return len(keys)

    def exists_for_task(self, task_id: int) -> bool:
        with self._lock:
            return any(key[0] == task_id for key in self._grants)

    def exists_for_user(self, user_id: int) -> bool:
        with self._lock:
            return any(key[1] == user_id for key in self._grants)

    def paged_by_user(self, user_id: int, page: int, page_size: int) -> tuple[list[AccessGrant], int]:
        with self._lock:
            records = [
                record
                for record in self._grants.values()
                if record.user_id == user_id and record.task_id in self._tasks
            ]
        records.sort(key=lambda record: (record.created_at, record.seq))
        return [self._to_grant(record) for record in records[page_slice(page, page_size)]], len(records)

    def paged_by_task(self, task_id: int, page: int, page_size: int) -> tuple[list[AccessGrant], int]:
        with self._lock:
            records = [record for record in self._grants.values() if record.task_id == task_id]
            emails = {record.user_id: self._users[record.user_id].email for record in records}
        records.sort(key=lambda record: (emails[record.user_id], record.user_id))
        return [self._to_grant(record) for record in records[page_slice(page, page_size)]], len(records)

    # persistence

    def _persist_state(self) -> None:
        if self._state_file is None:
            return

        snapshot = self._snapshot()
        self._state_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self._state_file.with_name(f"{self._state_file.name}.tmp")
        tmp_file.write_text(json.dumps(snapshot, ensure_ascii=True, sort_keys=True), encoding="utf-8")
        tmp_file.replace(self._state_file)
        logger.debug("persisted store state to %s", self._state_file)

    def _load_state(self) -> None:
        if self._state_file is None or not self._state_file.exists():
            return

        raw = self._state_file.read_text(encoding="utf-8")
        self._restore(json.loads(raw))
        logger.info(
            "loaded %s user(s), %s task(s), %s grant(s) from %s",
            len(self._users),
            len(self._tasks),
            len(self._grants),
            self._state_file,
        )

    def _restore(self, data: dict[str, Any]) -> None:
        self._users = {
            int(key): _UserRecord(**value)
            for key, value in data.get("users", {}).items()
        }
        self._user_emails = {record.email: record.id for record in self._users.values()}
        self._tasks = {
            int(key): _TaskRecord(**value)
            for key, value in data.get("tasks", {}).items()
        }
        self._grants = {}
        for value in data.get("grants", []):
            record = _GrantRecord(
                task_id=int(value["task_id"]),
                user_id=int(value["user_id"]),
                created_at=value["created_at"],
                seq=int(value["seq"]),
            )
            self._grants[(record.task_id, record.user_id)] = record

        sequences = data.get("sequences", {})
        self._user_seq = int(sequences.get("user_seq", 1))
        self._task_seq = int(sequences.get("task_seq", 1))
        self._grant_seq = int(sequences.get("grant_seq", 1))

    def _snapshot(self) -> dict[str, Any]:
        return {
            "users": {str(key): dict(value.__dict__) for key, value in self._users.items()},
            "tasks": {str(key): dict(value.__dict__) for key, value in self._tasks.items()},
            "grants": [dict(value.__dict__) for value in self._grants.values()],
            "sequences": {
                "user_seq": self._user_seq,
                "task_seq": self._task_seq,
                "grant_seq": self._grant_seq,
            },
        }

    @staticmethod
    def _to_grant(record: _GrantRecord) -> AccessGrant:
        return AccessGrant(
            task_id=record.task_id,
            user_id=record.user_id,
            created_at=datetime.fromisoformat(record.created_at),
        )

    @staticmethod
    def _to_task_read(record: _TaskRecord) -> TaskRead:
        return TaskRead(
            id=record.id,
            owner_id=record.owner_id,
            title=record.title,
            description=record.description,
            created_at=datetime.fromisoformat(record.created_at),
            status=TaskStatus(record.status),
            due_date=_parse_optional_datetime(record.due_date),
        )

    @staticmethod
    def _utc_now() -> str:
        return datetime.now(timezone.utc).isoformat()


def _parse_optional_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None
