"""Contracts the access core needs from persistence and the rest of the system.

``InMemoryStore`` implements all three; tests and other deployments may plug in
anything that satisfies the same shape.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from taskshare_api.schemas import TaskStatus, UserIdentity


class GrantConflictError(Exception):
    """Raised by a grant store when the (task_id, user_id) pair is already taken."""

    def __init__(self, task_id: int, user_id: int) -> None:
        super().__init__(f"grant for task {task_id} and user {user_id} already exists")
        self.task_id = task_id
        self.user_id = user_id


@dataclass(frozen=True)
class AccessGrant:
    task_id: int
    user_id: int
    created_at: datetime


@dataclass(frozen=True)
class TaskRecord:
    id: int
    owner_id: int
    title: str
    description: str | None
    created_at: datetime
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: datetime | None = None


class TaskOwnershipOracle(Protocol):
    def is_owner(self, task_id: int, user_id: int) -> bool: ...

    def task_exists(self, task_id: int) -> bool: ...

    def get_task(self, task_id: int) -> TaskRecord | None: ...


class UserDirectory(Protocol):
    def resolve_by_email(self, normalized_email: str) -> UserIdentity | None: ...

    def get_user(self, user_id: int) -> UserIdentity | None: ...


class AccessGrantStore(Protocol):
    def transaction(self) -> AbstractContextManager[None]: ...

    def exists(self, task_id: int, user_id: int) -> bool: ...

    def add_grant(self, task_id: int, user_id: int, created_at: datetime) -> AccessGrant: ...

    def delete_one(self, task_id: int, user_id: int) -> int: ...

    def delete_all_by_task(self, task_id: int) -> int: ...

    def delete_all_by_user(self, user_id: int) -> int: ...

    def exists_for_task(self, task_id: int) -> bool: ...

    def exists_for_user(self, user_id: int) -> bool: ...

    def get_grant(self, task_id: int, user_id: int) -> AccessGrant | None: ...

    def paged_by_user(self, user_id: int, page: int, page_size: int) -> tuple[list[AccessGrant], int]: ...

    def paged_by_task(self, task_id: int, page: int, page_size: int) -> tuple[list[AccessGrant], int]: ...
