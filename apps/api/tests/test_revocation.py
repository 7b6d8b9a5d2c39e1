from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from taskshare_api.guard import AuthorizationGuard
from taskshare_api.queries import AccessQueryService
from taskshare_api.results import ErrorCode
from taskshare_api.revocation import RevocationWorkflow
from taskshare_api.schemas import TaskCreate, UserCreate
from taskshare_api.store import InMemoryStore

_NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class _CountingStore(InMemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.delete_calls: list[str] = []

    def delete_one(self, task_id: int, user_id: int) -> int:
        self.delete_calls.append("one")
        return super().delete_one(task_id, user_id)

    def delete_all_by_task(self, task_id: int) -> int:
        self.delete_calls.append("by_task")
        return super().delete_all_by_task(task_id)

    def delete_all_by_user(self, user_id: int) -> int:
        self.delete_calls.append("by_user")
        return super().delete_all_by_user(user_id)


@dataclass
class _World:
    store: _CountingStore
    revocation: RevocationWorkflow
    queries: AccessQueryService
    owner_id: int
    grantee_id: int
    other_id: int
    task_id: int


def _build() -> _World:
    store = _CountingStore()
    owner = store.create_user(UserCreate(email="owner@test.com"))
    grantee = store.create_user(UserCreate(email="grantee@x.com"))
    other = store.create_user(UserCreate(email="other@test.com"))
    task = store.create_task(owner.id, TaskCreate(title="Plan sprint"))
    store.add_grant(task.id, grantee.id, _NOW)
    guard = AuthorizationGuard(grants=store, tasks=store)
    return _World(
        store=store,
        revocation=RevocationWorkflow(grants=store, tasks=store, users=store, guard=guard),
        queries=AccessQueryService(grants=store, tasks=store, users=store),
        owner_id=owner.id,
        grantee_id=grantee.id,
        other_id=other.id,
        task_id=task.id,
    )


def _assert_revoked(world: _World) -> None:
    assert not world.store.exists(world.task_id, world.grantee_id)
    shared = world.queries.get_shared_task_by_id(world.task_id, world.grantee_id)
    assert shared.error is not None
    assert shared.error.code == ErrorCode.NOT_FOUND


@pytest.mark.parametrize("path", ["by_grant_id", "by_email", "all_by_task", "all_by_user"])
def test_every_revocation_path_removes_grant(path: str) -> None:
    world = _build()

    if path == "by_grant_id":
        result = world.revocation.by_grant_id(world.task_id, world.grantee_id, world.owner_id)
    elif path == "by_email":
        result = world.revocation.by_email(world.task_id, world.owner_id, "grantee@x.com")
    elif path == "all_by_task":
        result = world.revocation.all_by_task(world.task_id, world.owner_id)
    else:
        result = world.revocation.all_by_user(world.grantee_id)

    assert result.is_success
    _assert_revoked(world)


def test_by_grant_id_allows_requester_holding_a_grant() -> None:
    world = _build()

    result = world.revocation.by_grant_id(world.task_id, world.grantee_id, world.grantee_id)

    assert result.is_success
    _assert_revoked(world)


def test_by_grant_id_rejects_requester_without_access() -> None:
    world = _build()

    result = world.revocation.by_grant_id(world.task_id, world.grantee_id, world.other_id)

    assert result.error is not None
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "User hasn't access with this task."
    assert world.store.exists(world.task_id, world.grantee_id)
    assert world.store.delete_calls == []


def test_by_grant_id_reports_missing_grant() -> None:
    world = _build()

    result = world.revocation.by_grant_id(world.task_id, world.other_id, world.owner_id)

    assert result.error is not None
    assert result.error.code == ErrorCode.INVALID_OPERATION
    assert result.error.message == "Access doesn't deleted."


def test_by_email_requires_ownership() -> None:
    world = _build()

    result = world.revocation.by_email(world.task_id, world.grantee_id, "grantee@x.com")

    assert result.error is not None
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "User doesn't have access to this task."
    assert world.store.exists(world.task_id, world.grantee_id)


def test_by_email_hides_unknown_email_behind_generic_error() -> None:
    world = _build()

    result = world.revocation.by_email(world.task_id, world.owner_id, "ghost@test.com")

    assert result.error is not None
    assert result.error.code == ErrorCode.INVALID_OPERATION
    assert result.error.message == "Operation error."
    assert world.store.delete_calls == []


def test_by_email_normalizes_address() -> None:
    world = _build()

    result = world.revocation.by_email(world.task_id, world.owner_id, "  GRANTEE@X.com ")

    assert result.is_success
    _assert_revoked(world)


def test_by_email_fails_when_user_holds_no_grant() -> None:
    world = _build()

    result = world.revocation.by_email(world.task_id, world.owner_id, "other@test.com")

    assert result.error is not None
    assert result.error.code == ErrorCode.INVALID_OPERATION
    assert result.error.message == "Access doesn't deleted."


def test_by_email_rejects_malformed_address() -> None:
    world = _build()

    result = world.revocation.by_email(world.task_id, world.owner_id, "not-an-email")

    assert result.error is not None
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "Email address is incorrect."


def test_all_by_task_returns_removed_count() -> None:
    world = _build()
    world.store.add_grant(world.task_id, world.other_id, _NOW)

    result = world.revocation.all_by_task(world.task_id, world.owner_id)

    assert result.is_success
    assert result.value == 2
    assert not world.store.exists_for_task(world.task_id)


def test_all_by_task_by_non_owner_leaves_grants_intact() -> None:
    world = _build()
    world.store.add_grant(world.task_id, world.other_id, _NOW)

    result = world.revocation.all_by_task(world.task_id, world.grantee_id)

    assert result.error is not None
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "You do not have permission to delete accesses for this task."
    assert world.store.exists(world.task_id, world.grantee_id)
    assert world.store.exists(world.task_id, world.other_id)
    assert world.store.delete_calls == []


def test_all_by_task_on_missing_task() -> None:
    world = _build()

    result = world.revocation.all_by_task(4242, world.owner_id)

    assert result.error is not None
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "Only the task owner can delete accesses."


def test_all_by_task_without_grants() -> None:
    world = _build()
    empty = world.store.create_task(world.owner_id, TaskCreate(title="Private"))

    result = world.revocation.all_by_task(empty.id, world.owner_id)

    assert result.error is not None
    assert result.error.code == ErrorCode.INVALID_OPERATION
    assert result.error.message == "There are no shared accesses for this task."
    assert world.store.delete_calls == []


def test_all_by_user_removes_grants_across_tasks() -> None:
    world = _build()
    second = world.store.create_task(world.other_id, TaskCreate(title="Groceries"))
    world.store.add_grant(second.id, world.grantee_id, _NOW)

    result = world.revocation.all_by_user(world.grantee_id)

    assert result.is_success
    assert result.value == 2
    assert not world.store.exists_for_user(world.grantee_id)


def test_all_by_user_without_grants_skips_delete() -> None:
    world = _build()

    result = world.revocation.all_by_user(world.other_id)

    assert result.error is not None
    assert result.error.code == ErrorCode.INVALID_OPERATION
    assert result.error.message == "There are no tasks shared with you."
    assert world.store.delete_calls == []
