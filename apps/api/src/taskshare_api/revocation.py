"""Removal of access grants.

There are four ways to address the grants being removed, and each one carries
its own authorization rule:

* ``by_grant_id``: one grant named by its (task, grantee) pair; the requester
  must have access to the task.
* ``by_email``: one grant named by the grantee's email; owner only. An unknown
  email is reported as a generic operation error so the endpoint cannot be
  used to discover which emails are registered.
* ``all_by_task``: every grant on a task; owner only.
* ``all_by_user``: every grant naming the caller as grantee; always allowed.

All checks run before the single delete, inside one store transaction, so a
failed rule never leaves a partial change behind.
"""

from __future__ import annotations

import logging

from taskshare_api.guard import AuthorizationGuard
from taskshare_api.ports import AccessGrantStore, TaskOwnershipOracle, UserDirectory
from taskshare_api.results import ErrorCode, Result
from taskshare_api.validation import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

NOT_DELETED_MESSAGE = "Access doesn't deleted."


class RevocationWorkflow:
    def __init__(
        self,
        grants: AccessGrantStore,
        tasks: TaskOwnershipOracle,
        users: UserDirectory,
        guard: AuthorizationGuard,
    ) -> None:
        self._grants = grants
        self._tasks = tasks
        self._users = users
        self._guard = guard

    def by_grant_id(self, task_id: int, grantee_id: int, requester_id: int) -> Result[bool]:
        with self._grants.transaction():
            if not self._guard.has_access(task_id, requester_id):
                return Result.failure(ErrorCode.VALIDATION_ERROR, "User hasn't access with this task.")

            deleted = self._grants.delete_one(task_id, grantee_id)
            if deleted == 0:
                if not self._tasks.task_exists(task_id):
                    return Result.failure(ErrorCode.NOT_FOUND, "Access not found.")
                return Result.failure(ErrorCode.INVALID_OPERATION, NOT_DELETED_MESSAGE)

        logger.info("user %s removed grant of user %s on task %s", requester_id, grantee_id, task_id)
        return Result.success(True)

    def by_email(self, task_id: int, owner_id: int, email: str | None) -> Result[bool]:
        normalized = normalize_email(email)
        if not is_valid_email(normalized):
            return Result.failure(ErrorCode.VALIDATION_ERROR, "Email address is incorrect.")

        with self._grants.transaction():
            if not self._tasks.is_owner(task_id, owner_id):
                return Result.failure(ErrorCode.VALIDATION_ERROR, "User doesn't have access to this task.")

            grantee = self._users.resolve_by_email(normalized)
            if grantee is None:
                return Result.failure(ErrorCode.INVALID_OPERATION, "Operation error.")

            if self._grants.delete_one(task_id, grantee.id) == 0:
                return Result.failure(ErrorCode.INVALID_OPERATION, NOT_DELETED_MESSAGE)

        logger.info("owner %s removed grant of user %s on task %s", owner_id, grantee.id, task_id)
        return Result.success(True)

    def all_by_task(self, task_id: int, owner_id: int) -> Result[int]:
        with self._grants.transaction():
            task = self._tasks.get_task(task_id)
            if task is None:
                return Result.failure(ErrorCode.VALIDATION_ERROR, "Only the task owner can delete accesses.")
            if task.owner_id != owner_id:
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    "You do not have permission to delete accesses for this task.",
                )

            if not self._grants.exists_for_task(task_id):
                return Result.failure(ErrorCode.INVALID_OPERATION, "There are no shared accesses for this task.")

            deleted = self._grants.delete_all_by_task(task_id)

        logger.info("owner %s removed %s grant(s) on task %s", owner_id, deleted, task_id)
        return Result.success(deleted)

    def all_by_user(self, user_id: int) -> Result[int]:
        with self._grants.transaction():
            if not self._grants.exists_for_user(user_id):
                return Result.failure(ErrorCode.INVALID_OPERATION, "There are no tasks shared with you.")

            deleted = self._grants.delete_all_by_user(user_id)

        logger.info("user %s dropped %s shared task(s)", user_id, deleted)
        return Result.success(deleted)
