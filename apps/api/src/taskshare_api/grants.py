from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from taskshare_api.ports import AccessGrantStore, GrantConflictError, TaskOwnershipOracle, UserDirectory
from taskshare_api.results import ErrorCode, Result
from taskshare_api.schemas import UserIdentity
from taskshare_api.validation import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

ALREADY_SHARED_MESSAGE = "User already has access to this task."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GrantWorkflow:
    def __init__(
        self,
        grants: AccessGrantStore,
        tasks: TaskOwnershipOracle,
        users: UserDirectory,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._grants = grants
        self._tasks = tasks
        self._users = users
        self._clock = clock

    def create(self, task_id: int, owner_id: int, grantee_email: str | None) -> Result[UserIdentity]:
        """Give the user behind ``grantee_email`` read access to an owned task.

        Every rule is checked before the grant is written, all inside one store
        transaction. The existence check only produces the friendly message;
        the store's uniqueness constraint is what keeps a pair from being
        granted twice when two requests race.
        """
        email = normalize_email(grantee_email)
        if not is_valid_email(email):
            return Result.failure(ErrorCode.VALIDATION_ERROR, "Email address is incorrect.")

        with self._grants.transaction():
            grantee = self._users.resolve_by_email(email)
            if grantee is None:
                return Result.failure(ErrorCode.NOT_FOUND, "User not found.")

            if not self._tasks.is_owner(task_id, owner_id):
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    "Current user doesn't have access to this task.",
                )

            if grantee.id == owner_id:
                return Result.failure(ErrorCode.VALIDATION_ERROR, "User is owner in this task.")

            if self._grants.exists(task_id, grantee.id):
                return Result.failure(ErrorCode.VALIDATION_ERROR, ALREADY_SHARED_MESSAGE)

            try:
                self._grants.add_grant(task_id, grantee.id, self._clock())
            except GrantConflictError:
                logger.info("concurrent grant for task %s and user %s lost the race", task_id, grantee.id)
                return Result.failure(ErrorCode.VALIDATION_ERROR, ALREADY_SHARED_MESSAGE)

        logger.info("task %s shared with user %s by owner %s", task_id, grantee.id, owner_id)
        return Result.success(grantee)
