from __future__ import annotations

import logging

from taskshare_api.ports import AccessGrantStore, TaskOwnershipOracle

logger = logging.getLogger(__name__)


class AuthorizationGuard:
    """Single answer to "may this user act on this task?".

    A user has access when they own the task or hold a grant on it. Task and
    comment handlers call this before touching a task the caller does not own.
    """

    def __init__(self, grants: AccessGrantStore, tasks: TaskOwnershipOracle) -> None:
        self._grants = grants
        self._tasks = tasks

    def has_access(self, task_id: int, user_id: int) -> bool:
        allowed = self._tasks.is_owner(task_id, user_id) or self._grants.exists(task_id, user_id)
        logger.debug("access check task=%s user=%s allowed=%s", task_id, user_id, allowed)
        return allowed
