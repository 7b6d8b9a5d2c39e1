from __future__ import annotations

from taskshare_api.ports import AccessGrant, AccessGrantStore, TaskOwnershipOracle, UserDirectory
from taskshare_api.results import ErrorCode, Result
from taskshare_api.schemas import PagedResult, SharedTaskRead, TaskAccessList, UserIdentity
from taskshare_api.validation import MAX_PAGE_SIZE, validate_paging

TASK_NOT_FOUND_MESSAGE = "Task not found."


class AccessQueryService:
    """Read side of sharing: what a grantee sees and who an owner shared with."""

    def __init__(
        self,
        grants: AccessGrantStore,
        tasks: TaskOwnershipOracle,
        users: UserDirectory,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._grants = grants
        self._tasks = tasks
        self._users = users
        self._max_page_size = max_page_size

    def get_shared_task_by_id(self, task_id: int, user_id: int) -> Result[SharedTaskRead]:
        # Grantee view only; owners read their own tasks elsewhere.
        grant = self._grants.get_grant(task_id, user_id)
        if grant is None:
            return Result.failure(ErrorCode.NOT_FOUND, TASK_NOT_FOUND_MESSAGE)

        shared = self._to_shared_task(grant)
        if shared is None:
            return Result.failure(ErrorCode.NOT_FOUND, TASK_NOT_FOUND_MESSAGE)
        return Result.success(shared)

    def get_shared_tasks_by_user_id(
        self, user_id: int, page: int = 1, page_size: int = 10
    ) -> Result[PagedResult[SharedTaskRead]]:
        paging_error = validate_paging(page, page_size, max_page_size=self._max_page_size)
        if paging_error is not None:
            return Result.failure(ErrorCode.VALIDATION_ERROR, paging_error)

        grants, total_count = self._grants.paged_by_user(user_id, page, page_size)
        items = [shared for shared in (self._to_shared_task(grant) for grant in grants) if shared is not None]
        return Result.success(
            PagedResult[SharedTaskRead](items=items, total_count=total_count, page=page, page_size=page_size)
        )

    def get_users_with_task_access(
        self, task_id: int, owner_id: int, page: int = 1, page_size: int = 10
    ) -> Result[TaskAccessList]:
        paging_error = validate_paging(page, page_size, max_page_size=self._max_page_size)
        if paging_error is not None:
            return Result.failure(ErrorCode.VALIDATION_ERROR, paging_error)

        task = self._tasks.get_task(task_id)
        if task is None or task.owner_id != owner_id:
            return Result.failure(ErrorCode.NOT_FOUND, "Task not found or you do not have permission.")

        grants, total_count = self._grants.paged_by_task(task_id, page, page_size)
        users: list[UserIdentity] = []
        for grant in grants:
            user = self._users.get_user(grant.user_id)
            if user is not None:
                users.append(user)

        return Result.success(
            TaskAccessList(
                id=task.id,
                title=task.title,
                users=PagedResult[UserIdentity](
                    items=users,
                    total_count=total_count,
                    page=page,
                    page_size=page_size,
                ),
            )
        )

    def _to_shared_task(self, grant: AccessGrant) -> SharedTaskRead | None:
        task = self._tasks.get_task(grant.task_id)
        if task is None:
            return None
        return SharedTaskRead(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            due_date=task.due_date,
            owner=self._users.get_user(task.owner_id),
            created_at=task.created_at,
            shared_at=grant.created_at,
        )
