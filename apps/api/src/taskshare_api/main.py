from __future__ import annotations

import logging
from typing import TypeVar

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from taskshare_api.grants import GrantWorkflow
from taskshare_api.guard import AuthorizationGuard
from taskshare_api.logging_setup import setup_logging
from taskshare_api.queries import AccessQueryService
from taskshare_api.results import ErrorCode, Result
from taskshare_api.revocation import RevocationWorkflow
from taskshare_api.schemas import (
    AccessCheck,
    AccessEmailRequest,
    DeletedCount,
    PagedResult,
    SharedTaskRead,
    TaskAccessList,
    TaskCreate,
    TaskRead,
    UserCreate,
    UserIdentity,
)
from taskshare_api.settings import Settings
from taskshare_api.store import ConflictError, InMemoryStore, NotFoundError

T = TypeVar("T")

settings = Settings.from_env()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="taskshare api", version="0.1.0")
store = InMemoryStore(state_file=settings.state_file)
guard = AuthorizationGuard(grants=store, tasks=store)
grant_workflow = GrantWorkflow(grants=store, tasks=store, users=store)
revocation_workflow = RevocationWorkflow(grants=store, tasks=store, users=store, guard=guard)
access_queries = AccessQueryService(grants=store, tasks=store, users=store, max_page_size=settings.max_page_size)

_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.INVALID_OPERATION: 409,
}

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_origin_regex=settings.cors_allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/users", response_model=UserIdentity)
def create_user(payload: UserCreate) -> UserIdentity:
    try:
        return store.create_user(payload)
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.post("/tasks", response_model=TaskRead)
def create_task(payload: TaskCreate, x_user_id: int | None = Header(default=None)) -> TaskRead:
    owner_id = _require_user(x_user_id)
    try:
        return store.create_task(owner_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: int, x_user_id: int | None = Header(default=None)) -> None:
    owner_id = _require_user(x_user_id)
    try:
        store.delete_task(task_id, owner_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/access", response_model=PagedResult[SharedTaskRead])
def list_shared_tasks(
    page: int = 1,
    page_size: int | None = None,
    x_user_id: int | None = Header(default=None),
) -> PagedResult[SharedTaskRead]:
    user_id = _require_user(x_user_id)
    if page_size is None:
        page_size = settings.default_page_size
    result = access_queries.get_shared_tasks_by_user_id(user_id, page, page_size)
    return _unwrap(result)


@app.get("/access/tasks/{task_id}/shared", response_model=SharedTaskRead)
def get_shared_task(task_id: int, x_user_id: int | None = Header(default=None)) -> SharedTaskRead:
    user_id = _require_user(x_user_id)
    return _unwrap(access_queries.get_shared_task_by_id(task_id, user_id))


@app.get("/access/tasks/{task_id}/users", response_model=TaskAccessList)
def list_task_grantees(
    task_id: int,
    page: int = 1,
    page_size: int | None = None,
    x_user_id: int | None = Header(default=None),
) -> TaskAccessList:
    owner_id = _require_user(x_user_id)
    if page_size is None:
        page_size = settings.default_page_size
    result = access_queries.get_users_with_task_access(task_id, owner_id, page, page_size)
    return _unwrap(result)


@app.get("/access/tasks/{task_id}/check", response_model=AccessCheck)
def check_task_access(task_id: int, x_user_id: int | None = Header(default=None)) -> AccessCheck:
    user_id = _require_user(x_user_id)
    return AccessCheck(task_id=task_id, user_id=user_id, has_access=guard.has_access(task_id, user_id))


@app.post("/access/tasks/{task_id}/share-task", response_model=UserIdentity, status_code=201)
def share_task(
    task_id: int,
    payload: AccessEmailRequest,
    x_user_id: int | None = Header(default=None),
) -> UserIdentity:
    owner_id = _require_user(x_user_id)
    return _unwrap(grant_workflow.create(task_id, owner_id, payload.email))


@app.delete("/access/tasks/{task_id}/by-email", status_code=204)
def revoke_by_email(
    task_id: int,
    email: str | None = None,
    x_user_id: int | None = Header(default=None),
) -> None:
    owner_id = _require_user(x_user_id)
    _unwrap(revocation_workflow.by_email(task_id, owner_id, email))


@app.delete("/access/tasks/{task_id}/users/{user_id}", status_code=204)
def revoke_by_grant_id(task_id: int, user_id: int, x_user_id: int | None = Header(default=None)) -> None:
    requester_id = _require_user(x_user_id)
    _unwrap(revocation_workflow.by_grant_id(task_id, user_id, requester_id))


@app.delete("/access/tasks/{task_id}", response_model=DeletedCount)
def revoke_all_for_task(task_id: int, x_user_id: int | None = Header(default=None)) -> DeletedCount:
    owner_id = _require_user(x_user_id)
    return DeletedCount(deleted=_unwrap(revocation_workflow.all_by_task(task_id, owner_id)))


@app.delete("/access/users/my", response_model=DeletedCount)
def revoke_all_for_me(x_user_id: int | None = Header(default=None)) -> DeletedCount:
    user_id = _require_user(x_user_id)
    return DeletedCount(deleted=_unwrap(revocation_workflow.all_by_user(user_id)))


def _require_user(user_id: int | None) -> int:
    if user_id is None:
        raise HTTPException(status_code=401, detail="missing user id")
    return user_id


def _unwrap(result: Result[T]) -> T:
    if result.error is not None:
        logger.debug("request failed with %s: %s", result.error.code.value, result.error.message)
        raise HTTPException(
            status_code=_STATUS_BY_CODE[result.error.code],
            detail=result.error.message,
            headers={"X-Error-Code": result.error.code.value},
        )
    return result.value  # type: ignore[return-value]
