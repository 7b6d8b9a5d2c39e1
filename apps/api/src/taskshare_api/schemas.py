from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, computed_field, model_validator

from taskshare_api.validation import is_valid_email, normalize_email

T = TypeVar("T")


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class UserCreate(BaseModel):
    email: str

    @model_validator(mode="after")
    def normalize_fields(self) -> "UserCreate":
        self.email = normalize_email(self.email)
        if not is_valid_email(self.email):
            raise ValueError("email must be shaped local@domain")
        return self


class UserIdentity(BaseModel):
    id: int
    email: str


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: datetime | None = None

    @model_validator(mode="after")
    def normalize_fields(self) -> "TaskCreate":
        self.title = self.title.strip()
        if self.description is not None:
            self.description = self.description.strip() or None
        return self


class TaskRead(BaseModel):
    id: int
    owner_id: int
    title: str
    description: str | None = None
    status: TaskStatus
    due_date: datetime | None = None
    created_at: datetime


class SharedTaskRead(BaseModel):
    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    due_date: datetime | None = None
    owner: UserIdentity | None = None
    created_at: datetime
    shared_at: datetime


class AccessEmailRequest(BaseModel):
    # Shape is checked by the grant workflow so the failure comes back as a
    # regular business error instead of a schema error.
    email: str = ""


class PagedResult(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages


class TaskAccessList(BaseModel):
    id: int
    title: str
    users: PagedResult[UserIdentity]


class DeletedCount(BaseModel):
    deleted: int


class AccessCheck(BaseModel):
    task_id: int
    user_id: int
    has_access: bool
