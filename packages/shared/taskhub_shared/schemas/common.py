from enum import Enum
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class JoinRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class JoinRequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Terminal states are never re-opened
JOIN_REQUEST_TRANSITIONS: dict[JoinRequestStatus, dict[JoinRequestAction, JoinRequestStatus]] = {
    JoinRequestStatus.PENDING: {
        JoinRequestAction.APPROVE: JoinRequestStatus.APPROVED,
        JoinRequestAction.REJECT: JoinRequestStatus.REJECTED,
    },
    JoinRequestStatus.APPROVED: {},
    JoinRequestStatus.REJECTED: {},
}


class CamelModel(BaseModel):
    """Base for wire schemas: camelCase out, camelCase or snake_case in."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


MAX_PAGE_SIZE = 100


def clamp_limit(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_SIZE))


def paginate(page: int, limit: int, total: int) -> Pagination:
    total_pages = (total + limit - 1) // limit if limit else 0
    return Pagination(page=page, limit=limit, total=total, total_pages=total_pages)


class APIResponse(CamelModel, Generic[T]):
    status: Literal["success", "error"] = "success"
    data: Optional[T] = None


class MessageResponse(CamelModel):
    status: Literal["success", "error"] = "success"
    message: str


class PageResponse(CamelModel, Generic[T]):
    status: Literal["success", "error"] = "success"
    count: int
    total: int
    page: int
    total_pages: int
    data: List[T]

    @classmethod
    def build(cls, items: list, pagination: Pagination) -> "PageResponse":
        return cls(
            count=len(items),
            total=pagination.total,
            page=pagination.page,
            total_pages=pagination.total_pages,
            data=items,
        )
