"""
Repository base for the library circulation service.

Repositories wrap SQLAlchemy queries and return pydantic models, so route
and tool handlers never touch ORM objects. Each write method commits once
through ``safe_commit``; all precondition checks run before any write.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.base import CamelModel
from .errors import (
    ConflictError,
    DuplicateError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    RepositoryException,
)
from .schema import Base
from .session import safe_query

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

Clock = Callable[[], datetime]

__all__ = [
    "BaseRepository",
    "Clock",
    "ConflictError",
    "DuplicateError",
    "InvalidStateError",
    "LimitExceededError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "generate_id",
]


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        if self.page < 1:
            raise ValueError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValueError("Page size must be between 1 and 100")


class PaginatedResponse(CamelModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


def generate_id(session: Session, model_class: type[Base], prefix: str) -> str:
    """
    Generate a sortable, prefixed ID such as ``reservation_202401151030120001``.

    IDs embed the creation second plus a per-second counter, so sorting by
    ID follows creation order.
    """
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    count = (
        safe_query(
            session,
            lambda s: s.execute(
                select(func.count())
                .select_from(model_class)
                .where(model_class.id.like(f"{prefix}_{timestamp}%"))
            ).scalar(),
            f"Failed to count {model_class.__name__} rows for ID generation",
        )
        or 0
    )
    return f"{prefix}_{timestamp}{count + 1:04d}"


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository providing lookups shared by all entities.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the pydantic response schema."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db_obj(self, id: str) -> ModelType | None:
        query = select(self.model_class).where(self.model_class.id == str(id))
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.entity_name} by ID",
        )

    def _require_db_obj(self, id: str) -> ModelType:
        db_obj = self._get_db_obj(id)
        if db_obj is None:
            raise NotFoundError(f"{self.entity_name} with ID {id} not found")
        return db_obj

    def require(self, id: str) -> ResponseSchemaType:
        """Get entity by ID.

        Raises:
            NotFoundError: If the entity does not exist
        """
        return self._to_response_model(self._require_db_obj(id))

    def _paginate(self, query, pagination: PaginationParams | None) -> PaginatedResponse:
        pagination = pagination or PaginationParams()
        pagination.validate_params()

        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (
            safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                f"Failed to count {self.entity_name} rows",
            )
            or 0
        )

        page_query = query.offset(pagination.offset).limit(pagination.page_size)
        results = safe_query(
            self.session,
            lambda s: s.execute(page_query).scalars().all(),
            f"Failed to list {self.entity_name} rows",
        )

        return PaginatedResponse(
            items=[self._to_response_model(item) for item in results],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )
