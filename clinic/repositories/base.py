"""Generic SQLAlchemy repository.

Every entity is persisted through the same small contract: ``find``,
``count``, ``find_by_id``, ``find_one``, ``create``, ``save``,
``update_by_id`` and ``delete_by_id``. Integrity violations raised by the
database (unique indexes, foreign keys) surface as ``ConflictError`` so
callers never have to check before they write. Any other database failure
at commit becomes ``InternalError``.
"""
import logging
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import Base
from ..core.exceptions import ConflictError, InternalError

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)

# (column name, "asc" | "desc")
SortSpec = Tuple[str, str]


class Repository(Generic[ModelType]):
    model: Type[ModelType]
    sortable_fields: Tuple[str, ...] = ("created_at",)
    searchable_fields: Tuple[str, ...] = ()
    conflict_message = "Record conflicts with an existing record"

    def __init__(self, db: Session):
        self.db = db

    def _query(self, filters: Optional[Dict[str, Any]] = None, search: Optional[str] = None):
        query = self.db.query(self.model)
        for field, value in (filters or {}).items():
            query = query.filter(getattr(self.model, field) == value)
        if search and self.searchable_fields:
            pattern = f"%{search}%"
            query = query.filter(or_(*(
                getattr(self.model, field).ilike(pattern) for field in self.searchable_fields
            )))
        return query

    def find(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[ModelType]:
        query = self._query(filters, search)
        if sort:
            field, order = sort
            column = getattr(self.model, field)
            query = query.order_by(column.desc() if order == "desc" else column.asc())
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, filters: Optional[Dict[str, Any]] = None, search: Optional[str] = None) -> int:
        return self._query(filters, search).count()

    def find_by_id(self, record_id: int) -> Optional[ModelType]:
        return self.db.get(self.model, record_id)

    def find_one(self, **filters) -> Optional[ModelType]:
        return self._query(filters).first()

    def create(self, data: Dict[str, Any], conflict_message: str = None) -> ModelType:
        """Insert a row in its own transaction.

        Raises ConflictError when the insert violates a constraint.
        """
        return self.save(self.model(**data), conflict_message)

    def save(self, record: ModelType, conflict_message: str = None) -> ModelType:
        """Add a built record, with anything attached to it, in one commit."""
        self.db.add(record)
        self._commit(conflict_message)
        self.db.refresh(record)
        return record

    def update_by_id(
        self, record_id: int, patch: Dict[str, Any], conflict_message: str = None
    ) -> Optional[ModelType]:
        record = self.find_by_id(record_id)
        if record is None:
            return None
        for field, value in patch.items():
            setattr(record, field, value)
        self._commit(conflict_message)
        self.db.refresh(record)
        return record

    def delete_by_id(self, record_id: int, conflict_message: str = None) -> Optional[ModelType]:
        record = self.find_by_id(record_id)
        if record is None:
            return None
        self.db.delete(record)
        self._commit(conflict_message)
        return record

    def _commit(self, conflict_message: Optional[str]) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(f"Integrity violation on {self.model.__tablename__}: {exc.orig}")
            raise ConflictError(conflict_message or self.conflict_message) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Database error on {self.model.__tablename__}: {exc}")
            raise InternalError(f"Could not save {self.model.__tablename__}") from exc
