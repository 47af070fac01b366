# backend/barberbook/repositories/base_repository.py
"""
Base repository for the booking service.

Repositories never commit: transaction boundaries belong to the service
layer (``BaseService.transaction``). Database errors surface as
``RepositoryException``.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database import get_dialect_name

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """Lookup by id and flushed inserts for a single model."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as exc:
            self.logger.error("Lookup failed", extra={"entity_id": id, "error": str(exc)})
            raise RepositoryException(f"Failed to load {self.model.__name__} {id}") from exc

    def create(self, **kwargs: Any) -> T:
        """Add and flush a new row; the caller's transaction commits it."""
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error on insert", extra={"error": str(exc)})
            raise RepositoryException(
                f"Integrity constraint violated creating {self.model.__name__}"
            ) from exc
        except SQLAlchemyError as exc:
            self.logger.error("Insert failed", extra={"error": str(exc)})
            raise RepositoryException(f"Failed to create {self.model.__name__}") from exc

    def _apply_eager_loading(self, query: Query) -> Query:
        """Hook for subclasses that want relationships loaded with the row."""
        return query
