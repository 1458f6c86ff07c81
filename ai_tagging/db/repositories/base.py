"""Generic base repository for SQLAlchemy models."""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Generic base repository providing standard CRUD operations.

    Repositories never commit; the service layer owns transaction boundaries.
    The one exception is the conditional claim in TaggingJobRepository, which
    must commit to make the claim visible to competing dispatchers.
    Repositories never raise HTTPException; they return None or raise domain
    exceptions.
    """

    model: type[T]

    def __init__(self, db: Session) -> None:
        self.db = db

    # --- Retrieval ---

    def get(self, id_: Any) -> T | None:
        """Get entity by primary key."""
        return self.db.get(self.model, id_)

    def get_with_filter(self, id_: Any, **filters: Any) -> T | None:
        """Get by PK with additional filters (e.g., team check)."""
        stmt = select(self.model).where(self.model.id == id_)
        for key, value in filters.items():
            stmt = stmt.where(getattr(self.model, key) == value)
        return self.db.scalar(stmt)

    def list_by(self, **filters: Any) -> list[T]:
        """List entities matching filters."""
        stmt = select(self.model)
        for key, value in filters.items():
            stmt = stmt.where(getattr(self.model, key) == value)
        return list(self.db.scalars(stmt).all())

    def count(self, **filters: Any) -> int:
        """Count entities matching filters. None-valued filters are ignored."""
        stmt = select(func.count()).select_from(self.model)
        for key, value in filters.items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        return self.db.scalar(stmt) or 0

    # --- Persistence (never commit) ---

    def add(self, obj: T) -> T:
        self.db.add(obj)
        return obj

    def add_all(self, objs: list[T]) -> list[T]:
        self.db.add_all(objs)
        return objs

    def flush(self) -> None:
        """Flush pending changes (get IDs without commit)."""
        self.db.flush()

    # --- Update ---

    def partial_update(self, obj: T, skip_none: bool = True, **fields: Any) -> T:
        """Update entity fields."""
        for key, value in fields.items():
            if skip_none and value is None:
                continue
            setattr(obj, key, value)
        self.db.add(obj)
        return obj
