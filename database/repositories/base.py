from typing import TypeVar

from sqlalchemy.orm import Session

ModelT = TypeVar('ModelT')


class BaseRepository:
    """Shared Session holder. Transactions are owned by ``screening_uow``."""

    def __init__(self, db: Session):
        self.db = db

    def _add(self, instance: ModelT) -> ModelT:
        """Add a new row and flush so its generated primary key is set."""
        self.db.add(instance)
        self.db.flush()
        return instance
