import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update

from database.models import Application
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ApplicationRepository(BaseRepository):
    def get_by_id(self, application_id: int) -> Optional[Application]:
        stmt = select(Application).where(Application.application_id == application_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_job_posting(self, job_posting_id: int) -> List[Application]:
        stmt = (
            select(Application)
            .where(Application.job_posting_id == job_posting_id)
            .order_by(Application.application_id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def update_screening_status(
        self,
        application_id: int,
        screening_status: str,
        screening_score: Optional[float] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        """Write the screening outcome back onto the application."""
        values = {
            'screening_status': screening_status,
            'is_screening_completed': completed_at is not None,
            'screening_completed_at': completed_at,
        }
        if screening_score is not None:
            values['screening_score'] = screening_score
        self.db.execute(
            update(Application)
            .where(Application.application_id == application_id)
            .values(**values)
        )
