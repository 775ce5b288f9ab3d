from typing import Optional

from sqlalchemy import select

from database.models import JobPosting
from database.repositories.base import BaseRepository


class JobPostingRepository(BaseRepository):
    def get_by_id(self, job_posting_id: int) -> Optional[JobPosting]:
        stmt = select(JobPosting).where(JobPosting.job_posting_id == job_posting_id)
        return self.db.execute(stmt).scalar_one_or_none()
