import logging

from sqlalchemy.orm import Session

from database.repositories import (
    ScreeningResultRepository,
    EmbeddingRepository,
    SkillRepository,
    ApplicationRepository,
    JobPostingRepository,
)

logger = logging.getLogger(__name__)


class ScreeningRepository:
    """Facade over the per-table repositories, sharing one Session."""

    def __init__(self, db: Session):
        self.db = db
        self.screening = ScreeningResultRepository(db)
        self.embedding = EmbeddingRepository(db)
        self.skill = SkillRepository(db)
        self.application = ApplicationRepository(db)
        self.job_posting = JobPostingRepository(db)
