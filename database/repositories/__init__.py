from database.repositories.base import BaseRepository
from database.repositories.screening import ScreeningResultRepository
from database.repositories.embedding import EmbeddingRepository
from database.repositories.skill import SkillRepository
from database.repositories.application import ApplicationRepository
from database.repositories.job_posting import JobPostingRepository

__all__ = [
    'BaseRepository',
    'ScreeningResultRepository',
    'EmbeddingRepository',
    'SkillRepository',
    'ApplicationRepository',
    'JobPostingRepository',
]
