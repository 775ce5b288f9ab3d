from .base import Base, EMBEDDING_DIMENSIONS
from .application import Application, JobPosting
from .screening import ScreeningResult, ScreeningStatus
from .embedding import Embedding, EmbeddingChunk, EmbeddingType, EMBEDDING_OWNER_INDEX_ELEMENTS
from .skill import Skill, SkillAlias, SkillCategory

__all__ = [
    'Base',
    'EMBEDDING_DIMENSIONS',
    'Application',
    'JobPosting',
    'ScreeningResult',
    'ScreeningStatus',
    'Embedding',
    'EmbeddingChunk',
    'EmbeddingType',
    'EMBEDDING_OWNER_INDEX_ELEMENTS',
    'Skill',
    'SkillAlias',
    'SkillCategory',
]
