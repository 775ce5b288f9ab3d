from enum import Enum

from sqlalchemy import Column, Text, TIMESTAMP, Integer, ForeignKey, Index, UniqueConstraint, CheckConstraint, func
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import JSONB
from pgvector.sqlalchemy import Vector

from .base import Base, EMBEDDING_DIMENSIONS


class EmbeddingType(str, Enum):
    CV_FULL_TEXT = "cv_full_text"
    CV_SKILLS = "cv_skills"
    CV_EXPERIENCE = "cv_experience"
    CV_EDUCATION = "cv_education"
    JOB_DESCRIPTION = "job_description"
    JOB_REQUIREMENTS = "job_requirements"


class Embedding(Base):
    """
    Document-level embedding owned by exactly one application or job posting.

    Identity is (embedding_type, application_id, job_posting_id) with NULL
    owners coalesced to 0, enforced by ``uq_embedding_owner``. Writes go
    through an upsert on that index.
    """
    __tablename__ = 'embedding'

    embedding_id = Column(Integer, primary_key=True, autoincrement=True)
    embedding_type = Column(Text, nullable=False)
    application_id = Column(Integer, ForeignKey('application.application_id', ondelete='CASCADE'), nullable=True)
    job_posting_id = Column(Integer, ForeignKey('job_posting.job_posting_id', ondelete='CASCADE'), nullable=True)

    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    model = Column(Text, nullable=False)
    dimensions = Column(Integer, nullable=False)
    original_text = Column(Text)
    embedding_metadata = Column('metadata', JSONB, default=dict)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=sql_text("timezone('UTC', now())"))

    __table_args__ = (
        CheckConstraint(
            '(application_id IS NULL) <> (job_posting_id IS NULL)',
            name='ck_embedding_single_owner'
        ),
        Index('idx_embedding_embedding_hnsw', 'embedding', postgresql_using='hnsw',
              postgresql_with={'m': 16, 'ef_construction': 64},
              postgresql_ops={'embedding': 'vector_cosine_ops'}),
    )


# Expression index: referenced by the upsert's ON CONFLICT target
EMBEDDING_OWNER_INDEX_ELEMENTS = [
    Embedding.embedding_type,
    func.coalesce(Embedding.application_id, 0),
    func.coalesce(Embedding.job_posting_id, 0),
]

Index('uq_embedding_owner', *EMBEDDING_OWNER_INDEX_ELEMENTS, unique=True)


class EmbeddingChunk(Base):
    """
    Embedding of one CV chunk. Offsets index into the normalized extracted text.

    All chunks of an application are replaced together.
    """
    __tablename__ = 'embedding_chunk'

    chunk_id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(Integer, ForeignKey('application.application_id', ondelete='CASCADE'), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    chunk_text = Column(Text, nullable=False)
    start_position = Column(Integer, nullable=False)
    end_position = Column(Integer, nullable=False)

    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    model = Column(Text, nullable=False)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))

    __table_args__ = (
        UniqueConstraint('application_id', 'chunk_index', name='uq_chunk_application_index'),
        CheckConstraint('end_position > start_position', name='ck_chunk_offsets'),
        Index('idx_chunk_embedding_hnsw', 'embedding', postgresql_using='hnsw',
              postgresql_with={'m': 16, 'ef_construction': 64},
              postgresql_ops={'embedding': 'vector_cosine_ops'}),
    )
