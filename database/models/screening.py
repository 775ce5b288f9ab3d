from enum import Enum

from sqlalchemy import Column, Text, TIMESTAMP, Integer, Float, ForeignKey, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import JSONB

from .base import Base


class ScreeningStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ScreeningResult(Base):
    """
    One screening per application.

    Lifecycle: pending -> processing -> completed | failed. Rows are never
    deleted; a failed screening is reset to pending on retry.
    """
    __tablename__ = 'screening_result'

    screening_id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(Integer, ForeignKey('application.application_id', ondelete='CASCADE'), nullable=False)
    job_posting_id = Column(Integer, ForeignKey('job_posting.job_posting_id', ondelete='CASCADE'), nullable=False)

    status = Column(Text, nullable=False, default=ScreeningStatus.PENDING.value)
    priority = Column(Integer, nullable=False, default=0)
    queue_job_id = Column(Text)

    # Scores (0-100, except similarities which are 0-1)
    overall_score = Column(Float)
    skills_score = Column(Float)
    experience_score = Column(Float)
    education_score = Column(Float)
    vector_similarity = Column(Float)
    chunk_similarity = Column(Float)

    # Summary
    ai_summary = Column(Text)
    key_highlights = Column(JSONB, default=list)
    concerns = Column(JSONB, default=list)
    summary_details = Column(JSONB, default=dict)  # skillsAssessment, fitScore, recommendation

    # Intermediate state
    extracted_text = Column(Text)
    processed_data = Column(JSONB)

    processing_time_ms = Column(Integer)
    error_message = Column(Text)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=sql_text("timezone('UTC', now())"))
    started_at = Column(TIMESTAMP(timezone=True))
    completed_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        Index('uq_screening_application', 'application_id', unique=True),
        Index('idx_screening_job_posting', 'job_posting_id'),
        Index('idx_screening_status', 'status'),
    )
