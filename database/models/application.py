from sqlalchemy import Column, Text, TIMESTAMP, Integer, Boolean, Float, ForeignKey, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.orm import relationship

from .base import Base


class JobPosting(Base):
    """
    Job posting owned by the recruitment collaborator.

    The screening pipeline only reads it: title/description/requirements/skills
    build the job embedding text; experience range and education level drive
    the experience and education sub-scores.
    """
    __tablename__ = 'job_posting'

    job_posting_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    requirements = Column(Text)
    skills = Column(Text)  # Free text, comma or whitespace separated
    experience_level = Column(Text)  # junior|mid|senior|...
    min_experience_years = Column(Integer)
    max_experience_years = Column(Integer)
    education_level = Column(Text)
    is_active = Column(Boolean, default=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=sql_text("timezone('UTC', now())"))

    applications = relationship("Application", back_populates="job_posting")


class Application(Base):
    """
    Candidate application. The pipeline writes back the screening_* fields.
    """
    __tablename__ = 'application'

    application_id = Column(Integer, primary_key=True, autoincrement=True)
    job_posting_id = Column(Integer, ForeignKey('job_posting.job_posting_id', ondelete='CASCADE'), nullable=False)

    candidate_name = Column(Text)
    candidate_email = Column(Text)
    resume_url = Column(Text)
    status = Column(Text, default='submitted')

    is_screening_completed = Column(Boolean, nullable=False, default=False)
    screening_score = Column(Float)
    screening_status = Column(Text)
    screening_completed_at = Column(TIMESTAMP(timezone=True))

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=sql_text("timezone('UTC', now())"))

    job_posting = relationship("JobPosting", back_populates="applications")

    __table_args__ = (
        Index('idx_application_job_posting', 'job_posting_id'),
    )
