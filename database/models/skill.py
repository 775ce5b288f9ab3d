from enum import Enum

from sqlalchemy import Column, Text, TIMESTAMP, Integer, Boolean, ForeignKey, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from pgvector.sqlalchemy import Vector

from .base import Base, EMBEDDING_DIMENSIONS


class SkillCategory(str, Enum):
    PROGRAMMING_LANGUAGE = "programming_language"
    FRAMEWORK = "framework"
    DATABASE = "database"
    TOOL = "tool"
    CLOUD_PLATFORM = "cloud_platform"
    METHODOLOGY = "methodology"
    SOFT_SKILL = "soft_skill"
    CERTIFICATION = "certification"
    OTHER = "other"


class Skill(Base):
    """Canonical skill entry of the taxonomy."""
    __tablename__ = 'skill'

    skill_id = Column(Integer, primary_key=True, autoincrement=True)
    canonical_name = Column(Text, nullable=False, unique=True)
    category = Column(Text, nullable=False, default=SkillCategory.OTHER.value)
    description = Column(Text)

    # Optional, enables semantic matching
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=True)

    priority = Column(Integer, nullable=False, default=5)
    is_active = Column(Boolean, nullable=False, default=True)
    skill_metadata = Column('metadata', JSONB, default=dict)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=sql_text("timezone('UTC', now())"))

    aliases = relationship("SkillAlias", back_populates="skill", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_skill_category', 'category'),
    )


class SkillAlias(Base):
    """Alternative spelling of a skill. confidence is 1-10."""
    __tablename__ = 'skill_alias'

    alias_id = Column(Integer, primary_key=True, autoincrement=True)
    skill_id = Column(Integer, ForeignKey('skill.skill_id', ondelete='CASCADE'), nullable=False)
    alias_name = Column(Text, nullable=False)
    context = Column(Text)
    confidence = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))

    skill = relationship("Skill", back_populates="aliases")

    __table_args__ = (
        UniqueConstraint('alias_name', 'skill_id', name='uq_skill_alias'),
        CheckConstraint('confidence BETWEEN 1 AND 10', name='ck_alias_confidence'),
    )
