import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func

from database.models import Skill, SkillAlias
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SkillRepository(BaseRepository):
    def get_active_skills(self) -> List[Skill]:
        stmt = select(Skill).where(Skill.is_active.is_(True)).order_by(Skill.priority.desc(), Skill.skill_id)
        return list(self.db.execute(stmt).scalars().all())

    def get_active_aliases(self) -> List[SkillAlias]:
        """Active aliases whose skill is also active."""
        stmt = (
            select(SkillAlias)
            .join(Skill, Skill.skill_id == SkillAlias.skill_id)
            .where(SkillAlias.is_active.is_(True), Skill.is_active.is_(True))
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_by_id(self, skill_id: int) -> Optional[Skill]:
        stmt = select(Skill).where(Skill.skill_id == skill_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_canonical_name(self, canonical_name: str) -> Optional[Skill]:
        stmt = select(Skill).where(func.lower(Skill.canonical_name) == canonical_name.strip().lower())
        return self.db.execute(stmt).scalar_one_or_none()

    def get_alias(self, skill_id: int, alias_name: str) -> Optional[SkillAlias]:
        stmt = select(SkillAlias).where(
            SkillAlias.skill_id == skill_id,
            func.lower(SkillAlias.alias_name) == alias_name.strip().lower(),
        )
        return self.db.execute(stmt).scalars().first()

    def create_skill(
        self,
        canonical_name: str,
        category: str,
        description: Optional[str] = None,
        priority: int = 5,
        embedding: Optional[List[float]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Skill:
        skill = Skill(
            canonical_name=canonical_name.strip(),
            category=category,
            description=description,
            priority=priority,
            embedding=embedding,
            is_active=True,
            skill_metadata=metadata or {},
        )
        return self._add(skill)

    def create_alias(
        self,
        skill_id: int,
        alias_name: str,
        confidence: int = 10,
        context: Optional[str] = None,
    ) -> SkillAlias:
        alias = SkillAlias(
            skill_id=skill_id,
            alias_name=alias_name.strip(),
            confidence=confidence,
            context=context,
            is_active=True,
        )
        return self._add(alias)
