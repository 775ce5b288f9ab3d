#!/usr/bin/env python3
"""
Skill Taxonomy Matcher - Resolve free-text skill mentions to canonical skills.

Matching order per candidate term:
1. exact canonical name (confidence 1.0)
2. alias (alias confidence / 10)
3. semantic: nearest active skill embedding above a threshold

Lookups are served from an immutable TaxonomySnapshot. ``refresh`` builds a
new snapshot from the database and swaps it in with a single assignment, so
readers always see either the old or the new taxonomy, never a mix.
"""
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from core.exceptions import ConflictError, NotFoundError, ProviderError, ValidationError
from core.utils import row_normalize
from database.models import SkillCategory

logger = logging.getLogger(__name__)

TERM_STRIP_PATTERN = re.compile(r'[^\w+#.-]')
MAX_TERM_LENGTH = 50
MIN_SEMANTIC_TERM_LENGTH = 3


@dataclass(frozen=True)
class SkillEntry:
    skill_id: int
    canonical_name: str
    category: str
    priority: int = 5


@dataclass(frozen=True)
class AliasEntry:
    alias_name: str
    skill_id: int
    confidence: int


@dataclass
class SkillMatch:
    skill_id: int
    canonical_name: str
    category: str
    confidence: float
    match_type: str  # exact|alias|semantic
    matched_term: str


@dataclass
class SkillExtractionResult:
    matched_skills: List[SkillMatch] = field(default_factory=list)
    unmatched_terms: List[str] = field(default_factory=list)
    skills_by_category: Dict[str, List[SkillMatch]] = field(default_factory=dict)

    @property
    def canonical_names(self) -> List[str]:
        return [m.canonical_name for m in self.matched_skills]


@dataclass(frozen=True)
class TaxonomySnapshot:
    """Read-only view of the active taxonomy."""
    skills_by_name: Mapping[str, SkillEntry]
    skills_by_id: Mapping[int, SkillEntry]
    aliases_by_name: Mapping[str, AliasEntry]
    embedding_skill_ids: Tuple[int, ...] = ()
    embedding_matrix: Optional[np.ndarray] = None  # row-normalized
    built_at: float = 0.0

    @classmethod
    def empty(cls) -> "TaxonomySnapshot":
        return cls(skills_by_name={}, skills_by_id={}, aliases_by_name={})

    @classmethod
    def build(cls, skills: Sequence, aliases: Sequence) -> "TaxonomySnapshot":
        """Build from Skill / SkillAlias rows (or objects with the same attributes)."""
        skills_by_name: Dict[str, SkillEntry] = {}
        skills_by_id: Dict[int, SkillEntry] = {}
        embedding_ids: List[int] = []
        vectors: List[Sequence[float]] = []

        for skill in skills:
            if not skill.is_active:
                continue
            entry = SkillEntry(
                skill_id=skill.skill_id,
                canonical_name=skill.canonical_name,
                category=skill.category,
                priority=skill.priority or 5,
            )
            skills_by_name[skill.canonical_name.lower()] = entry
            skills_by_id[skill.skill_id] = entry
            if skill.embedding is not None and len(skill.embedding) > 0:
                embedding_ids.append(skill.skill_id)
                vectors.append(skill.embedding)

        aliases_by_name: Dict[str, AliasEntry] = {}
        for alias in aliases:
            if not alias.is_active or alias.skill_id not in skills_by_id:
                continue
            key = alias.alias_name.lower()
            existing = aliases_by_name.get(key)
            if existing is None or alias.confidence > existing.confidence:
                aliases_by_name[key] = AliasEntry(
                    alias_name=alias.alias_name,
                    skill_id=alias.skill_id,
                    confidence=alias.confidence,
                )

        matrix = row_normalize(np.vstack(vectors)) if vectors else None
        return cls(
            skills_by_name=skills_by_name,
            skills_by_id=skills_by_id,
            aliases_by_name=aliases_by_name,
            embedding_skill_ids=tuple(embedding_ids),
            embedding_matrix=matrix,
            built_at=time.time(),
        )


def extract_candidate_terms(text: str) -> List[str]:
    """Single words plus 2- and 3-word windows, de-duplicated in order."""
    words = []
    for raw in text.split():
        word = TERM_STRIP_PATTERN.sub('', raw).rstrip('.')
        if word:
            words.append(word)

    terms: List[str] = []
    for word in words:
        if 2 <= len(word) <= MAX_TERM_LENGTH:
            terms.append(word)
    for i in range(len(words) - 1):
        phrase = f"{words[i]} {words[i + 1]}"
        if 3 <= len(phrase) <= MAX_TERM_LENGTH:
            terms.append(phrase)
    for i in range(len(words) - 2):
        phrase = f"{words[i]} {words[i + 1]} {words[i + 2]}"
        if 4 <= len(phrase) <= MAX_TERM_LENGTH:
            terms.append(phrase)

    seen = set()
    unique_terms = []
    for term in terms:
        if term not in seen:
            seen.add(term)
            unique_terms.append(term)
    return unique_terms


class SkillTaxonomyMatcher:
    """Canonical skill resolution over an atomically swapped snapshot."""

    def __init__(self, embedding_client=None, semantic_threshold: float = 0.8, max_semantic_terms: int = 50):
        """
        Args:
            embedding_client: EmbeddingClient used for semantic matching (optional)
            semantic_threshold: Default minimum cosine similarity for semantic matches
            max_semantic_terms: Cap on provider calls per extraction
        """
        self.embedding_client = embedding_client
        self.semantic_threshold = semantic_threshold
        self.max_semantic_terms = max_semantic_terms
        self._snapshot = TaxonomySnapshot.empty()
        self._refresh_lock = threading.Lock()

    @property
    def snapshot(self) -> TaxonomySnapshot:
        return self._snapshot

    def load(self, snapshot: TaxonomySnapshot) -> None:
        self._snapshot = snapshot

    def refresh(self, repo) -> TaxonomySnapshot:
        """Rebuild the snapshot from the skill tables and swap it in."""
        with self._refresh_lock:
            snapshot = TaxonomySnapshot.build(repo.get_active_skills(), repo.get_active_aliases())
            self._snapshot = snapshot
        logger.info(
            f"Skill taxonomy refreshed: {len(snapshot.skills_by_id)} skills, "
            f"{len(snapshot.aliases_by_name)} aliases, "
            f"{len(snapshot.embedding_skill_ids)} with embeddings"
        )
        return snapshot

    def extract_skills(
        self,
        text: str,
        semantic_threshold: Optional[float] = None,
        use_semantic: bool = True,
    ) -> SkillExtractionResult:
        """
        Extract canonical skills from free text.

        Args:
            text: Any text (CV, job description)
            semantic_threshold: Minimum similarity for semantic matches (0-1)
            use_semantic: Enable the embedding-based fallback

        Returns:
            SkillExtractionResult with each skill reported at most once
        """
        threshold = self.semantic_threshold if semantic_threshold is None else semantic_threshold
        if not 0.0 <= threshold <= 1.0:
            raise ValidationError("Semantic threshold must be between 0 and 1")

        snapshot = self._snapshot
        result = SkillExtractionResult()
        if not text or not text.strip():
            return result

        semantic_enabled = (
            use_semantic
            and self.embedding_client is not None
            and snapshot.embedding_matrix is not None
        )
        semantic_calls = 0
        found_skills = set()

        for term in extract_candidate_terms(text):
            match = self._lookup(snapshot, term)
            if (
                match is None
                and semantic_enabled
                and len(term) >= MIN_SEMANTIC_TERM_LENGTH
                and semantic_calls < self.max_semantic_terms
            ):
                semantic_calls += 1
                match = self._semantic_lookup(snapshot, term, threshold)

            if match is None:
                result.unmatched_terms.append(term)
                continue
            if match.skill_id in found_skills:
                continue
            found_skills.add(match.skill_id)
            result.matched_skills.append(match)
            result.skills_by_category.setdefault(match.category, []).append(match)

        logger.debug(
            f"Skill extraction: {len(result.matched_skills)} matched, "
            f"{len(result.unmatched_terms)} unmatched, {semantic_calls} semantic lookups"
        )
        return result

    def normalize_job_skills(self, skills: Sequence[str]) -> List[str]:
        """Map job skill strings to canonical names (exact/alias only)."""
        snapshot = self._snapshot
        normalized: List[str] = []
        seen_ids = set()
        seen_raw = set()
        for raw in skills:
            term = (raw or '').strip()
            if not term:
                continue
            match = self._lookup(snapshot, term)
            if match is None:
                if term.lower() not in seen_raw:
                    seen_raw.add(term.lower())
                    normalized.append(term)
                continue
            if match.skill_id not in seen_ids:
                seen_ids.add(match.skill_id)
                normalized.append(match.canonical_name)
        return normalized

    def get_skills_by_category(self, category: str) -> List[SkillEntry]:
        category_value = SkillCategory(category).value
        entries = [s for s in self._snapshot.skills_by_id.values() if s.category == category_value]
        return sorted(entries, key=lambda s: (-s.priority, s.canonical_name))

    def search_skills(self, query: str, limit: int = 20) -> List[SkillEntry]:
        """Substring search over canonical names and aliases."""
        snapshot = self._snapshot
        needle = (query or '').strip().lower()
        if not needle:
            return []
        hits: Dict[int, SkillEntry] = {}
        for name, entry in snapshot.skills_by_name.items():
            if needle in name:
                hits[entry.skill_id] = entry
        for alias_name, alias in snapshot.aliases_by_name.items():
            if needle in alias_name:
                hits.setdefault(alias.skill_id, snapshot.skills_by_id[alias.skill_id])
        ranked = sorted(hits.values(), key=lambda s: (-s.priority, s.canonical_name))
        return ranked[:limit]

    def create_skill(
        self,
        repo,
        canonical_name: str,
        category: str,
        description: Optional[str] = None,
        priority: int = 5,
    ):
        """Create a skill (embedding name + description when possible) and refresh the cache."""
        if not canonical_name or not canonical_name.strip():
            raise ValidationError("Skill name is required")
        category_value = SkillCategory(category).value
        if repo.get_by_canonical_name(canonical_name):
            raise ConflictError(f"Skill '{canonical_name}' already exists")

        embedding = None
        if self.embedding_client is not None:
            try:
                embedding = self.embedding_client.embed(f"{canonical_name} {description or ''}".strip()).vector
            except ProviderError as e:
                logger.warning(f"Creating skill '{canonical_name}' without embedding: {e}")

        skill = repo.create_skill(
            canonical_name=canonical_name,
            category=category_value,
            description=description,
            priority=priority,
            embedding=embedding,
        )
        self.refresh(repo)
        return skill

    def create_alias(self, repo, skill_id: int, alias_name: str, confidence: int = 10):
        if not 1 <= confidence <= 10:
            raise ValidationError("Alias confidence must be between 1 and 10")
        if repo.get_by_id(skill_id) is None:
            raise NotFoundError(f"Skill {skill_id} not found")
        if repo.get_alias(skill_id, alias_name):
            raise ConflictError(f"Alias '{alias_name}' already exists for skill {skill_id}")

        alias = repo.create_alias(skill_id=skill_id, alias_name=alias_name, confidence=confidence)
        self.refresh(repo)
        return alias

    def _lookup(self, snapshot: TaxonomySnapshot, term: str) -> Optional[SkillMatch]:
        key = term.lower()
        skill = snapshot.skills_by_name.get(key)
        if skill is not None:
            return SkillMatch(
                skill_id=skill.skill_id,
                canonical_name=skill.canonical_name,
                category=skill.category,
                confidence=1.0,
                match_type='exact',
                matched_term=term,
            )
        alias = snapshot.aliases_by_name.get(key)
        if alias is not None:
            skill = snapshot.skills_by_id[alias.skill_id]
            return SkillMatch(
                skill_id=skill.skill_id,
                canonical_name=skill.canonical_name,
                category=skill.category,
                confidence=alias.confidence / 10,
                match_type='alias',
                matched_term=term,
            )
        return None

    def _semantic_lookup(self, snapshot: TaxonomySnapshot, term: str, threshold: float) -> Optional[SkillMatch]:
        try:
            vector = self.embedding_client.embed(term).vector
        except (ProviderError, ValidationError) as e:
            logger.warning(f"Semantic skill lookup failed for '{term}': {e}")
            return None

        query = row_normalize(np.asarray(vector, dtype=np.float32))[0]
        similarities = snapshot.embedding_matrix @ query
        best = int(np.argmax(similarities))
        similarity = float(similarities[best])
        if similarity < threshold:
            return None

        skill = snapshot.skills_by_id[snapshot.embedding_skill_ids[best]]
        return SkillMatch(
            skill_id=skill.skill_id,
            canonical_name=skill.canonical_name,
            category=skill.category,
            confidence=round(similarity, 4),
            match_type='semantic',
            matched_term=term,
        )
