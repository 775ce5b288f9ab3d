"""Matcher Module - Skill taxonomy matching and chunk similarity."""
from core.matcher.skill_taxonomy import (
    SkillTaxonomyMatcher, TaxonomySnapshot, SkillMatch, SkillExtractionResult
)
from core.matcher.similarity import ChunkSimilarity, calculate_chunk_similarity

__all__ = [
    'SkillTaxonomyMatcher', 'TaxonomySnapshot', 'SkillMatch', 'SkillExtractionResult',
    'ChunkSimilarity', 'calculate_chunk_similarity',
]
