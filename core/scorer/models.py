#!/usr/bin/env python3
"""
Scoring Models - Data structures for screening scores.
"""

from typing import List, Dict, Any
from dataclasses import dataclass, field


@dataclass
class ScoreBreakdown:
    """Screening scores on a 0-100 scale, plus the raw similarity inputs (0-1)."""
    overall_score: float = 0.0
    skills_score: float = 0.0
    experience_score: float = 0.0
    education_score: float = 0.0

    vector_similarity: float = 0.0
    chunk_similarity: float = 0.0

    matched_skills: List[str] = field(default_factory=list)
    top_chunks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_score': self.overall_score,
            'skills_score': self.skills_score,
            'experience_score': self.experience_score,
            'education_score': self.education_score,
            'vector_similarity': self.vector_similarity,
            'chunk_similarity': self.chunk_similarity,
        }
