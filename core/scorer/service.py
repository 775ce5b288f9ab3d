#!/usr/bin/env python3
"""
Scoring Service - Rule-based screening scores.

Combines four sub-scores (each 0-1) into an overall 0-100 score:
- Vector similarity: CV full-text embedding vs job description embedding
- Skills match: share of job skill terms found among the CV skills
- Experience match: years of experience vs the posting's range
- Education match: degree level vs the posting's requirement
"""

import logging
import re
from typing import List, Optional, Sequence

from core.config_loader import ScoringWeights
from core.scorer.models import ScoreBreakdown
from etl.resume.models import Education

logger = logging.getLogger(__name__)

SKILL_SPLIT_PATTERN = re.compile(r'[,\s]+')
DEGREE_LEVELS = ('bachelor', 'master', 'phd')


def calculate_skills_match_score(cv_skills: Sequence[str], job_skills: Optional[str]) -> float:
    """Fraction of job skill terms that match a CV skill (substring either way)."""
    if not job_skills or not cv_skills:
        return 0.0

    job_terms = [t for t in SKILL_SPLIT_PATTERN.split(job_skills.lower()) if t]
    if not job_terms:
        return 0.0

    cv_lower = [s.lower() for s in cv_skills if s]
    found = [
        term for term in job_terms
        if any(term in cv_skill or cv_skill in term for cv_skill in cv_lower)
    ]
    return len(found) / len(job_terms)


def calculate_experience_match_score(years: float, min_years: float = 0, max_years: float = 10) -> float:
    if min_years <= years <= max_years:
        return 1.0
    if years > max_years:
        # Over-qualified still scores well
        return max(0.7, 1.0 - 0.1 * (years - max_years))
    return max(0.0, 1.0 - 0.2 * (min_years - years))


def calculate_education_match_score(education: Sequence[Education], requirement: Optional[str]) -> float:
    if not requirement or not education:
        return 0.5

    required = requirement.lower()
    for entry in education:
        degree = (entry.degree or '').lower()
        for level in DEGREE_LEVELS:
            if level in degree and level in required:
                return 1.0
    return 0.3


def calculate_overall_score(
    vector_similarity: float,
    skills: float,
    experience: float,
    education: float,
    weights: Optional[ScoringWeights] = None,
) -> float:
    """Weighted sum on a 0-100 scale, rounded to 2 decimals."""
    w = weights or ScoringWeights()
    raw = (
        vector_similarity * w.vector_similarity
        + skills * w.skills_match
        + experience * w.experience_match
        + education * w.education_match
    ) * 100
    return round(max(0.0, min(100.0, raw)), 2)


def build_job_text(job_posting) -> str:
    """Text used for the job description embedding; empty parts are skipped."""
    parts = [
        ('Job Title', job_posting.title),
        ('Description', job_posting.description),
        ('Requirements', job_posting.requirements),
        ('Skills', job_posting.skills),
        ('Experience Level', job_posting.experience_level),
        ('Education', job_posting.education_level),
    ]
    return '\n'.join(f"{label}: {value}" for label, value in parts if value)


class ScreeningScorer:
    """Computes the ScoreBreakdown for one application against one posting."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()

    def score(
        self,
        vector_similarity: float,
        cv_skills: List[str],
        experience_years: float,
        education: Sequence[Education],
        job_posting,
        job_skills: Optional[List[str]] = None,
        chunk_similarity: float = 0.0,
        top_chunks=None,
    ) -> ScoreBreakdown:
        """
        Args:
            vector_similarity: Cosine similarity of CV and job embeddings (0-1)
            cv_skills: Canonical and keyword CV skills
            experience_years: Total years of experience
            education: Parsed education entries
            job_posting: JobPosting row (experience range, education level, skills)
            job_skills: Normalized job skills; defaults to the posting's raw skills text
            chunk_similarity: Best CV chunk similarity, reported only
            top_chunks: Nearest chunks, reported only
        """
        vector_similarity = max(0.0, min(1.0, vector_similarity or 0.0))
        skills_text = ', '.join(job_skills) if job_skills is not None else job_posting.skills

        skills = calculate_skills_match_score(cv_skills, skills_text)
        experience = calculate_experience_match_score(
            experience_years or 0.0,
            job_posting.min_experience_years or 0,
            job_posting.max_experience_years if job_posting.max_experience_years is not None else 10,
        )
        education_score = calculate_education_match_score(education, job_posting.education_level)
        overall = calculate_overall_score(vector_similarity, skills, experience, education_score, self.weights)

        logger.debug(
            f"Scores: overall={overall} vector={vector_similarity:.3f} skills={skills:.3f} "
            f"experience={experience:.3f} education={education_score:.3f}"
        )
        return ScoreBreakdown(
            overall_score=overall,
            skills_score=round(skills * 100, 2),
            experience_score=round(experience * 100, 2),
            education_score=round(education_score * 100, 2),
            vector_similarity=round(vector_similarity, 4),
            chunk_similarity=round(chunk_similarity or 0.0, 4),
            matched_skills=list(cv_skills),
            top_chunks=list(top_chunks or []),
        )
