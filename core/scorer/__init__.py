#!/usr/bin/env python3
"""
Scoring Module - Rule-based screening scores.

Public API:
- ScreeningScorer: Computes the per-application score breakdown
- ScoreBreakdown: Dataclass for score results

- models.py: Data structures (ScoreBreakdown)
- service.py: Sub-score functions and the ScreeningScorer
"""

from core.scorer.models import ScoreBreakdown
from core.scorer.service import ScreeningScorer, build_job_text

__all__ = ['ScreeningScorer', 'ScoreBreakdown', 'build_job_text']
