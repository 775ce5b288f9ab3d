"""
Summary Generator - LLM-written CV assessment with a heuristic fallback.

The model is asked for a strict JSON object; the first ``{...}`` span of the
reply is parsed and every missing field gets a default. When the provider
fails or the reply cannot be parsed, a summary is derived from the NLP
features instead, so the pipeline always has something to store.
"""
import json
import logging
import re
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

from core.config_loader import ResilienceConfig
from core.exceptions import ParseError, ProviderError
from core.llm.circuit_breaker import CircuitBreaker
from core.llm.interfaces import LLMProvider
from core.llm.retry import provider_retry
from core.llm.system_prompts import (
    CV_SUMMARY_SYSTEM_PROMPT,
    CV_SUMMARY_USER_PROMPT,
    JOB_CONTEXT_TEMPLATE,
    JOB_MATCH_SYSTEM_PROMPT,
    JOB_MATCH_USER_PROMPT,
)
from etl.resume.models import ProcessedCvData

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')

EXPERIENCE_LEVELS = {'junior', 'mid', 'senior', 'lead'}
RECOMMENDATIONS = {'strong_fit', 'good_fit', 'moderate_fit', 'poor_fit'}
DEFAULT_SUMMARY = 'Summary not available'
DEFAULT_FIT_SCORE = 50
FALLBACK_CONCERN = 'AI summary not available - manual review recommended'


@dataclass
class SkillsAssessment:
    technical_skills: List[str] = field(default_factory=list)
    experience_level: str = 'mid'
    strength_areas: List[str] = field(default_factory=list)
    improvement_areas: List[str] = field(default_factory=list)


@dataclass
class CvSummary:
    summary: str = DEFAULT_SUMMARY
    key_highlights: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    skills_assessment: SkillsAssessment = field(default_factory=SkillsAssessment)
    fit_score: int = DEFAULT_FIT_SCORE
    recommendation: str = 'moderate_fit'
    source: str = 'llm'  # llm|fallback
    processing_time_ms: int = 0

    def details(self) -> Dict[str, Any]:
        """Fields stored alongside the summary text (JSONB)."""
        return {
            'skills_assessment': asdict(self.skills_assessment),
            'fit_score': self.fit_score,
            'recommendation': self.recommendation,
            'source': self.source,
            'processing_time_ms': self.processing_time_ms,
        }


@dataclass
class JobMatchAnalysis:
    overall_match: int = 50
    skills_match: int = 50
    experience_match: int = 50
    education_match: int = 50
    matching_skills: List[str] = field(default_factory=list)
    missing_skills: List[str] = field(default_factory=list)
    experience_gap: str = 'Analysis not available'
    education_fit: str = 'Analysis not available'
    recommendation: str = 'Further evaluation needed'


def extract_json_object(content: str) -> Dict[str, Any]:
    """Parse the first (greedy) ``{...}`` span of a model reply."""
    if not content:
        raise ParseError("Empty model response")
    match = JSON_OBJECT_PATTERN.search(content)
    if not match:
        raise ParseError("No JSON object found in model response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in model response: {e}") from e
    if not isinstance(parsed, dict):
        raise ParseError("Model response JSON is not an object")
    return parsed


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _score(value: Any, default: int = DEFAULT_FIT_SCORE) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(round(max(0.0, min(100.0, float(value)))))


def parse_summary_response(content: str) -> CvSummary:
    """Build a CvSummary from a model reply, defaulting missing fields."""
    parsed = extract_json_object(content)
    assessment = parsed.get('skillsAssessment')
    if not isinstance(assessment, dict):
        assessment = {}

    experience_level = assessment.get('experienceLevel')
    recommendation = parsed.get('recommendation')
    summary = parsed.get('summary')

    return CvSummary(
        summary=summary if isinstance(summary, str) and summary.strip() else DEFAULT_SUMMARY,
        key_highlights=_string_list(parsed.get('keyHighlights')),
        concerns=_string_list(parsed.get('concerns')),
        skills_assessment=SkillsAssessment(
            technical_skills=_string_list(assessment.get('technicalSkills')),
            experience_level=experience_level if experience_level in EXPERIENCE_LEVELS else 'mid',
            strength_areas=_string_list(assessment.get('strengthAreas')),
            improvement_areas=_string_list(assessment.get('improvementAreas')),
        ),
        fit_score=_score(parsed.get('fitScore')),
        recommendation=recommendation if recommendation in RECOMMENDATIONS else 'moderate_fit',
    )


def parse_job_match_response(content: str) -> JobMatchAnalysis:
    parsed = extract_json_object(content)
    detailed = parsed.get('detailedAnalysis')
    if not isinstance(detailed, dict):
        detailed = {}
    defaults = JobMatchAnalysis()
    return JobMatchAnalysis(
        overall_match=_score(parsed.get('overallMatch')),
        skills_match=_score(parsed.get('skillsMatch')),
        experience_match=_score(parsed.get('experienceMatch')),
        education_match=_score(parsed.get('educationMatch')),
        matching_skills=_string_list(detailed.get('matchingSkills')),
        missing_skills=_string_list(detailed.get('missingSkills')),
        experience_gap=detailed.get('experienceGap') or defaults.experience_gap,
        education_fit=detailed.get('educationFit') or defaults.education_fit,
        recommendation=parsed.get('recommendation') or defaults.recommendation,
    )


def heuristic_summary(processed: ProcessedCvData) -> CvSummary:
    """Summary derived from NLP features only."""
    years = processed.total_experience_years or 0.0
    technical = processed.skills.technical
    top_skills = technical[:5]
    has_education = processed.has_education

    text = f"Experienced professional with {years:g} years of experience" if years > 0 else "Professional candidate"
    if top_skills:
        text += f", skilled in {', '.join(top_skills[:3])}"
    if has_education:
        text += ", with formal education background"
    text += "."
    if len(top_skills) > 3:
        text += f" Also proficient in {', '.join(top_skills[3:])}."

    highlights = list(top_skills[:3])
    if years >= 5:
        highlights.append('Senior level experience')
    elif years >= 2:
        highlights.append('Mid-level experience')
    if has_education:
        highlights.append('Formal education')

    concerns = []
    if years < 2:
        concerns.append('Limited professional experience')
    if len(technical) < 3:
        concerns.append('Limited technical skills mentioned')
    concerns.append(FALLBACK_CONCERN)

    if years >= 3:
        recommendation = 'good_fit'
    elif years >= 1:
        recommendation = 'moderate_fit'
    else:
        recommendation = 'poor_fit'

    fit_score = round((
        min(len(technical) / 10, 1.0) * 0.4
        + min(years / 10, 1.0) * 0.4
        + (0.2 if has_education else 0.0)
    ) * 100)

    if years >= 5:
        level = 'senior'
    elif years >= 2:
        level = 'mid'
    else:
        level = 'junior'

    return CvSummary(
        summary=text,
        key_highlights=highlights,
        concerns=concerns,
        skills_assessment=SkillsAssessment(technical_skills=list(top_skills), experience_level=level),
        fit_score=int(fit_score),
        recommendation=recommendation,
        source='fallback',
    )


class SummaryGenerator:
    """Generate recruiter-facing CV summaries through an LLMProvider."""

    def __init__(
        self,
        provider: LLMProvider,
        resilience: Optional[ResilienceConfig] = None,
        breaker: Optional[CircuitBreaker] = None,
        max_cv_chars: int = 24000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.resilience = resilience or ResilienceConfig()
        self.max_cv_chars = max_cv_chars
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.resilience.failure_threshold,
            reset_timeout=self.resilience.reset_timeout_seconds,
            half_open_successes=self.resilience.half_open_successes,
            name="summary",
        )
        self._complete_with_retry = provider_retry(self.resilience, sleep=sleep)(self._call_provider)

    def generate(self, cv_text: str, processed: ProcessedCvData, job_description: Optional[str] = None) -> CvSummary:
        """
        Summarize a CV, optionally against a job description.

        Never raises for provider or parse failures; those produce the
        heuristic summary (source='fallback').
        """
        start = time.time()
        job_context = JOB_CONTEXT_TEMPLATE.format(job_description=job_description) if job_description else ''
        education = ', '.join(
            f"{e.degree or 'Degree'} from {e.institution or 'unknown institution'}" for e in processed.education
        )
        user_prompt = CV_SUMMARY_USER_PROMPT.format(
            cv_text=cv_text[:self.max_cv_chars],
            experience_years=processed.total_experience_years,
            technical_skills=', '.join(processed.skills.technical),
            education=education,
            job_context=job_context,
        )

        try:
            content = self.breaker.call(
                self._complete_with_retry, CV_SUMMARY_SYSTEM_PROMPT, user_prompt, json_mode=True
            )
            result = parse_summary_response(content)
        except (ParseError, ProviderError) as e:
            logger.warning(f"AI summary generation failed, using heuristic summary: {e}")
            result = heuristic_summary(processed)

        result.processing_time_ms = int((time.time() - start) * 1000)
        logger.info(f"CV summary generated ({result.source}) in {result.processing_time_ms}ms")
        return result

    def analyze_job_match(self, cv_text: str, job_text: str) -> JobMatchAnalysis:
        """Ask the model for a detailed CV vs job comparison."""
        user_prompt = JOB_MATCH_USER_PROMPT.format(cv_text=cv_text[:self.max_cv_chars], job_text=job_text)
        try:
            content = self.breaker.call(
                self._complete_with_retry, JOB_MATCH_SYSTEM_PROMPT, user_prompt, json_mode=True
            )
            return parse_job_match_response(content)
        except (ParseError, ProviderError) as e:
            logger.warning(f"Job match analysis failed: {e}")
            return JobMatchAnalysis(
                experience_gap='Analysis failed',
                education_fit='Analysis failed',
                recommendation='Manual review required due to analysis error',
            )

    def get_circuit_state(self) -> dict:
        return self.breaker.snapshot()

    def _call_provider(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        return self.provider.generate_completion(system_prompt, user_prompt, json_mode=json_mode)
