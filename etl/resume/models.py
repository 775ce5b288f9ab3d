#!/usr/bin/env python3
"""
Resume Models - Structured features extracted from CV text.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional
from datetime import date


@dataclass
class PersonalInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


@dataclass
class WorkExperience:
    """One position parsed from a work history section."""
    position: Optional[str] = None
    company: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration: Optional[str] = None
    duration_in_months: Optional[int] = None
    description: Optional[str] = None
    is_current: bool = False


@dataclass
class Education:
    institution: Optional[str] = None
    degree: Optional[str] = None
    field: Optional[str] = None
    graduation_year: Optional[int] = None
    start_year: Optional[int] = None
    gpa: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ExtractedSkills:
    technical: List[str] = field(default_factory=list)
    soft: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)
    tools: List[str] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)

    def all_skills(self) -> List[str]:
        """Technical then soft skills, de-duplicated in order."""
        seen = set()
        result = []
        for skill in self.technical + self.soft:
            if skill.lower() not in seen:
                seen.add(skill.lower())
                result.append(skill)
        return result


@dataclass
class ProcessedCvData:
    """Everything the NLP stage derives from CV text."""
    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    work_experience: List[WorkExperience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: ExtractedSkills = field(default_factory=ExtractedSkills)
    total_experience_months: int = 0
    total_experience_years: float = 0.0
    summary: Optional[str] = None
    extracted_dates: List[int] = field(default_factory=list)
    key_phrases: List[str] = field(default_factory=list)
    canonical_skills: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for persistence."""
        data = asdict(self)
        for exp in data['work_experience']:
            for key in ('start_date', 'end_date'):
                if exp[key] is not None:
                    exp[key] = exp[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProcessedCvData":
        if not data:
            return cls()
        work = []
        for exp in data.get('work_experience', []):
            exp = dict(exp)
            for key in ('start_date', 'end_date'):
                if exp.get(key):
                    exp[key] = date.fromisoformat(exp[key])
            work.append(WorkExperience(**exp))
        return cls(
            personal_info=PersonalInfo(**data.get('personal_info', {})),
            work_experience=work,
            education=[Education(**e) for e in data.get('education', [])],
            skills=ExtractedSkills(**data.get('skills', {})),
            total_experience_months=data.get('total_experience_months', 0),
            total_experience_years=data.get('total_experience_years', 0.0),
            summary=data.get('summary'),
            extracted_dates=data.get('extracted_dates', []),
            key_phrases=data.get('key_phrases', []),
            canonical_skills=data.get('canonical_skills', []),
        )

    @property
    def has_education(self) -> bool:
        return len(self.education) > 0
