#!/usr/bin/env python3
"""
CV NLP Processor - Derive structured features from normalized CV text.

Extracts personal info, keyword-based skills, work history, education and
total experience. Runs fully offline; no model calls.
"""
import re
import logging
import time
from datetime import date
from typing import List, Optional

from etl.resume.models import (
    ProcessedCvData, PersonalInfo, ExtractedSkills, Education, WorkExperience
)
from etl.resume.work_history import parse_work_history, total_experience_months

logger = logging.getLogger(__name__)


TECHNICAL_SKILLS = [
    # Programming languages
    'javascript', 'typescript', 'python', 'java', 'c#', 'c++', 'php', 'ruby', 'go', 'rust', 'swift', 'kotlin',
    'scala', 'r', 'matlab', 'sql', 'html', 'css', 'sass', 'less',
    # Frameworks & libraries
    'react', 'angular', 'vue', 'svelte', 'next.js', 'nuxt.js', 'express', 'fastify', 'nest.js', 'spring',
    'django', 'flask', 'laravel', 'symfony', 'rails', 'asp.net', 'blazor',
    # Databases
    'postgresql', 'mysql', 'mongodb', 'redis', 'elasticsearch', 'cassandra', 'dynamodb', 'sqlite',
    # Cloud & DevOps
    'aws', 'azure', 'gcp', 'docker', 'kubernetes', 'jenkins', 'gitlab', 'github', 'terraform', 'ansible',
    # Tools
    'git', 'webpack', 'vite', 'babel', 'eslint', 'prettier', 'jest', 'cypress', 'selenium', 'postman',
]

SOFT_SKILLS = [
    'leadership', 'communication', 'teamwork', 'problem solving', 'analytical thinking', 'creativity',
    'adaptability', 'time management', 'project management', 'mentoring', 'collaboration', 'innovation',
]

SPOKEN_LANGUAGES = [
    'english', 'vietnamese', 'chinese', 'japanese', 'korean', 'french', 'german', 'spanish', 'italian',
]

FRAMEWORKS = {'react', 'angular', 'vue', 'express', 'django', 'spring'}
TOOLS = {'git', 'docker', 'kubernetes', 'jenkins'}

CERTIFICATION_KEYWORDS = ['certified', 'certification', 'certificate', 'aws certified', 'microsoft certified']
LOCATION_KEYWORDS = ['address', 'location', 'city', 'ho chi minh', 'hanoi', 'da nang']

EXPERIENCE_KEYWORDS = ['experience', 'work history', 'employment', 'career', 'professional experience']
EDUCATION_KEYWORDS = ['education', 'academic', 'university', 'college', 'degree', 'bachelor', 'master', 'phd']

EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
PHONE_PATTERN = re.compile(r'(?:\+?\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)[\s.-]?)?\d{3,4}[\s.-]?\d{3,4}(?:[\s.-]?\d{2,4})?')
NAME_PATTERN = re.compile(r'^[A-Z][a-z]+(?: [A-Z][a-z]+){1,3}$')
KEY_PHRASE_PATTERN = re.compile(r'\b(?:[A-Z][a-z]+ ){1,3}[A-Z][a-z]+\b')
YEAR_PATTERN = re.compile(r'\b(19\d{2}|20\d{2})\b')
SECTION_HEADER = re.compile(
    r'\n(?=(?:EXPERIENCE|EDUCATION|SKILLS|WORK HISTORY|ACADEMIC|PROFESSIONAL|EMPLOYMENT|CERTIFICATIONS|PROJECTS)\b)',
    re.IGNORECASE,
)

DEGREE_PATTERN = re.compile(
    r"\b(ph\.?\s?d\.?|doctorate|master(?:'s)?|m\.?sc?\.?|mba|bachelor(?:'s)?|b\.?sc?\.?|b\.?eng\.?|"
    r"b\.?a\.?|associate(?:'s)?|diploma|engineer(?:'s)? degree)\b",
    re.IGNORECASE,
)
INSTITUTION_PATTERN = re.compile(
    r'([A-Z][\w&.\'-]*(?:\s+(?:of|and|&|for|[A-Z][\w&.\'-]*))*\s+'
    r'(?:University|College|Institute|Academy|School)(?:\s+of\s+[A-Z][\w-]*(?:\s+[A-Z][\w-]*)*)?|'
    r'(?:University|College|Institute|Academy|School)\s+of\s+[A-Z][\w-]*(?:\s+(?:and\s+)?[A-Z][\w-]*)*)'
)
FIELD_PATTERN = re.compile(r'\b(?:in|of)\s+([A-Z][A-Za-z]+(?:\s+(?:and\s+)?[A-Z][A-Za-z]+){0,3})')
GPA_PATTERN = re.compile(r'\bGPA[:\s]*([0-9](?:\.[0-9]{1,2})?(?:\s*/\s*[0-9](?:\.[0-9])?)?)', re.IGNORECASE)


def _contains_keyword(lower_text: str, keyword: str) -> bool:
    """Whole-token keyword match; keywords may contain + # . characters."""
    pattern = r'(?<![\w+#.])' + re.escape(keyword) + r'(?![\w+#])'
    return re.search(pattern, lower_text) is not None


class CvNlpProcessor:
    """Extract structured features from CV text."""

    def process(self, text: str, today: Optional[date] = None) -> ProcessedCvData:
        """
        Process CV text and extract structured information.

        Args:
            text: Normalized CV text
            today: Reference date for open-ended employment ranges

        Returns:
            ProcessedCvData
        """
        logger.info("Starting NLP processing of CV text")
        start_time = time.time()

        text = text or ""
        work_experience = self.extract_work_experience(text, today)
        result = ProcessedCvData(
            personal_info=self.extract_personal_info(text),
            work_experience=work_experience,
            education=self.extract_education(text),
            skills=self.extract_skills(text),
            extracted_dates=self.extract_dates(text),
            key_phrases=self.extract_key_phrases(text),
        )
        result.total_experience_months = total_experience_months(work_experience, today)
        result.total_experience_years = round(result.total_experience_months / 12, 1)
        result.summary = self.generate_summary(result)

        logger.info(f"NLP processing completed in {int((time.time() - start_time) * 1000)}ms")
        return result

    def extract_personal_info(self, text: str) -> PersonalInfo:
        email = EMAIL_PATTERN.search(text)
        phone = None
        for candidate in PHONE_PATTERN.finditer(text):
            digits = re.sub(r'\D', '', candidate.group(0))
            # Skip year ranges and short numbers
            if 9 <= len(digits) <= 15:
                phone = candidate.group(0).strip()
                break

        lines = [line.strip() for line in text.split('\n') if line.strip()]
        possible_name = lines[0] if lines else ''
        name = possible_name if NAME_PATTERN.match(possible_name) else None

        return PersonalInfo(
            name=name,
            email=email.group(0) if email else None,
            phone=phone,
            location=self._extract_location(text),
        )

    def extract_skills(self, text: str) -> ExtractedSkills:
        lower_text = text.lower()
        technical = [s for s in TECHNICAL_SKILLS if _contains_keyword(lower_text, s)]
        soft = [s for s in SOFT_SKILLS if _contains_keyword(lower_text, s)]
        languages = [s for s in SPOKEN_LANGUAGES if _contains_keyword(lower_text, s)]
        return ExtractedSkills(
            technical=technical,
            soft=soft,
            languages=languages,
            frameworks=[s for s in technical if s in FRAMEWORKS],
            tools=[s for s in technical if s in TOOLS],
            certifications=[k for k in CERTIFICATION_KEYWORDS if k in lower_text],
        )

    def split_into_sections(self, text: str) -> List[str]:
        return SECTION_HEADER.split(text)

    def extract_work_experience(self, text: str, today: Optional[date] = None) -> List[WorkExperience]:
        experiences: List[WorkExperience] = []
        sections = self.split_into_sections(text)
        for section in sections:
            heading = section.strip().split('\n', 1)[0].lower()
            if any(keyword in heading for keyword in EXPERIENCE_KEYWORDS):
                experiences.extend(parse_work_history(section, today))

        if not experiences and len(sections) == 1:
            # No recognizable headers: scan lines that don't look like education
            lines = [
                line for line in text.split('\n')
                if not DEGREE_PATTERN.search(line) and not INSTITUTION_PATTERN.search(line)
            ]
            experiences = parse_work_history('\n'.join(lines), today)
        return experiences

    def extract_education(self, text: str) -> List[Education]:
        education: List[Education] = []
        sections = self.split_into_sections(text)
        candidates = []
        for section in sections:
            heading = section.strip().split('\n', 1)[0].lower()
            if any(keyword in heading for keyword in EDUCATION_KEYWORDS[:2]):
                candidates.extend(section.split('\n')[1:])
        if not candidates:
            candidates = text.split('\n')

        for line in candidates:
            line = line.strip()
            if not line:
                continue
            degree = DEGREE_PATTERN.search(line)
            institution = INSTITUTION_PATTERN.search(line)
            if not degree and not institution:
                continue
            if degree and not institution and education and education[-1].degree is None:
                education[-1].degree = degree.group(0)
                continue
            if institution and not degree and education and education[-1].institution is None:
                education[-1].institution = institution.group(0).strip()
                continue

            years = [int(y) for y in YEAR_PATTERN.findall(line)]
            field_match = FIELD_PATTERN.search(line[degree.end():]) if degree else None
            gpa = GPA_PATTERN.search(line)
            education.append(Education(
                institution=institution.group(0).strip() if institution else None,
                degree=degree.group(0) if degree else None,
                field=field_match.group(1) if field_match else None,
                graduation_year=max(years) if years else None,
                start_year=min(years) if len(years) > 1 else None,
                gpa=gpa.group(1) if gpa else None,
                description=line,
            ))
        return education

    def extract_dates(self, text: str) -> List[int]:
        """Distinct plausible years mentioned in the text, in order of appearance."""
        max_year = date.today().year + 1
        years = []
        for raw in YEAR_PATTERN.findall(text):
            year = int(raw)
            if 1990 < year <= max_year and year not in years:
                years.append(year)
        return years

    def extract_key_phrases(self, text: str) -> List[str]:
        return KEY_PHRASE_PATTERN.findall(text)[:10]

    def generate_summary(self, data: ProcessedCvData) -> str:
        parts = []
        if data.total_experience_years > 0:
            parts.append(f"{data.total_experience_years} years of experience")
        if data.skills.technical:
            parts.append(f"skilled in {', '.join(data.skills.technical[:3])}")
        if data.education:
            parts.append("educated professional")
        return ', '.join(parts) or 'Professional candidate'

    def _extract_location(self, text: str) -> Optional[str]:
        for line in text.split('\n'):
            if any(keyword in line.lower() for keyword in LOCATION_KEYWORDS):
                return line.strip()
        return None
