#!/usr/bin/env python3
"""
Work History Parser - Extract positions and date ranges from CV text.

Recognized range shapes:
    Jan 2019 - Present
    March 2016 – June 2018
    03/2017 - 06/2019
    2018 to 2020

The text preceding a range on the same line (or the line before it) is read
as "Position at Company" / "Position, Company" / "Position | Company".
"""
import re
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from etl.resume.models import WorkExperience

logger = logging.getLogger(__name__)

_MONTH = (
    r'(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|'
    r'sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)'
)
_DATE = rf'(?:{_MONTH}\.?\s+\d{{4}}|\d{{1,2}}/\d{{4}}|(?:19|20)\d{{2}})'
_PRESENT = r'(?:present|current|now|today)'

RANGE_PATTERN = re.compile(
    rf'\b(?P<start>{_DATE})\s*(?:-|–|—|to|until)\s*(?P<end>{_DATE}|{_PRESENT})\b',
    re.IGNORECASE,
)
NUMERIC_DATE = re.compile(r'^(\d{1,2})/(\d{4})$')
YEAR_ONLY = re.compile(r'^(?:19|20)\d{2}$')
PRESENT_PATTERN = re.compile(rf'^{_PRESENT}$', re.IGNORECASE)
HEADER_SPLIT = re.compile(r'\s+at\s+|\s*[|@]\s*|,\s*|\s+-\s+|\s+–\s+', re.IGNORECASE)


def parse_date_token(token: str) -> Optional[date]:
    """Parse one side of a date range into the first day of its month."""
    token = token.strip().rstrip('.')
    numeric = NUMERIC_DATE.match(token)
    if numeric:
        month, year = int(numeric.group(1)), int(numeric.group(2))
        if 1 <= month <= 12:
            return date(year, month, 1)
        return None
    if YEAR_ONLY.match(token):
        return date(int(token), 1, 1)
    try:
        parsed = date_parser.parse(token, default=datetime(2000, 1, 1))
        return date(parsed.year, parsed.month, 1)
    except (ValueError, OverflowError):
        logger.debug(f"Could not parse date token: {token}")
        return None


def months_between(start: date, end: date) -> int:
    diff = relativedelta(end, start)
    return max(0, diff.years * 12 + diff.months)


def _split_header(header: str) -> Tuple[Optional[str], Optional[str]]:
    header = header.strip(' \t-–—,|:•*')
    if not header:
        return None, None
    parts = [p.strip() for p in HEADER_SPLIT.split(header) if p.strip()]
    if not parts:
        return None, None
    position = parts[0]
    company = parts[1] if len(parts) > 1 else None
    return position, company


def parse_work_history(text: str, today: Optional[date] = None) -> List[WorkExperience]:
    """
    Parse work experience entries from an experience section.

    Args:
        text: Section text (or whole CV text)
        today: Reference date for open-ended ranges (defaults to today)

    Returns:
        Work experience entries in document order
    """
    today = today or date.today()
    lines = [line.strip() for line in text.split('\n')]
    experiences: List[WorkExperience] = []
    current: Optional[WorkExperience] = None
    description_lines: List[str] = []

    def flush():
        if current is not None and description_lines:
            current.description = ' '.join(description_lines)

    for i, line in enumerate(lines):
        if not line:
            continue
        match = RANGE_PATTERN.search(line)
        if not match:
            if current is not None:
                description_lines.append(line)
            continue

        start = parse_date_token(match.group('start'))
        end_token = match.group('end')
        is_current = bool(PRESENT_PATTERN.match(end_token.strip()))
        end = today.replace(day=1) if is_current else parse_date_token(end_token)
        if start is None or end is None or end < start:
            logger.debug(f"Skipping unparseable range: {match.group(0)}")
            continue

        header = line[:match.start()]
        if not header.strip(' \t-–—,|:•*()'):
            header = line[match.end():]
        position, company = _split_header(header.strip('() '))
        if position is None and i > 0:
            # Title on the previous line, dates on their own line
            prev = next((l for l in reversed(lines[:i]) if l), '')
            if not RANGE_PATTERN.search(prev):
                position, company = _split_header(prev)
                if description_lines and description_lines[-1] == prev:
                    description_lines.pop()

        flush()
        description_lines = []
        current = WorkExperience(
            position=position,
            company=company,
            start_date=start,
            end_date=None if is_current else end,
            duration=match.group(0),
            duration_in_months=months_between(start, end),
            is_current=is_current,
        )
        experiences.append(current)

    flush()
    return experiences


def total_experience_months(experiences: List[WorkExperience], today: Optional[date] = None) -> int:
    """Sum of employment months with overlapping ranges merged."""
    today = today or date.today()
    dated = sorted(
        (exp.start_date, exp.end_date or today.replace(day=1))
        for exp in experiences if exp.start_date is not None
    )
    undated = sum(
        exp.duration_in_months or 0
        for exp in experiences if exp.start_date is None
    )

    total = 0
    merged_start, merged_end = None, None
    for start, end in dated:
        if merged_start is None:
            merged_start, merged_end = start, end
        elif start <= merged_end:
            merged_end = max(merged_end, end)
        else:
            total += months_between(merged_start, merged_end)
            merged_start, merged_end = start, end
    if merged_start is not None:
        total += months_between(merged_start, merged_end)

    return total + undated
