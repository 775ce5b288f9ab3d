"""Data Transfer Objects for the screening service.

DTOs are used to transfer data outside of the Unit of Work context,
allowing ORM objects to be converted to plain Python objects that
can be safely used after the database session is closed.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class ScreeningResultDTO:
    """Screening result as exposed to callers (CLI, API layers)."""
    screening_id: int
    application_id: int
    job_posting_id: int
    status: str
    priority: int = 0
    queue_job_id: Optional[str] = None

    overall_score: Optional[float] = None
    skills_score: Optional[float] = None
    experience_score: Optional[float] = None
    education_score: Optional[float] = None
    vector_similarity: Optional[float] = None
    chunk_similarity: Optional[float] = None

    ai_summary: Optional[str] = None
    key_highlights: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    summary_details: Dict[str, Any] = field(default_factory=dict)

    processing_time_ms: Optional[int] = None
    error_message: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_orm(cls, screening) -> "ScreeningResultDTO":
        """Copy a ScreeningResult row. Must be called inside the session."""
        values = {f.name: getattr(screening, f.name) for f in fields(cls)}
        values['key_highlights'] = list(values['key_highlights'] or [])
        values['concerns'] = list(values['concerns'] or [])
        values['summary_details'] = dict(values['summary_details'] or {})
        values['priority'] = values['priority'] or 0
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[f.name] = value
        return result
