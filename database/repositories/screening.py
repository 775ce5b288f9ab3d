import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, func, case

from database.models import ScreeningResult, ScreeningStatus
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    'created_at': ScreeningResult.created_at,
    'updated_at': ScreeningResult.updated_at,
    'completed_at': ScreeningResult.completed_at,
    'overall_score': ScreeningResult.overall_score,
    'skills_score': ScreeningResult.skills_score,
    'experience_score': ScreeningResult.experience_score,
    'education_score': ScreeningResult.education_score,
    'processing_time_ms': ScreeningResult.processing_time_ms,
}

# Fields cleared when a screening is sent back to pending
_RESET_FIELDS = (
    'overall_score', 'skills_score', 'experience_score', 'education_score',
    'vector_similarity', 'chunk_similarity', 'ai_summary', 'error_message',
    'processing_time_ms', 'started_at', 'completed_at', 'queue_job_id',
    'extracted_text', 'processed_data',
)


class ScreeningResultRepository(BaseRepository):
    def get_by_id(self, screening_id: int) -> Optional[ScreeningResult]:
        stmt = select(ScreeningResult).where(ScreeningResult.screening_id == screening_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_status(self, screening_id: int) -> Optional[str]:
        """Current status read from the row, not the identity map."""
        stmt = select(ScreeningResult.status).where(ScreeningResult.screening_id == screening_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_application(self, application_id: int) -> Optional[ScreeningResult]:
        stmt = select(ScreeningResult).where(ScreeningResult.application_id == application_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_job_posting(self, job_posting_id: int) -> List[ScreeningResult]:
        stmt = select(ScreeningResult).where(ScreeningResult.job_posting_id == job_posting_id)
        return list(self.db.execute(stmt).scalars().all())

    def create(self, application_id: int, job_posting_id: int, priority: int = 0) -> ScreeningResult:
        screening = ScreeningResult(
            application_id=application_id,
            job_posting_id=job_posting_id,
            status=ScreeningStatus.PENDING.value,
            priority=priority,
            key_highlights=[],
            concerns=[],
        )
        return self._add(screening)

    def reset_to_pending(self, screening: ScreeningResult, priority: Optional[int] = None) -> ScreeningResult:
        for field_name in _RESET_FIELDS:
            setattr(screening, field_name, None)
        screening.key_highlights = []
        screening.concerns = []
        screening.summary_details = {}
        screening.status = ScreeningStatus.PENDING.value
        if priority is not None:
            screening.priority = priority
        self.db.flush()
        return screening

    def set_queue_job_id(self, screening_id: int, job_id: Optional[str]) -> None:
        self.db.execute(
            update(ScreeningResult)
            .where(ScreeningResult.screening_id == screening_id)
            .values(queue_job_id=job_id)
        )

    def mark_processing(self, screening_id: int, extracted_text: str) -> bool:
        """Move a pending screening to processing. False if it is no longer pending/processing."""
        result = self.db.execute(
            update(ScreeningResult)
            .where(
                ScreeningResult.screening_id == screening_id,
                ScreeningResult.status.in_([ScreeningStatus.PENDING.value, ScreeningStatus.PROCESSING.value]),
            )
            .values(
                status=ScreeningStatus.PROCESSING.value,
                extracted_text=extracted_text,
                started_at=datetime.now(timezone.utc),
            )
        )
        return result.rowcount == 1

    def save_processed_data(self, screening_id: int, processed_data: Dict[str, Any]) -> None:
        self.db.execute(
            update(ScreeningResult)
            .where(ScreeningResult.screening_id == screening_id)
            .values(processed_data=processed_data)
        )

    def save_scores(self, screening_id: int, scores: Dict[str, Any]) -> None:
        """Persist score fields (overall_score, skills_score, ..., chunk_similarity)."""
        allowed = {
            'overall_score', 'skills_score', 'experience_score', 'education_score',
            'vector_similarity', 'chunk_similarity',
        }
        values = {k: v for k, v in scores.items() if k in allowed}
        self.db.execute(
            update(ScreeningResult)
            .where(ScreeningResult.screening_id == screening_id)
            .values(**values)
        )

    def complete(
        self,
        screening_id: int,
        ai_summary: str,
        key_highlights: List[str],
        concerns: List[str],
        summary_details: Dict[str, Any],
        processing_time_ms: int,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        """Write the final summary and COMPLETED status.

        Only applies while the screening is still processing, so a screening
        cancelled mid-run keeps its FAILED status.

        Returns:
            True if the row was completed
        """
        result = self.db.execute(
            update(ScreeningResult)
            .where(
                ScreeningResult.screening_id == screening_id,
                ScreeningResult.status == ScreeningStatus.PROCESSING.value,
            )
            .values(
                status=ScreeningStatus.COMPLETED.value,
                ai_summary=ai_summary,
                key_highlights=key_highlights,
                concerns=concerns,
                summary_details=summary_details,
                processing_time_ms=processing_time_ms,
                completed_at=completed_at or datetime.now(timezone.utc),
                error_message=None,
            )
        )
        return result.rowcount == 1

    def mark_failed(
        self,
        screening_id: int,
        error_message: str,
        processing_time_ms: Optional[int] = None,
    ) -> bool:
        """Record a failure. Completed screenings are left untouched."""
        values: Dict[str, Any] = {
            'status': ScreeningStatus.FAILED.value,
            'error_message': error_message[:2000] if error_message else error_message,
        }
        if processing_time_ms is not None:
            values['processing_time_ms'] = processing_time_ms
        result = self.db.execute(
            update(ScreeningResult)
            .where(
                ScreeningResult.screening_id == screening_id,
                ScreeningResult.status != ScreeningStatus.COMPLETED.value,
            )
            .values(**values)
        )
        return result.rowcount == 1

    def list_results(
        self,
        offset: int = 0,
        limit: int = 10,
        status: Optional[str] = None,
        job_posting_id: Optional[int] = None,
        min_score: Optional[float] = None,
        max_score: Optional[float] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'DESC',
    ) -> Tuple[List[ScreeningResult], int]:
        conditions = []
        if status:
            conditions.append(ScreeningResult.status == status)
        if job_posting_id is not None:
            conditions.append(ScreeningResult.job_posting_id == job_posting_id)
        if min_score is not None:
            conditions.append(ScreeningResult.overall_score >= min_score)
        if max_score is not None:
            conditions.append(ScreeningResult.overall_score <= max_score)

        total = self.db.execute(
            select(func.count()).select_from(ScreeningResult).where(*conditions)
        ).scalar_one()

        sort_column = SORTABLE_FIELDS.get(sort_by, ScreeningResult.created_at)
        order = sort_column.asc() if sort_order.upper() == 'ASC' else sort_column.desc()
        stmt = (
            select(ScreeningResult)
            .where(*conditions)
            .order_by(order.nulls_last(), ScreeningResult.screening_id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def get_stats(self, job_posting_id: Optional[int] = None) -> Dict[str, Any]:
        def count_status(status: ScreeningStatus):
            return func.count(case((ScreeningResult.status == status.value, 1)))

        stmt = select(
            func.count(ScreeningResult.screening_id).label('total'),
            count_status(ScreeningStatus.COMPLETED).label('completed'),
            count_status(ScreeningStatus.PENDING).label('pending'),
            count_status(ScreeningStatus.PROCESSING).label('processing'),
            count_status(ScreeningStatus.FAILED).label('failed'),
            func.avg(case(
                (ScreeningResult.status == ScreeningStatus.COMPLETED.value, ScreeningResult.overall_score)
            )).label('average_score'),
            func.avg(case(
                (ScreeningResult.status == ScreeningStatus.COMPLETED.value, ScreeningResult.processing_time_ms)
            )).label('average_processing_time'),
        )
        if job_posting_id is not None:
            stmt = stmt.where(ScreeningResult.job_posting_id == job_posting_id)

        row = self.db.execute(stmt).one()
        mapping = row._mapping
        return {
            'total': mapping['total'] or 0,
            'completed': mapping['completed'] or 0,
            'pending': mapping['pending'] or 0,
            'processing': mapping['processing'] or 0,
            'failed': mapping['failed'] or 0,
            'average_score': round(float(mapping['average_score']), 2) if mapping['average_score'] is not None else 0.0,
            'average_processing_time': int(mapping['average_processing_time']) if mapping['average_processing_time'] is not None else 0,
        }
