"""Screening service - the operations exposed to collaborators.

Triggering, retrying and cancelling screenings, listing results and
statistics, and queue status. Each operation runs in its own unit of work;
jobs are enqueued only after the screening row is committed so a worker
can never pick up a job for a row it cannot see.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from core.app_context import AppContext
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.matcher.similarity import find_similar_chunks
from database.models import ScreeningStatus
from database.repositories.screening import SORTABLE_FIELDS
from database.uow import screening_uow
from pipeline.dto import ScreeningResultDTO
from pipeline.queue import QueueManager
from pipeline.runner import ScreeningPipelineRunner

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = 'Cancelled by user'
MAX_PAGE_SIZE = 100


def _validate_id(value: int, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")


def _validate_priority(priority: int) -> None:
    if not isinstance(priority, int) or isinstance(priority, bool) or not 0 <= priority <= 10:
        raise ValidationError("Priority must be between 0 and 10")


class ScreeningService:
    """Entry point for screening operations."""

    def __init__(
        self,
        ctx: AppContext,
        queue_manager: QueueManager,
        runner: ScreeningPipelineRunner,
        uow_factory=screening_uow,
    ):
        self.ctx = ctx
        self.queue_manager = queue_manager
        self.runner = runner
        self.uow_factory = uow_factory

    @classmethod
    def from_context(cls, ctx: AppContext, uow_factory=screening_uow) -> "ScreeningService":
        """Wire runner and queue manager (the runner doubles as the sync executor)."""
        runner = ScreeningPipelineRunner(ctx, uow_factory=uow_factory)
        queue_manager = QueueManager(ctx.config.redis, ctx.config.queue, sync_runner=runner)
        return cls(ctx, queue_manager, runner, uow_factory=uow_factory)

    def trigger_screening(self, application_id: int, resume_path: Optional[str] = None, priority: int = 0) -> ScreeningResultDTO:
        """
        Start screening an application.

        Idempotent: an existing pending/processing/completed screening is
        returned unchanged. A failed one is reset and re-queued.

        Raises:
            ValidationError: Bad id/priority, or no resume location
            NotFoundError: Unknown application
        """
        _validate_id(application_id, 'application_id')
        _validate_priority(priority)

        try:
            with self.uow_factory() as repo:
                application = repo.application.get_by_id(application_id)
                if application is None:
                    raise NotFoundError(f"Application {application_id} not found")
                if not (resume_path or application.resume_url):
                    raise ValidationError(f"Application {application_id} has no resume to screen")

                existing = repo.screening.get_by_application(application_id)
                if existing is not None and existing.status != ScreeningStatus.FAILED.value:
                    logger.info(f"Screening already exists for application {application_id} ({existing.status})")
                    return ScreeningResultDTO.from_orm(existing)

                if existing is not None:
                    screening = repo.screening.reset_to_pending(existing, priority=priority)
                else:
                    screening = repo.screening.create(application_id, application.job_posting_id, priority)
                repo.application.update_screening_status(application_id, ScreeningStatus.PENDING.value)
                screening_id = screening.screening_id
        except IntegrityError:
            # Concurrent trigger created the row first
            logger.info(f"Screening for application {application_id} was created concurrently")
            return self.get_screening_by_application(application_id)

        logger.info(f"Triggering screening {screening_id} for application {application_id} (priority {priority})")
        self._enqueue(screening_id, priority, resume_path)
        return self.get_screening_result(screening_id)

    def trigger_bulk_screening(self, application_ids: List[int], priority: int = 0) -> Dict[str, Any]:
        """Trigger several applications; failures are reported, not raised."""
        _validate_priority(priority)
        results: List[ScreeningResultDTO] = []
        errors: List[Dict[str, Any]] = []

        for application_id in application_ids:
            try:
                results.append(self.trigger_screening(application_id, priority=priority))
            except Exception as e:
                logger.error(f"Failed to trigger screening for application {application_id}: {e}")
                errors.append({'application_id': application_id, 'error': str(e)})

        logger.info(f"Bulk screening: {len(results)} triggered, {len(errors)} failed")
        return {'triggered': len(results), 'failed': len(errors), 'results': results, 'errors': errors}

    def get_screening_result(self, screening_id: int) -> ScreeningResultDTO:
        _validate_id(screening_id, 'screening_id')
        with self.uow_factory() as repo:
            screening = repo.screening.get_by_id(screening_id)
            if screening is None:
                raise NotFoundError(f"Screening {screening_id} not found")
            return ScreeningResultDTO.from_orm(screening)

    def get_screening_by_application(self, application_id: int) -> ScreeningResultDTO:
        _validate_id(application_id, 'application_id')
        with self.uow_factory() as repo:
            screening = repo.screening.get_by_application(application_id)
            if screening is None:
                raise NotFoundError(f"No screening found for application {application_id}")
            return ScreeningResultDTO.from_orm(screening)

    def get_screening_results(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        job_posting_id: Optional[int] = None,
        min_score: Optional[float] = None,
        max_score: Optional[float] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'DESC',
    ) -> Dict[str, Any]:
        """Paginated, filtered list of screening results."""
        if page < 1:
            raise ValidationError("Page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if status is not None:
            try:
                status = ScreeningStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown status: {status}")
        if sort_by not in SORTABLE_FIELDS:
            logger.warning(f"Unsupported sort field '{sort_by}', using created_at")
            sort_by = 'created_at'
        sort_order = 'ASC' if str(sort_order).upper() == 'ASC' else 'DESC'

        with self.uow_factory() as repo:
            rows, total = repo.screening.list_results(
                offset=(page - 1) * limit,
                limit=limit,
                status=status,
                job_posting_id=job_posting_id,
                min_score=min_score,
                max_score=max_score,
                sort_by=sort_by,
                sort_order=sort_order,
            )
            data = [ScreeningResultDTO.from_orm(row) for row in rows]

        return {
            'data': data,
            'total': total,
            'page': page,
            'limit': limit,
            'total_pages': math.ceil(total / limit) if total else 0,
        }

    def get_screening_stats(self, job_posting_id: Optional[int] = None) -> Dict[str, Any]:
        with self.uow_factory() as repo:
            return repo.screening.get_stats(job_posting_id)

    def retry_screening(self, screening_id: int, force: bool = False) -> ScreeningResultDTO:
        """
        Reset a screening to pending and re-queue it.

        Raises:
            ValidationError: Not failed and force not set
            NotFoundError: Unknown screening
        """
        _validate_id(screening_id, 'screening_id')
        with self.uow_factory() as repo:
            screening = repo.screening.get_by_id(screening_id)
            if screening is None:
                raise NotFoundError(f"Screening {screening_id} not found")
            if not force and screening.status != ScreeningStatus.FAILED.value:
                raise ValidationError(
                    f"Screening {screening_id} is {screening.status}; only failed screenings can be retried. "
                    f"Use force=true to override"
                )
            previous_job_id = screening.queue_job_id
            priority = screening.priority or 0
            application_id = screening.application_id

            repo.screening.reset_to_pending(screening)
            repo.embedding.delete_application_embeddings(application_id)
            repo.application.update_screening_status(application_id, ScreeningStatus.PENDING.value)

        if previous_job_id:
            self.queue_manager.cancel_job(previous_job_id)
        logger.info(f"Retrying screening {screening_id} (force={force})")
        self._enqueue(screening_id, priority)
        return self.get_screening_result(screening_id)

    def cancel_screening(self, screening_id: int) -> ScreeningResultDTO:
        """
        Cancel a pending or processing screening.

        A running stage is not interrupted, but it can no longer complete
        the screening.

        Raises:
            ConflictError: Screening already completed
            NotFoundError: Unknown screening
        """
        _validate_id(screening_id, 'screening_id')
        with self.uow_factory() as repo:
            screening = repo.screening.get_by_id(screening_id)
            if screening is None:
                raise NotFoundError(f"Screening {screening_id} not found")
            if screening.status == ScreeningStatus.COMPLETED.value:
                raise ConflictError(f"Screening {screening_id} is already completed")
            if screening.status == ScreeningStatus.FAILED.value:
                return ScreeningResultDTO.from_orm(screening)
            job_id = screening.queue_job_id

        self.queue_manager.cancel_job(job_id)

        with self.uow_factory() as repo:
            screening = repo.screening.get_by_id(screening_id)
            if repo.screening.mark_failed(screening_id, CANCELLED_MESSAGE):
                repo.application.update_screening_status(screening.application_id, ScreeningStatus.FAILED.value)
            elif repo.screening.get_status(screening_id) == ScreeningStatus.COMPLETED.value:
                # Final stage finished before the cancel landed
                raise ConflictError(f"Screening {screening_id} is already completed")
            logger.info(f"Cancelled screening {screening_id}")

        return self.get_screening_result(screening_id)

    def get_queue_status(self) -> Dict[str, Any]:
        return {
            'async_mode': self.queue_manager.async_mode,
            'queues': self.queue_manager.get_queue_stats(),
            'circuit_breakers': {
                'embedding': self.ctx.embedding_client.get_circuit_state(),
                'summary': self.ctx.summary_generator.get_circuit_state(),
            },
        }

    def reprocess_job_applications(self, job_posting_id: int) -> Dict[str, Any]:
        """Force a fresh screening of every application of a posting."""
        _validate_id(job_posting_id, 'job_posting_id')
        with self.uow_factory() as repo:
            if repo.job_posting.get_by_id(job_posting_id) is None:
                raise NotFoundError(f"Job posting {job_posting_id} not found")
            application_ids = [a.application_id for a in repo.application.list_by_job_posting(job_posting_id)]
            screening_ids = {
                s.application_id: s.screening_id for s in repo.screening.list_by_job_posting(job_posting_id)
            }

        triggered = 0
        for application_id in application_ids:
            try:
                if application_id in screening_ids:
                    self.retry_screening(screening_ids[application_id], force=True)
                else:
                    self.trigger_screening(application_id)
                triggered += 1
            except Exception as e:
                logger.error(f"Failed to reprocess application {application_id}: {e}")

        logger.info(f"Reprocessing job posting {job_posting_id}: {triggered}/{len(application_ids)} triggered")
        return {
            'job_posting_id': job_posting_id,
            'applications_found': len(application_ids),
            'screenings_triggered': triggered,
        }

    def find_similar_chunks(self, job_posting_id: int, limit: int = 10, threshold: float = 0.7) -> List[Dict[str, Any]]:
        """CV excerpts from this posting's applicants that best match the job."""
        _validate_id(job_posting_id, 'job_posting_id')
        if not 0.0 <= threshold <= 1.0:
            raise ValidationError("Threshold must be between 0 and 1")
        with self.uow_factory() as repo:
            job_posting = repo.job_posting.get_by_id(job_posting_id)
            if job_posting is None:
                raise NotFoundError(f"Job posting {job_posting_id} not found")
            job_vector = self.runner.ensure_job_embedding(repo, job_posting)
            return find_similar_chunks(
                repo.embedding, job_vector, job_posting_id=job_posting_id, limit=limit, threshold=threshold
            )

    def refresh_skill_taxonomy(self) -> Dict[str, int]:
        with self.uow_factory() as repo:
            snapshot = self.ctx.taxonomy.refresh(repo.skill)
        return {'skills': len(snapshot.skills_by_id), 'aliases': len(snapshot.aliases_by_name)}

    def _enqueue(self, screening_id: int, priority: int, resume_path: Optional[str] = None) -> None:
        job_id = self.queue_manager.enqueue_cv_processing(screening_id, priority=priority, resume_path=resume_path)
        if job_id:
            with self.uow_factory() as repo:
                repo.screening.set_queue_job_id(screening_id, job_id)
