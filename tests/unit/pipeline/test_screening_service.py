"""
Unit tests for ScreeningService.

The unit of work is replaced by a shared MagicMock repository, so these
tests cover validation, state rules and enqueueing without a database.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from core.exceptions import ConflictError, NotFoundError, ValidationError
from pipeline.dto import ScreeningResultDTO
from pipeline.service import CANCELLED_MESSAGE, ScreeningService
from tests.mocks.llm_mocks import mock_uow_factory


def screening_row(screening_id=1, application_id=10, status='pending', **overrides):
    values = dict(
        screening_id=screening_id, application_id=application_id, job_posting_id=5,
        status=status, priority=0, queue_job_id=None,
        overall_score=None, skills_score=None, experience_score=None, education_score=None,
        vector_similarity=None, chunk_similarity=None,
        ai_summary=None, key_highlights=None, concerns=None, summary_details=None,
        processing_time_ms=None, error_message=None,
        created_at=None, updated_at=None, started_at=None, completed_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def uow():
    return mock_uow_factory()


@pytest.fixture
def repo(uow):
    repo = uow[1]
    repo.application.get_by_id.return_value = SimpleNamespace(
        application_id=10, job_posting_id=5, resume_url='/uploads/cv.pdf'
    )
    repo.screening.get_by_application.return_value = None
    return repo


@pytest.fixture
def queue_manager():
    manager = MagicMock()
    manager.enqueue_cv_processing.return_value = 'job-1'
    manager.async_mode = True
    return manager


@pytest.fixture
def service(uow, queue_manager):
    ctx = MagicMock()
    return ScreeningService(ctx, queue_manager, MagicMock(), uow_factory=uow[0])


class TestTriggerScreening:

    def test_creates_and_enqueues(self, service, repo, queue_manager):
        created = screening_row(screening_id=3)
        repo.screening.create.return_value = created
        repo.screening.get_by_id.return_value = created

        result = service.trigger_screening(10, priority=6)

        repo.screening.create.assert_called_once_with(10, 5, 6)
        repo.application.update_screening_status.assert_called_once_with(10, 'pending')
        queue_manager.enqueue_cv_processing.assert_called_once_with(3, priority=6, resume_path=None)
        repo.screening.set_queue_job_id.assert_called_once_with(3, 'job-1')
        assert isinstance(result, ScreeningResultDTO)
        assert result.screening_id == 3

    def test_existing_screening_returned_unchanged(self, service, repo, queue_manager):
        repo.screening.get_by_application.return_value = screening_row(status='completed', overall_score=81.0)

        result = service.trigger_screening(10)

        assert result.status == 'completed'
        assert result.overall_score == 81.0
        repo.screening.create.assert_not_called()
        queue_manager.enqueue_cv_processing.assert_not_called()

    def test_failed_screening_is_reset(self, service, repo, queue_manager):
        failed = screening_row(status='failed')
        repo.screening.get_by_application.return_value = failed
        repo.screening.reset_to_pending.return_value = failed
        repo.screening.get_by_id.return_value = failed

        service.trigger_screening(10, priority=2)

        repo.screening.reset_to_pending.assert_called_once_with(failed, priority=2)
        queue_manager.enqueue_cv_processing.assert_called_once()

    def test_no_resume_rejected(self, service, repo, queue_manager):
        repo.application.get_by_id.return_value = SimpleNamespace(
            application_id=10, job_posting_id=5, resume_url=None
        )

        with pytest.raises(ValidationError):
            service.trigger_screening(10)

        repo.screening.create.assert_not_called()
        queue_manager.enqueue_cv_processing.assert_not_called()

    def test_explicit_resume_path_allowed(self, service, repo, queue_manager):
        repo.application.get_by_id.return_value = SimpleNamespace(
            application_id=10, job_posting_id=5, resume_url=None
        )
        repo.screening.create.return_value = screening_row()
        repo.screening.get_by_id.return_value = screening_row()

        service.trigger_screening(10, resume_path='/tmp/cv.pdf')

        queue_manager.enqueue_cv_processing.assert_called_once_with(1, priority=0, resume_path='/tmp/cv.pdf')

    def test_unknown_application(self, service, repo):
        repo.application.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            service.trigger_screening(99)

    @pytest.mark.parametrize("application_id,priority", [(0, 0), (-1, 0), (True, 0), (1, 11), (1, -1)])
    def test_invalid_arguments(self, service, application_id, priority):
        with pytest.raises(ValidationError):
            service.trigger_screening(application_id, priority=priority)

    def test_concurrent_create_returns_existing(self, service, repo, queue_manager):
        repo.screening.create.side_effect = IntegrityError("insert", {}, Exception("duplicate key"))
        repo.screening.get_by_application.side_effect = [None, screening_row(screening_id=4)]

        result = service.trigger_screening(10)

        assert result.screening_id == 4
        queue_manager.enqueue_cv_processing.assert_not_called()

    def test_sync_mode_does_not_store_job_id(self, service, repo, queue_manager):
        queue_manager.enqueue_cv_processing.return_value = None
        repo.screening.create.return_value = screening_row()
        repo.screening.get_by_id.return_value = screening_row()

        service.trigger_screening(10)

        repo.screening.set_queue_job_id.assert_not_called()


class TestBulkTrigger:

    def test_errors_collected(self, service, repo):
        repo.screening.create.return_value = screening_row()
        repo.screening.get_by_id.return_value = screening_row()
        repo.application.get_by_id.side_effect = lambda app_id: None if app_id == 2 else SimpleNamespace(
            application_id=app_id, job_posting_id=5, resume_url='/uploads/cv.pdf'
        )

        result = service.trigger_bulk_screening([1, 2, 3])

        assert result['triggered'] == 2
        assert result['failed'] == 1
        assert result['errors'][0]['application_id'] == 2
        assert 'not found' in result['errors'][0]['error']

    def test_priority_validated_up_front(self, service):
        with pytest.raises(ValidationError):
            service.trigger_bulk_screening([1], priority=20)


class TestRetryAndCancel:

    def test_retry_requires_failed_or_force(self, service, repo):
        repo.screening.get_by_id.return_value = screening_row(status='completed')
        with pytest.raises(ValidationError):
            service.retry_screening(1)
        repo.screening.reset_to_pending.assert_not_called()

    def test_forced_retry(self, service, repo, queue_manager):
        row = screening_row(status='completed', queue_job_id='old-job', priority=7)
        repo.screening.get_by_id.return_value = row

        service.retry_screening(1, force=True)

        repo.screening.reset_to_pending.assert_called_once_with(row)
        repo.embedding.delete_application_embeddings.assert_called_once_with(10)
        queue_manager.cancel_job.assert_called_once_with('old-job')
        queue_manager.enqueue_cv_processing.assert_called_once_with(1, priority=7, resume_path=None)

    def test_retry_unknown(self, service, repo):
        repo.screening.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            service.retry_screening(1)

    def test_cancel_completed_conflicts(self, service, repo, queue_manager):
        repo.screening.get_by_id.return_value = screening_row(status='completed')
        with pytest.raises(ConflictError):
            service.cancel_screening(1)
        queue_manager.cancel_job.assert_not_called()

    def test_cancel_pending(self, service, repo, queue_manager):
        repo.screening.get_by_id.return_value = screening_row(status='pending', queue_job_id='job-5')
        repo.screening.mark_failed.return_value = True

        service.cancel_screening(1)

        queue_manager.cancel_job.assert_called_once_with('job-5')
        repo.screening.mark_failed.assert_called_once_with(1, CANCELLED_MESSAGE)
        repo.application.update_screening_status.assert_called_once_with(10, 'failed')

    def test_cancel_conflicts_when_completed_meanwhile(self, service, repo, queue_manager):
        repo.screening.get_by_id.return_value = screening_row(status='processing', queue_job_id='job-5')
        repo.screening.mark_failed.return_value = False
        repo.screening.get_status.return_value = 'completed'

        with pytest.raises(ConflictError):
            service.cancel_screening(1)

        queue_manager.cancel_job.assert_called_once_with('job-5')
        repo.screening.get_status.assert_called_once_with(1)
        repo.application.update_screening_status.assert_not_called()

    def test_cancel_failed_is_noop(self, service, repo, queue_manager):
        repo.screening.get_by_id.return_value = screening_row(status='failed')
        result = service.cancel_screening(1)
        assert result.status == 'failed'
        repo.screening.mark_failed.assert_not_called()


class TestQueries:

    def test_pagination(self, service, repo):
        repo.screening.list_results.return_value = ([screening_row(), screening_row(screening_id=2)], 25)

        page = service.get_screening_results(page=2, limit=10, status='completed', sort_by='bogus', sort_order='asc')

        kwargs = repo.screening.list_results.call_args.kwargs
        assert kwargs['offset'] == 10
        assert kwargs['status'] == 'completed'
        assert kwargs['sort_by'] == 'created_at'
        assert kwargs['sort_order'] == 'ASC'
        assert page['total'] == 25
        assert page['total_pages'] == 3
        assert [d.screening_id for d in page['data']] == [1, 2]

    @pytest.mark.parametrize("kwargs", [{'page': 0}, {'limit': 0}, {'limit': 101}, {'status': 'archived'}])
    def test_pagination_validated(self, service, kwargs):
        with pytest.raises(ValidationError):
            service.get_screening_results(**kwargs)

    def test_get_result_not_found(self, service, repo):
        repo.screening.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            service.get_screening_result(1)

    def test_get_by_application(self, service, repo):
        repo.screening.get_by_application.return_value = screening_row(key_highlights=['Python'])
        assert service.get_screening_by_application(10).key_highlights == ['Python']

    def test_queue_status(self, service, queue_manager):
        queue_manager.get_queue_stats.return_value = {'cv-processing': {'waiting': 1}}
        service.ctx.embedding_client.get_circuit_state.return_value = {'state': 'closed'}

        status = service.get_queue_status()

        assert status['async_mode'] is True
        assert status['queues'] == {'cv-processing': {'waiting': 1}}
        assert status['circuit_breakers']['embedding'] == {'state': 'closed'}

    def test_find_similar_chunks_validates_threshold(self, service):
        with pytest.raises(ValidationError):
            service.find_similar_chunks(5, threshold=1.5)


class TestReprocess:

    def test_retries_existing_and_triggers_new(self, service, repo):
        repo.job_posting.get_by_id.return_value = SimpleNamespace(job_posting_id=5)
        repo.application.list_by_job_posting.return_value = [
            SimpleNamespace(application_id=10), SimpleNamespace(application_id=11),
        ]
        repo.screening.list_by_job_posting.return_value = [screening_row(screening_id=1, application_id=10)]
        service.retry_screening = MagicMock()
        service.trigger_screening = MagicMock()

        result = service.reprocess_job_applications(5)

        service.retry_screening.assert_called_once_with(1, force=True)
        service.trigger_screening.assert_called_once_with(11)
        assert result == {'job_posting_id': 5, 'applications_found': 2, 'screenings_triggered': 2}

    def test_unknown_posting(self, service, repo):
        repo.job_posting.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            service.reprocess_job_applications(5)


def test_refresh_skill_taxonomy(service, repo):
    service.ctx.taxonomy.refresh.return_value = SimpleNamespace(
        skills_by_id={1: 'a', 2: 'b'}, aliases_by_name={'js': 'x'}
    )

    assert service.refresh_skill_taxonomy() == {'skills': 2, 'aliases': 1}
    service.ctx.taxonomy.refresh.assert_called_once_with(repo.skill)
