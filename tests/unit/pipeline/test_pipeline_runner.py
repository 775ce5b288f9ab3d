"""
Unit tests for the screening pipeline runner.

Tests verify:
- Stage failures are recorded on the screening and the application
- Transient provider errors are re-raised while job retries remain
- run_full stops at the first stage that is not ok
- Stages skip screenings that are no longer in the expected state
"""
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from core.config_loader import AppConfig, DatabaseConfig
from core.exceptions import TransientProviderError
from core.llm.embedding_client import EmbeddingResult
from core.llm.summary_generator import CvSummary
from core.scorer.models import ScoreBreakdown
from etl.resume.models import ProcessedCvData
from etl.resume.text_extractor import ExtractedText
from pipeline.runner import ScreeningPipelineRunner
from tests.mocks.llm_mocks import mock_uow_factory


@pytest.fixture
def uow():
    return mock_uow_factory()


@pytest.fixture
def repo(uow):
    return uow[1]


@pytest.fixture
def ctx():
    ctx = MagicMock()
    ctx.config = AppConfig(database=DatabaseConfig(url='postgresql://localhost/test'))
    return ctx


@pytest.fixture
def runner(ctx, uow):
    return ScreeningPipelineRunner(ctx, uow_factory=uow[0])


def screening(status='processing', **overrides):
    values = dict(
        screening_id=1, application_id=10, job_posting_id=5, status=status,
        started_at=datetime.now(timezone.utc), overall_score=72.5,
        extracted_text='CV text', processed_data=ProcessedCvData().to_dict(),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestFailureHandling:

    def test_failure_recorded(self, runner, repo):
        repo.screening.get_by_id.return_value = screening()
        repo.screening.mark_failed.return_value = True

        with patch.object(runner, '_calculate_similarity', side_effect=RuntimeError("boom")):
            result = runner.calculate_similarity(1)

        assert result == {'stage': 'calculate_similarity', 'screening_id': 1, 'status': 'failed', 'error': 'boom'}
        screening_id, message, elapsed = repo.screening.mark_failed.call_args.args
        assert (screening_id, message) == (1, 'boom')
        assert elapsed >= 0
        repo.application.update_screening_status.assert_called_once_with(10, 'failed')

    def test_completed_screening_not_overwritten(self, runner, repo):
        repo.screening.get_by_id.return_value = screening(status='completed')
        repo.screening.mark_failed.return_value = False

        with patch.object(runner, '_generate_summary', side_effect=RuntimeError("late")):
            result = runner.generate_summary(1)

        assert result['status'] == 'failed'
        repo.application.update_screening_status.assert_not_called()

    def test_transient_error_reraised_while_retries_left(self, runner, repo):
        with patch.object(runner, '_calculate_similarity', side_effect=TransientProviderError("429")):
            with pytest.raises(TransientProviderError):
                runner.calculate_similarity(1, retries_left=2)
        repo.screening.mark_failed.assert_not_called()

    def test_transient_error_fails_on_last_attempt(self, runner, repo):
        repo.screening.get_by_id.return_value = screening()
        repo.screening.mark_failed.return_value = True

        with patch.object(runner, '_calculate_similarity', side_effect=TransientProviderError("429")):
            result = runner.calculate_similarity(1, retries_left=0)

        assert result['status'] == 'failed'
        assert result['error'] == '429'
        assert repo.screening.mark_failed.call_args.args[1] == '429'

    def test_empty_error_message_uses_class_name(self, runner, repo):
        repo.screening.get_by_id.return_value = None
        with patch.object(runner, '_generate_summary', side_effect=KeyError()):
            result = runner.generate_summary(1)
        assert result['error'] == 'KeyError'


class TestRunFull:

    def test_stops_at_first_non_ok_stage(self, runner):
        runner.process_cv = MagicMock(return_value={'status': 'ok'})
        runner.calculate_similarity = MagicMock(return_value={'status': 'failed'})
        runner.generate_summary = MagicMock()

        result = runner.run_full(1, resume_path='/tmp/cv.pdf')

        assert result == {'status': 'failed'}
        runner.process_cv.assert_called_once_with(1, resume_path='/tmp/cv.pdf')
        runner.generate_summary.assert_not_called()

    def test_starts_from_given_stage(self, runner):
        runner.process_cv = MagicMock()
        runner.calculate_similarity = MagicMock()
        runner.generate_summary = MagicMock(return_value={'status': 'completed'})

        result = runner.run_full(1, from_stage='generate_summary')

        assert result['status'] == 'completed'
        runner.process_cv.assert_not_called()
        runner.calculate_similarity.assert_not_called()

    def test_unknown_stage(self, runner):
        with pytest.raises(ValueError):
            runner.run_full(1, from_stage='deploy')


class TestProcessCv:

    def test_skips_completed_screening(self, runner, repo, ctx):
        repo.screening.get_by_id.return_value = screening(status='completed')

        result = runner.process_cv(1)

        assert result['status'] == 'skipped'
        ctx.text_extractor.extract.assert_not_called()

    def test_extracts_chunks_and_embeds(self, runner, repo, ctx, tmp_path):
        cv_file = tmp_path / 'cv.pdf'
        cv_file.write_bytes(b'%PDF-1.4')
        repo.screening.get_by_id.return_value = screening(status='pending')
        repo.application.get_by_id.return_value = SimpleNamespace(resume_url=str(cv_file))
        repo.screening.mark_processing.return_value = True

        ctx.text_extractor.extract.return_value = ExtractedText(text='Python developer. ' * 100, page_count=2)
        ctx.nlp_processor.process.return_value = ProcessedCvData()
        ctx.taxonomy.snapshot.skills_by_id = {1: object()}
        ctx.taxonomy.snapshot.built_at = 1e12
        ctx.taxonomy.extract_skills.return_value.canonical_names = ['Python']
        ctx.embedding_client.model = 'mock'
        ctx.embedding_client.embed.return_value = EmbeddingResult(vector=[0.1, 0.2], model='mock', dimensions=2)

        result = runner.process_cv(1)

        assert result['status'] == 'ok'
        assert result['chunks'] == 2
        saved = repo.screening.save_processed_data.call_args.args[1]
        assert saved['canonical_skills'] == ['Python']
        chunk_args = repo.embedding.replace_chunks.call_args.args
        assert chunk_args[0] == 10
        assert len(chunk_args[1]) == len(chunk_args[2]) == 2
        assert repo.embedding.store_embedding.call_args.kwargs['metadata'] == {'page_count': 2, 'chunk_count': 2}

    def test_cancelled_before_processing(self, runner, repo, ctx, tmp_path):
        cv_file = tmp_path / 'cv.pdf'
        cv_file.write_bytes(b'%PDF-1.4')
        repo.screening.get_by_id.return_value = screening(status='pending')
        repo.application.get_by_id.return_value = SimpleNamespace(resume_url=str(cv_file))
        repo.screening.mark_processing.return_value = False
        ctx.text_extractor.extract.return_value = ExtractedText(text='text', page_count=1)

        result = runner.process_cv(1)

        assert result['status'] == 'skipped'
        ctx.nlp_processor.process.assert_not_called()


class TestSimilarityAndSummary:

    def test_similarity_saves_scores(self, runner, repo, ctx):
        repo.screening.get_by_id.return_value = screening()
        repo.job_posting.get_by_id.return_value = SimpleNamespace(job_posting_id=5, skills='python, go')
        repo.embedding.get_embedding.return_value = SimpleNamespace(embedding=[0.1, 0.2])
        repo.embedding.vector_similarity.return_value = 0.8
        repo.embedding.find_top_chunks.return_value = []
        ctx.taxonomy.snapshot.skills_by_id = {1: object()}
        ctx.taxonomy.snapshot.built_at = 1e12
        ctx.taxonomy.normalize_job_skills.return_value = ['Python', 'Go']
        ctx.scorer.score.return_value = ScoreBreakdown(overall_score=70.0)

        result = runner.calculate_similarity(1)

        assert result['status'] == 'ok'
        assert result['overall_score'] == 70.0
        kwargs = ctx.scorer.score.call_args.kwargs
        assert kwargs['vector_similarity'] == 0.8
        assert kwargs['job_skills'] == ['Python', 'Go']
        ctx.taxonomy.normalize_job_skills.assert_called_once_with(['python', ' go'])
        repo.screening.save_scores.assert_called_once_with(1, ScoreBreakdown(overall_score=70.0).to_dict())
        ctx.embedding_client.embed.assert_not_called()

    def test_summary_completes_screening(self, runner, repo, ctx):
        repo.screening.get_by_id.return_value = screening()
        repo.job_posting.get_by_id.return_value = SimpleNamespace(
            title='Engineer', description=None, requirements=None, skills=None,
            experience_level=None, education_level=None,
        )
        repo.screening.complete.return_value = True
        ctx.summary_generator.generate.return_value = CvSummary(summary='Solid engineer', key_highlights=['Python'])

        result = runner.generate_summary(1)

        assert result == {'stage': 'generate_summary', 'screening_id': 1, 'status': 'completed', 'overall_score': 72.5}
        assert ctx.summary_generator.generate.call_args.args[2] == 'Job Title: Engineer'
        kwargs = repo.screening.complete.call_args.kwargs
        assert kwargs['ai_summary'] == 'Solid engineer'
        assert kwargs['key_highlights'] == ['Python']
        status_call = repo.application.update_screening_status.call_args
        assert status_call.args == (10, 'completed')
        assert status_call.kwargs['screening_score'] == 72.5

    def test_summary_discarded_after_cancel(self, runner, repo, ctx):
        repo.screening.get_by_id.return_value = screening()
        repo.job_posting.get_by_id.return_value = SimpleNamespace(
            title='Engineer', description=None, requirements=None, skills=None,
            experience_level=None, education_level=None,
        )
        repo.screening.complete.return_value = False
        ctx.summary_generator.generate.return_value = CvSummary(summary='x')

        result = runner.generate_summary(1)

        assert result['status'] == 'skipped'
        repo.application.update_screening_status.assert_not_called()
