"""
Repository tests against PostgreSQL with pgvector.

Each test runs inside a transaction that is rolled back afterwards.
"""
from types import SimpleNamespace

import pytest

from database.models import EMBEDDING_DIMENSIONS, Application, EmbeddingType, JobPosting
from database.repository import ScreeningRepository

pytestmark = pytest.mark.db


def unit_vector(index: int):
    vector = [0.0] * EMBEDDING_DIMENSIONS
    vector[index] = 1.0
    return vector


@pytest.fixture
def repo(db_session):
    return ScreeningRepository(db_session)


@pytest.fixture
def application(db_session):
    posting = JobPosting(title="Backend Engineer", skills="Python, PostgreSQL", min_experience_years=2)
    db_session.add(posting)
    db_session.flush()
    app = Application(job_posting_id=posting.job_posting_id, candidate_name="Jane", resume_url="/uploads/jane.pdf")
    db_session.add(app)
    db_session.flush()
    return app


class TestEmbeddings:

    def test_upsert_replaces_existing_row(self, repo, application):
        first = repo.embedding.store_embedding(
            EmbeddingType.CV_FULL_TEXT, unit_vector(0), model="m1", dimensions=EMBEDDING_DIMENSIONS,
            application_id=application.application_id, metadata={'page_count': 1},
        )
        second = repo.embedding.store_embedding(
            EmbeddingType.CV_FULL_TEXT, unit_vector(1), model="m2", dimensions=EMBEDDING_DIMENSIONS,
            application_id=application.application_id, metadata={'page_count': 2},
        )

        assert second.embedding_id == first.embedding_id
        stored = repo.embedding.get_embedding(EmbeddingType.CV_FULL_TEXT, application_id=application.application_id)
        assert stored.model == "m2"
        assert stored.embedding_metadata == {'page_count': 2}
        assert list(stored.embedding)[1] == 1.0

    def test_vector_similarity(self, repo, application):
        repo.embedding.store_embedding(
            EmbeddingType.CV_FULL_TEXT, unit_vector(0), model="m", dimensions=EMBEDDING_DIMENSIONS,
            application_id=application.application_id,
        )
        assert repo.embedding.vector_similarity(application.application_id, application.job_posting_id) is None

        repo.embedding.store_embedding(
            EmbeddingType.JOB_DESCRIPTION, unit_vector(0), model="m", dimensions=EMBEDDING_DIMENSIONS,
            job_posting_id=application.job_posting_id,
        )
        similarity = repo.embedding.vector_similarity(application.application_id, application.job_posting_id)
        assert similarity == pytest.approx(1.0)

    def test_replace_chunks_and_top_chunks(self, repo, application):
        chunks = [
            SimpleNamespace(text="Python APIs", start_position=0, end_position=11, chunk_index=0),
            SimpleNamespace(text="Gardening", start_position=8, end_position=17, chunk_index=1),
        ]
        repo.embedding.replace_chunks(application.application_id, chunks, [unit_vector(0), unit_vector(1)], "m")
        repo.embedding.replace_chunks(application.application_id, chunks, [unit_vector(0), unit_vector(1)], "m")

        assert len(repo.embedding.get_chunks(application.application_id)) == 2
        top = repo.embedding.find_top_chunks(application.application_id, unit_vector(0), top_k=1)
        assert top[0][0].chunk_text == "Python APIs"
        assert top[0][1] == pytest.approx(1.0)

        similar = repo.embedding.find_similar_chunks(
            unit_vector(1), job_posting_id=application.job_posting_id, threshold=0.9
        )
        assert [c.chunk_text for c, _ in similar] == ["Gardening"]


    def test_find_similar_cvs_and_jobs(self, repo, application):
        assert repo.embedding.find_similar_cvs(application.job_posting_id) == []

        repo.embedding.store_embedding(
            EmbeddingType.CV_FULL_TEXT, unit_vector(2), model="m", dimensions=EMBEDDING_DIMENSIONS,
            application_id=application.application_id,
        )
        repo.embedding.store_embedding(
            EmbeddingType.JOB_DESCRIPTION, unit_vector(2), model="m", dimensions=EMBEDDING_DIMENSIONS,
            job_posting_id=application.job_posting_id,
        )

        cvs = repo.embedding.find_similar_cvs(application.job_posting_id, threshold=0.9)
        assert [e.application_id for e, _ in cvs] == [application.application_id]
        jobs = repo.embedding.find_similar_jobs(application.application_id, threshold=0.9)
        assert [e.job_posting_id for e, _ in jobs] == [application.job_posting_id]


class TestScreeningResults:

    def test_mark_failed_keeps_completed(self, repo, application):
        screening = repo.screening.create(application.application_id, application.job_posting_id)
        assert repo.screening.mark_processing(screening.screening_id, "CV text")
        assert repo.screening.complete(
            screening.screening_id, ai_summary="ok", key_highlights=[], concerns=[],
            summary_details={}, processing_time_ms=120,
        )

        assert repo.screening.mark_failed(screening.screening_id, "late failure") is False

    def test_complete_requires_processing(self, repo, application):
        screening = repo.screening.create(application.application_id, application.job_posting_id)
        assert repo.screening.mark_failed(screening.screening_id, "Cancelled by user")
        assert repo.screening.complete(
            screening.screening_id, ai_summary="ok", key_highlights=[], concerns=[],
            summary_details={}, processing_time_ms=120,
        ) is False

    def test_stats_and_listing(self, repo, application, db_session):
        screening = repo.screening.create(application.application_id, application.job_posting_id)
        repo.screening.mark_processing(screening.screening_id, "CV text")
        repo.screening.save_scores(screening.screening_id, {'overall_score': 80.0, 'ignored': 1})
        repo.screening.complete(
            screening.screening_id, ai_summary="ok", key_highlights=["Python"], concerns=[],
            summary_details={}, processing_time_ms=100,
        )

        other = Application(job_posting_id=application.job_posting_id, resume_url="/uploads/b.pdf")
        db_session.add(other)
        db_session.flush()
        repo.screening.create(other.application_id, application.job_posting_id)

        stats = repo.screening.get_stats(application.job_posting_id)
        assert stats['total'] == 2
        assert stats['completed'] == 1
        assert stats['pending'] == 1
        assert stats['average_score'] == 80.0
        assert stats['average_processing_time'] == 100

        rows, total = repo.screening.list_results(
            job_posting_id=application.job_posting_id, min_score=50, sort_by='overall_score'
        )
        assert total == 1
        assert rows[0].screening_id == screening.screening_id
