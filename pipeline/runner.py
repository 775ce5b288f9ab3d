"""Screening pipeline runner module.

The pipeline runs in three stages, each a separate queue job in async mode:

1. process_cv: resolve resume, extract text, NLP features, chunk + embed
2. calculate_similarity: job embedding, vector/chunk similarity, scores
3. generate_summary: LLM summary, COMPLETED status, application write-back

Every stage re-reads state from the database, so stages can run in
different worker processes. Failures are written onto the screening row;
transient provider errors are re-raised while the queue still has retries
for the job.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.app_context import AppContext
from core.exceptions import NotFoundError, PipelineFailure, TransientProviderError
from core.matcher.similarity import calculate_chunk_similarity
from core.scorer.service import build_job_text
from core.storage import resolve_resume_path
from database.models import EmbeddingType, ScreeningStatus
from database.uow import screening_uow
from etl.resume.chunker import chunk_text
from etl.resume.models import ProcessedCvData

logger = logging.getLogger(__name__)

STAGES = ('process_cv', 'calculate_similarity', 'generate_summary')
JOB_SKILL_SEPARATOR = re.compile(r'[,;\n]+')
TAXONOMY_MAX_AGE_SECONDS = 300


def _elapsed_ms(started_at: Optional[datetime]) -> Optional[int]:
    if started_at is None:
        return None
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    return max(0, int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000))


def _stage_result(stage: str, screening_id: int, status: str, **extra) -> Dict[str, Any]:
    result = {'stage': stage, 'screening_id': screening_id, 'status': status}
    result.update(extra)
    return result


class ScreeningPipelineRunner:
    """Execute the screening stages against the database."""

    def __init__(self, ctx: AppContext, uow_factory: Callable = screening_uow):
        self.ctx = ctx
        self.config = ctx.config
        self.uow_factory = uow_factory

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------
    def process_cv(self, screening_id: int, resume_path: Optional[str] = None, retries_left: int = 0) -> Dict[str, Any]:
        return self._run_stage('process_cv', screening_id, retries_left, self._process_cv, resume_path)

    def _process_cv(self, screening_id: int, resume_path: Optional[str]) -> Dict[str, Any]:
        with self.uow_factory() as repo:
            screening = self._load_screening(repo, screening_id)
            if screening.status not in (ScreeningStatus.PENDING.value, ScreeningStatus.PROCESSING.value):
                return _stage_result('process_cv', screening_id, 'skipped', reason=screening.status)
            application_id = screening.application_id
            application = repo.application.get_by_id(application_id)
            if application is None:
                raise NotFoundError(f"Application {application_id} not found")
            location = resume_path or application.resume_url

        path = resolve_resume_path(location, self.config.storage.uploads_dir)
        logger.info(f"Screening {screening_id}: extracting text from {path}")
        extracted = self.ctx.text_extractor.extract(path)

        with self.uow_factory() as repo:
            if not repo.screening.mark_processing(screening_id, extracted.text):
                return _stage_result('process_cv', screening_id, 'skipped', reason='no longer pending')

        processed = self.ctx.nlp_processor.process(extracted.text)
        with self.uow_factory() as repo:
            self._ensure_taxonomy(repo)
        taxonomy_cfg = self.config.taxonomy
        skills = self.ctx.taxonomy.extract_skills(
            extracted.text,
            semantic_threshold=taxonomy_cfg.semantic_threshold,
            use_semantic=taxonomy_cfg.enable_semantic,
        )
        processed.canonical_skills = skills.canonical_names

        with self.uow_factory() as repo:
            repo.screening.save_processed_data(screening_id, processed.to_dict())

        chunks = chunk_text(extracted.text, self.config.chunking)
        client = self.ctx.embedding_client
        vectors = [client.embed(chunk.text).vector for chunk in chunks]
        full = client.embed(extracted.text)

        with self.uow_factory() as repo:
            repo.embedding.replace_chunks(application_id, chunks, vectors, client.model)
            repo.embedding.store_embedding(
                EmbeddingType.CV_FULL_TEXT,
                full.vector,
                model=full.model,
                dimensions=full.dimensions,
                original_text=extracted.text,
                application_id=application_id,
                metadata={'page_count': extracted.page_count, 'chunk_count': len(chunks)},
            )

        logger.info(
            f"Screening {screening_id}: processed CV ({len(extracted.text)} chars, "
            f"{len(chunks)} chunks, {len(processed.canonical_skills)} canonical skills)"
        )
        return _stage_result(
            'process_cv', screening_id, 'ok',
            characters=len(extracted.text), chunks=len(chunks),
        )

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------
    def calculate_similarity(self, screening_id: int, retries_left: int = 0) -> Dict[str, Any]:
        return self._run_stage('calculate_similarity', screening_id, retries_left, self._calculate_similarity)

    def _calculate_similarity(self, screening_id: int) -> Dict[str, Any]:
        with self.uow_factory() as repo:
            screening = self._load_screening(repo, screening_id)
            if screening.status != ScreeningStatus.PROCESSING.value:
                return _stage_result('calculate_similarity', screening_id, 'skipped', reason=screening.status)
            application_id = screening.application_id
            job_posting = repo.job_posting.get_by_id(screening.job_posting_id)
            if job_posting is None:
                raise NotFoundError(f"Job posting {screening.job_posting_id} not found")

            job_vector = self.ensure_job_embedding(repo, job_posting)
            vector_similarity = repo.embedding.vector_similarity(application_id, job_posting.job_posting_id) or 0.0
            chunk_similarity = calculate_chunk_similarity(
                repo.embedding, application_id, job_vector, top_k=self.config.scoring.chunk_top_k
            )

            self._ensure_taxonomy(repo)
            processed = ProcessedCvData.from_dict(screening.processed_data)
            job_skills = self.ctx.taxonomy.normalize_job_skills(
                JOB_SKILL_SEPARATOR.split(job_posting.skills or '')
            )
            cv_skills = self._merge_skills(processed.skills.all_skills(), processed.canonical_skills)

            breakdown = self.ctx.scorer.score(
                vector_similarity=vector_similarity,
                cv_skills=cv_skills,
                experience_years=processed.total_experience_years,
                education=processed.education,
                job_posting=job_posting,
                job_skills=job_skills,
                chunk_similarity=chunk_similarity.max_similarity,
                top_chunks=chunk_similarity.chunks,
            )
            repo.screening.save_scores(screening_id, breakdown.to_dict())

        logger.info(f"Screening {screening_id}: overall score {breakdown.overall_score}")
        return _stage_result('calculate_similarity', screening_id, 'ok', **breakdown.to_dict())

    def ensure_job_embedding(self, repo, job_posting) -> List[float]:
        """Return the job description vector, creating it on first use."""
        existing = repo.embedding.get_embedding(
            EmbeddingType.JOB_DESCRIPTION, job_posting_id=job_posting.job_posting_id
        )
        if existing is not None:
            return list(existing.embedding)

        job_text = build_job_text(job_posting)
        result = self.ctx.embedding_client.embed(job_text)
        repo.embedding.store_embedding(
            EmbeddingType.JOB_DESCRIPTION,
            result.vector,
            model=result.model,
            dimensions=result.dimensions,
            original_text=job_text,
            job_posting_id=job_posting.job_posting_id,
        )
        logger.info(f"Created job description embedding for posting {job_posting.job_posting_id}")
        return result.vector

    @staticmethod
    def _merge_skills(keyword_skills: List[str], canonical_skills: List[str]) -> List[str]:
        merged, seen = [], set()
        for skill in list(keyword_skills) + list(canonical_skills):
            if skill and skill.lower() not in seen:
                seen.add(skill.lower())
                merged.append(skill)
        return merged

    # ------------------------------------------------------------------
    # Stage 3
    # ------------------------------------------------------------------
    def generate_summary(self, screening_id: int, retries_left: int = 0) -> Dict[str, Any]:
        return self._run_stage('generate_summary', screening_id, retries_left, self._generate_summary)

    def _generate_summary(self, screening_id: int) -> Dict[str, Any]:
        with self.uow_factory() as repo:
            screening = self._load_screening(repo, screening_id)
            if screening.status != ScreeningStatus.PROCESSING.value:
                return _stage_result('generate_summary', screening_id, 'skipped', reason=screening.status)
            job_posting = repo.job_posting.get_by_id(screening.job_posting_id)
            if job_posting is None:
                raise NotFoundError(f"Job posting {screening.job_posting_id} not found")
            application_id = screening.application_id
            overall_score = screening.overall_score
            started_at = screening.started_at
            cv_text = screening.extracted_text or ''
            processed = ProcessedCvData.from_dict(screening.processed_data)
            job_text = build_job_text(job_posting)

        summary = self.ctx.summary_generator.generate(cv_text, processed, job_text)
        completed_at = datetime.now(timezone.utc)

        with self.uow_factory() as repo:
            completed = repo.screening.complete(
                screening_id,
                ai_summary=summary.summary,
                key_highlights=summary.key_highlights,
                concerns=summary.concerns,
                summary_details=summary.details(),
                processing_time_ms=_elapsed_ms(started_at) or 0,
                completed_at=completed_at,
            )
            if not completed:
                logger.info(f"Screening {screening_id} is no longer processing; summary discarded")
                return _stage_result('generate_summary', screening_id, 'skipped', reason='no longer processing')

            repo.application.update_screening_status(
                application_id,
                ScreeningStatus.COMPLETED.value,
                screening_score=overall_score,
                completed_at=completed_at,
            )

        logger.info(f"Screening {screening_id} completed (score={overall_score}, summary={summary.source})")
        return _stage_result('generate_summary', screening_id, 'completed', overall_score=overall_score)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------
    def run_full(self, screening_id: int, from_stage: str = 'process_cv', resume_path: Optional[str] = None) -> Dict[str, Any]:
        """Run the remaining stages inline, stopping at the first non-ok stage."""
        if from_stage not in STAGES:
            raise ValueError(f"Unknown stage: {from_stage}")

        start = time.time()
        result: Dict[str, Any] = {}
        for stage in STAGES[STAGES.index(from_stage):]:
            if stage == 'process_cv':
                result = self.process_cv(screening_id, resume_path=resume_path)
            else:
                result = getattr(self, stage)(screening_id)
            if result['status'] != 'ok':
                break

        logger.info(
            f"Pipeline for screening {screening_id} finished with {result.get('status')} "
            f"in {time.time() - start:.2f}s"
        )
        return result

    def _run_stage(self, stage: str, screening_id: int, retries_left: int, func: Callable, *args) -> Dict[str, Any]:
        try:
            return func(screening_id, *args)
        except TransientProviderError as e:
            if retries_left > 0:
                logger.warning(
                    f"Screening {screening_id}: transient error in {stage} ({e}); "
                    f"{retries_left} job retries left"
                )
                raise
            failure = PipelineFailure(str(e) or e.__class__.__name__)
            failure.__cause__ = e
            return self._fail(stage, screening_id, failure)
        except Exception as e:
            return self._fail(stage, screening_id, e)

    def _fail(self, stage: str, screening_id: int, error: Exception) -> Dict[str, Any]:
        logger.error(f"Screening {screening_id} failed in {stage}: {error}", exc_info=True)
        message = str(error) or error.__class__.__name__
        try:
            with self.uow_factory() as repo:
                screening = repo.screening.get_by_id(screening_id)
                if screening is None:
                    return _stage_result(stage, screening_id, 'failed', error=message)
                elapsed = _elapsed_ms(screening.started_at)
                if repo.screening.mark_failed(screening_id, message, elapsed):
                    repo.application.update_screening_status(
                        screening.application_id, ScreeningStatus.FAILED.value
                    )
        except Exception as db_error:
            logger.error(f"Failed to record failure for screening {screening_id}: {db_error}")
        return _stage_result(stage, screening_id, 'failed', error=message)

    def _load_screening(self, repo, screening_id: int):
        screening = repo.screening.get_by_id(screening_id)
        if screening is None:
            raise NotFoundError(f"Screening {screening_id} not found")
        return screening

    def _ensure_taxonomy(self, repo) -> None:
        snapshot = self.ctx.taxonomy.snapshot
        if not snapshot.skills_by_id or time.time() - snapshot.built_at > TAXONOMY_MAX_AGE_SECONDS:
            self.ctx.taxonomy.refresh(repo.skill)
