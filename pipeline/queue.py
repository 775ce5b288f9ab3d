"""
Queue Manager - RQ queues for the three screening stages.

Stages run on separate queues so their concurrency can be tuned
independently:
- cv-processing: extract, analyse, chunk and embed the CV
- similarity-calculation: vector/chunk similarity and sub-scores
- summary-generation: LLM summary and completion

When Redis is unreachable or async mode is disabled in config, jobs are
executed inline through the sync runner instead.
"""
import logging
from typing import Any, Dict, List, Optional

from redis import Redis
from rq import Queue, Retry
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus

from core.config_loader import QueueConfig, RedisConfig

logger = logging.getLogger(__name__)

CV_PROCESSING_QUEUE = 'cv-processing'
SIMILARITY_QUEUE = 'similarity-calculation'
SUMMARY_QUEUE = 'summary-generation'
QUEUE_NAMES = (CV_PROCESSING_QUEUE, SIMILARITY_QUEUE, SUMMARY_QUEUE)

# RQ resolves string references in the worker process
TASKS = {
    CV_PROCESSING_QUEUE: 'pipeline.tasks.process_cv_task',
    SIMILARITY_QUEUE: 'pipeline.tasks.calculate_similarity_task',
    SUMMARY_QUEUE: 'pipeline.tasks.generate_summary_task',
}
SYNC_STAGES = {
    CV_PROCESSING_QUEUE: 'process_cv',
    SIMILARITY_QUEUE: 'calculate_similarity',
    SUMMARY_QUEUE: 'generate_summary',
}

HIGH_PRIORITY_THRESHOLD = 5
PAUSED_FLAG_KEY = 'screening:queue:{name}:paused'
PAUSED_JOBS_KEY = 'screening:queue:{name}:paused-jobs'


def build_retry_policy(attempts: int, backoff_seconds: int) -> Optional[Retry]:
    """Exponential job retry: attempts-1 retries at backoff, 2*backoff, ..."""
    retries = max(0, attempts - 1)
    if retries == 0:
        return None
    return Retry(max=retries, interval=[backoff_seconds * (2 ** i) for i in range(retries)])


class QueueManager:
    """Enqueue screening stages on RQ, or run them inline in sync mode."""

    def __init__(
        self,
        redis_config: Optional[RedisConfig] = None,
        queue_config: Optional[QueueConfig] = None,
        sync_runner=None,
    ):
        """
        Args:
            redis_config: Redis URL and async flag
            queue_config: Retry, timeout and retention settings
            sync_runner: ScreeningPipelineRunner used when async mode is off
        """
        self.redis_config = redis_config or RedisConfig()
        self.queue_config = queue_config or QueueConfig()
        self.sync_runner = sync_runner
        self.queues: Dict[str, Queue] = {}
        self.redis_conn: Optional[Redis] = None

        if not self.redis_config.use_async_queue:
            logger.info("Async queue disabled via config. Using sync mode.")
            self.async_mode = False
            return

        try:
            self.redis_conn = Redis.from_url(self.redis_config.url)
            self.redis_conn.ping()
            self.queues = {
                name: Queue(name, connection=self.redis_conn) for name in QUEUE_NAMES
            }
            self.async_mode = True
            logger.info(f"Queue manager connected to Redis ({', '.join(QUEUE_NAMES)})")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}. Falling back to sync mode.")
            self.redis_conn = None
            self.queues = {}
            self.async_mode = False

    @property
    def retry_policy(self) -> Optional[Retry]:
        return build_retry_policy(self.queue_config.attempts, self.queue_config.backoff_seconds)

    def enqueue_cv_processing(self, screening_id: int, priority: int = 0, resume_path: Optional[str] = None) -> Optional[str]:
        """Queue the first stage. Returns the RQ job id (None in sync mode)."""
        return self._dispatch(CV_PROCESSING_QUEUE, screening_id, priority, resume_path=resume_path)

    def enqueue_similarity(self, screening_id: int, priority: int = 0) -> Optional[str]:
        return self._dispatch(SIMILARITY_QUEUE, screening_id, priority)

    def enqueue_summary(self, screening_id: int, priority: int = 0) -> Optional[str]:
        return self._dispatch(SUMMARY_QUEUE, screening_id, priority)

    def _dispatch(self, queue_name: str, screening_id: int, priority: int, **kwargs) -> Optional[str]:
        if not self.async_mode:
            self._run_sync(queue_name, screening_id, **kwargs)
            return None

        queue = self.queues[queue_name]
        at_front = priority > HIGH_PRIORITY_THRESHOLD
        job_kwargs = {k: v for k, v in kwargs.items() if v is not None}
        job_kwargs['priority'] = priority

        if self.is_paused(queue_name):
            job = queue.create_job(
                TASKS[queue_name],
                args=(screening_id,),
                kwargs=job_kwargs,
                timeout=self.queue_config.job_timeout,
                result_ttl=self.queue_config.result_ttl,
                failure_ttl=self.queue_config.failure_ttl,
                retry=self.retry_policy,
                status=JobStatus.DEFERRED,
                meta={'at_front': at_front},
            )
            job.save()
            self.redis_conn.rpush(PAUSED_JOBS_KEY.format(name=queue_name), job.id)
            logger.info(f"Queue {queue_name} is paused; deferred job {job.id} for screening {screening_id}")
            return job.id

        job = queue.enqueue(
            TASKS[queue_name],
            args=(screening_id,),
            kwargs=job_kwargs,
            job_timeout=self.queue_config.job_timeout,
            result_ttl=self.queue_config.result_ttl,
            failure_ttl=self.queue_config.failure_ttl,
            retry=self.retry_policy,
            at_front=at_front,
        )
        logger.info(f"Queued screening {screening_id} on {queue_name} as job {job.id}")
        return job.id

    def _run_sync(self, queue_name: str, screening_id: int, **kwargs) -> None:
        if self.sync_runner is None:
            raise RuntimeError("Sync mode requires a pipeline runner")
        stage = SYNC_STAGES[queue_name]
        logger.info(f"Running screening {screening_id} inline from stage {stage}")
        self.sync_runner.run_full(screening_id, from_stage=stage, resume_path=kwargs.get('resume_path'))

    def cancel_job(self, job_id: Optional[str]) -> bool:
        """Cancel a waiting or deferred job. Running jobs are left alone."""
        if not job_id or not self.async_mode:
            return False
        try:
            job = Job.fetch(job_id, connection=self.redis_conn)
        except NoSuchJobError:
            logger.debug(f"Job {job_id} no longer exists")
            return False

        status = job.get_status()
        if status not in (JobStatus.QUEUED, JobStatus.DEFERRED, JobStatus.SCHEDULED):
            logger.info(f"Job {job_id} is {status}; not cancelling")
            return False

        for name in QUEUE_NAMES:
            self.redis_conn.lrem(PAUSED_JOBS_KEY.format(name=name), 0, job_id)
        job.cancel()
        logger.info(f"Cancelled job {job_id}")
        return True

    def is_paused(self, queue_name: str) -> bool:
        if not self.async_mode:
            return False
        return bool(self.redis_conn.exists(PAUSED_FLAG_KEY.format(name=queue_name)))

    def pause_queue(self, queue_name: str) -> None:
        self._require_queue(queue_name)
        if not self.async_mode:
            logger.warning("Pausing has no effect in sync mode")
            return
        self.redis_conn.set(PAUSED_FLAG_KEY.format(name=queue_name), 1)
        logger.info(f"Paused queue {queue_name}")

    def resume_queue(self, queue_name: str) -> int:
        """Clear the paused flag and enqueue jobs deferred while paused."""
        self._require_queue(queue_name)
        if not self.async_mode:
            return 0

        self.redis_conn.delete(PAUSED_FLAG_KEY.format(name=queue_name))
        queue = self.queues[queue_name]
        paused_key = PAUSED_JOBS_KEY.format(name=queue_name)
        resumed = 0
        while True:
            job_id = self.redis_conn.lpop(paused_key)
            if job_id is None:
                break
            if isinstance(job_id, bytes):
                job_id = job_id.decode()
            try:
                job = Job.fetch(job_id, connection=self.redis_conn)
            except NoSuchJobError:
                continue
            queue.enqueue_job(job, at_front=bool(job.meta.get('at_front')))
            resumed += 1
        logger.info(f"Resumed queue {queue_name}; {resumed} deferred jobs enqueued")
        return resumed

    def get_queue_stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-queue counts: waiting, active, completed, failed, delayed."""
        if not self.async_mode:
            return {
                name: {'waiting': 0, 'active': 0, 'completed': 0, 'failed': 0, 'delayed': 0, 'paused': False}
                for name in QUEUE_NAMES
            }

        stats = {}
        for name, queue in self.queues.items():
            delayed = (
                queue.scheduled_job_registry.count
                + queue.deferred_job_registry.count
                + self.redis_conn.llen(PAUSED_JOBS_KEY.format(name=name))
            )
            stats[name] = {
                'waiting': queue.count,
                'active': queue.started_job_registry.count,
                'completed': queue.finished_job_registry.count,
                'failed': queue.failed_job_registry.count,
                'delayed': delayed,
                'paused': self.is_paused(name),
            }
        return stats

    def clean_queues(self) -> Dict[str, int]:
        """Trim finished/failed registries to the configured retention counts."""
        removed = {'completed': 0, 'failed': 0}
        if not self.async_mode:
            return removed

        for queue in self.queues.values():
            removed['completed'] += self._trim_registry(queue.finished_job_registry, self.queue_config.keep_completed)
            removed['failed'] += self._trim_registry(queue.failed_job_registry, self.queue_config.keep_failed)
        logger.info(f"Cleaned queues: {removed['completed']} completed, {removed['failed']} failed jobs removed")
        return removed

    @staticmethod
    def _trim_registry(registry, keep: int) -> int:
        registry.cleanup()
        job_ids: List[str] = registry.get_job_ids()
        excess = job_ids[:-keep] if keep > 0 else job_ids
        for job_id in excess:
            registry.remove(job_id, delete_job=True)
        return len(excess)

    def _require_queue(self, queue_name: str) -> None:
        if queue_name not in QUEUE_NAMES:
            raise ValueError(f"Unknown queue: {queue_name}")
