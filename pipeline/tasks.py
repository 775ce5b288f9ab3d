"""RQ task entry points - must be at module level for RQ.

Each task runs one pipeline stage and, when it succeeds, enqueues the next
stage on its own queue. The worker process builds its service once and
reuses it across jobs.
"""

import logging
import os
from typing import Any, Dict, Optional

from rq import get_current_job

from core.app_context import AppContext
from core.config_loader import load_config
from database.database import configure_engine

logger = logging.getLogger(__name__)

_service = None


def get_worker_service():
    """Build (once per process) the service used by queue tasks."""
    global _service
    if _service is None:
        from pipeline.service import ScreeningService

        config = load_config(os.environ.get('SCREENING_CONFIG', 'config.yaml'))
        configure_engine(config.database.url)
        _service = ScreeningService.from_context(AppContext.build(config))
        logger.info("Worker screening service initialised")
    return _service


def set_worker_service(service) -> None:
    global _service
    _service = service


def _retries_left() -> int:
    """Job-level retries remaining for the current RQ job (0 outside a worker)."""
    job = get_current_job()
    if job is None:
        return 0
    return job.retries_left or 0


def process_cv_task(screening_id: int, priority: int = 0, resume_path: Optional[str] = None) -> Dict[str, Any]:
    service = get_worker_service()
    result = service.runner.process_cv(screening_id, resume_path=resume_path, retries_left=_retries_left())
    if result['status'] == 'ok':
        service.queue_manager.enqueue_similarity(screening_id, priority=priority)
    return result


def calculate_similarity_task(screening_id: int, priority: int = 0) -> Dict[str, Any]:
    service = get_worker_service()
    result = service.runner.calculate_similarity(screening_id, retries_left=_retries_left())
    if result['status'] == 'ok':
        service.queue_manager.enqueue_summary(screening_id, priority=priority)
    return result


def generate_summary_task(screening_id: int, priority: int = 0) -> Dict[str, Any]:
    service = get_worker_service()
    return service.runner.generate_summary(screening_id, retries_left=_retries_left())
