#!/usr/bin/env python3
"""
RQ Worker for the CV screening pipeline.

Starts one worker process per unit of configured concurrency, each bound
to the queue it serves (cv-processing, similarity-calculation,
summary-generation).

Usage:
    python -m pipeline.worker
    python -m pipeline.worker --burst
    python -m pipeline.worker --queues cv-processing --verbose
"""

import os
import sys
import argparse
import logging
import multiprocessing
from pathlib import Path
from typing import Dict, List, Optional

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from redis import Redis
from rq import Worker

from core.config_loader import load_config
from pipeline.queue import QUEUE_NAMES
from pipeline.tasks import get_worker_service

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _run_worker(queues: List[str], redis_url: str, burst: bool, verbose: bool = False) -> None:
    """Run a single RQ worker (in the current process)."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    redis_conn = Redis.from_url(redis_url)
    # Wire once in the parent so each forked job reuses it
    get_worker_service()
    worker = Worker(queues, connection=redis_conn)
    worker.work(burst=burst)


def plan_workers(concurrency: Dict[str, int], queues: Optional[List[str]] = None) -> List[List[str]]:
    """One entry per worker process: the queue list it listens on."""
    selected = queues or list(QUEUE_NAMES)
    plan = []
    for name in selected:
        plan.extend([[name]] * max(1, concurrency.get(name, 1)))
    return plan


def start_worker(burst: bool = False, queues: list = None, verbose: bool = False):
    """Start the RQ workers."""
    config = load_config(os.environ.get('SCREENING_CONFIG', 'config.yaml'))
    redis_url = config.redis.url

    if queues is None:
        queues = list(QUEUE_NAMES)
    unknown = [q for q in queues if q not in QUEUE_NAMES]
    if unknown:
        logger.error(f"Unknown queues: {', '.join(unknown)}")
        sys.exit(1)

    concurrency = {name: settings.concurrency for name, settings in config.queue.queues.items()}
    plan = plan_workers(concurrency, queues)

    logger.info(f"Starting RQ Workers")
    logger.info(f"Redis URL: {redis_url}")
    logger.info(f"Queues: {', '.join(queues)}")
    logger.info(f"Worker processes: {len(plan)}")
    logger.info(f"Burst mode: {burst}")

    try:
        redis_conn = Redis.from_url(redis_url)
        redis_conn.ping()
        logger.info("✓ Connected to Redis")

        if len(plan) == 1:
            _run_worker(plan[0], redis_url, burst, verbose)
            return

        processes = []
        for worker_queues in plan:
            process = multiprocessing.Process(
                target=_run_worker,
                args=(worker_queues, redis_url, burst, verbose),
                name=f"screening-worker-{worker_queues[0]}",
            )
            process.start()
            processes.append(process)

        logger.info("Workers started. Press Ctrl+C to stop.")
        for process in processes:
            process.join()

    except KeyboardInterrupt:
        logger.info("\nWorkers stopped")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(description='CV Screening Worker')
    parser.add_argument('--burst', action='store_true', help='Process all and exit')
    parser.add_argument('--queues', nargs='+', default=list(QUEUE_NAMES))
    parser.add_argument('--verbose', action='store_true')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    start_worker(burst=args.burst, queues=args.queues, verbose=args.verbose)


if __name__ == '__main__':
    main()
