#!/usr/bin/env python3
"""
CV Screening command line.

Usage:
    python main.py init-db
    python main.py seed-skills [--embed]
    python main.py trigger 42 --priority 8
    python main.py bulk 42 43 44
    python main.py retry 7 --force
    python main.py cancel 7
    python main.py status 7
    python main.py stats --job-posting 3
    python main.py reprocess 3
    python main.py run 7
    python main.py worker --burst
"""
import argparse
import json
import logging
import os
import sys

from core.app_context import AppContext
from core.config_loader import load_config
from core.exceptions import ScreeningException
from database.database import configure_engine
from database.init_db import init_db
from database.seeds.skills import seed_skills
from database.uow import screening_uow
from pipeline.service import ScreeningService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _print(data) -> None:
    if hasattr(data, 'to_dict'):
        data = data.to_dict()
    print(json.dumps(data, indent=2, default=_json_default))


def _json_default(value):
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return str(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CV Screening Pipeline")
    parser.add_argument('--config', default=os.environ.get('SCREENING_CONFIG', 'config.yaml'),
                        help='Path to config.yaml')
    parser.add_argument('--verbose', action='store_true')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create the vector extension and tables')

    seed = sub.add_parser('seed-skills', help='Insert the common skill taxonomy')
    seed.add_argument('--embed', action='store_true', help='Embed each skill for semantic matching')

    trigger = sub.add_parser('trigger', help='Screen one application')
    trigger.add_argument('application_id', type=int)
    trigger.add_argument('--resume-path', default=None)
    trigger.add_argument('--priority', type=int, default=0)

    bulk = sub.add_parser('bulk', help='Screen several applications')
    bulk.add_argument('application_ids', type=int, nargs='+')
    bulk.add_argument('--priority', type=int, default=0)

    retry_cmd = sub.add_parser('retry', help='Retry a screening')
    retry_cmd.add_argument('screening_id', type=int)
    retry_cmd.add_argument('--force', action='store_true', help='Retry even if not failed')

    cancel = sub.add_parser('cancel', help='Cancel a pending or processing screening')
    cancel.add_argument('screening_id', type=int)

    status = sub.add_parser('status', help='Show a screening, or queue status without an id')
    status.add_argument('screening_id', type=int, nargs='?')

    stats = sub.add_parser('stats', help='Screening statistics')
    stats.add_argument('--job-posting', type=int, default=None)

    reprocess = sub.add_parser('reprocess', help='Re-screen every application of a job posting')
    reprocess.add_argument('job_posting_id', type=int)

    run = sub.add_parser('run', help='Run the full pipeline for a screening inline')
    run.add_argument('screening_id', type=int)

    worker = sub.add_parser('worker', help='Start queue workers')
    worker.add_argument('--burst', action='store_true', help='Process all and exit')
    worker.add_argument('--queues', nargs='+', default=None)

    return parser


def run_command(args, service: ScreeningService):
    command = args.command
    if command == 'trigger':
        return service.trigger_screening(args.application_id, resume_path=args.resume_path, priority=args.priority)
    if command == 'bulk':
        return service.trigger_bulk_screening(args.application_ids, priority=args.priority)
    if command == 'retry':
        return service.retry_screening(args.screening_id, force=args.force)
    if command == 'cancel':
        return service.cancel_screening(args.screening_id)
    if command == 'status':
        if args.screening_id is None:
            return service.get_queue_status()
        return service.get_screening_result(args.screening_id)
    if command == 'stats':
        return service.get_screening_stats(args.job_posting)
    if command == 'reprocess':
        return service.reprocess_job_applications(args.job_posting_id)
    if command == 'run':
        return service.runner.run_full(args.screening_id)
    raise ValueError(f"Unknown command: {command}")


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == 'worker':
        from pipeline.worker import start_worker
        os.environ['SCREENING_CONFIG'] = args.config
        start_worker(burst=args.burst, queues=args.queues, verbose=args.verbose)
        return 0

    config = load_config(args.config)
    configure_engine(config.database.url)

    if args.command == 'init-db':
        init_db()
        return 0

    ctx = AppContext.build(config)

    try:
        if args.command == 'seed-skills':
            with screening_uow() as repo:
                result = seed_skills(repo.skill, embedding_client=ctx.embedding_client if args.embed else None)
            _print(result)
            return 0

        service = ScreeningService.from_context(ctx)
        _print(run_command(args, service))
        return 0
    except ScreeningException as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
