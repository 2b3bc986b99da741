"""CLI interface for the asset migration engine."""
import sys
import json
import logging
import argparse
from pathlib import Path
from typing import Callable, List, Optional

from domain.exceptions import DomainException, JobStateError
from domain.models import JobStatus, MigrationJob
from infrastructure.config import ConfigLoader, MigrationConfig
from application.controller import MigrationController
from application.factories import MigrationFactory
from shared.logging import configure_root, get_logger
from shared.metrics import TransferMetrics

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILURES = 2
EXIT_INTERRUPTED = 130

POLL_INTERVAL = 0.5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='asset-migrate',
        description="Copy storage assets from retired accounts to a new account, keeping every URL",
    )
    parser.add_argument('--config', type=Path, help='Config YAML file (default: ./migration.yaml)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose')

    sub = parser.add_subparsers(dest='command', required=True)

    run = sub.add_parser('run', help='Start a new migration using the CLOUDINARY_* destination')
    run.add_argument('--dry-run', action='store_true',
                     help='Only discover and decompose URLs; no provider calls')
    run.add_argument('--reset-checkpoint', action='store_true',
                     help='Delete the checkpoint before starting')
    run.add_argument('--asset-list', type=Path, help='URL list file (overrides ASSET_LIST_PATH)')

    cont = sub.add_parser('continue', help='Continue the last failed or cancelled migration')
    cont.add_argument('--asset-list', type=Path, help='URL list file (overrides ASSET_LIST_PATH)')

    sub.add_parser('validate', help='Check the destination credentials')

    status = sub.add_parser('status', help='Show the current job')
    status.add_argument('--history', type=int, default=0, metavar='N',
                        help='Also show the last N finished jobs')

    serve = sub.add_parser('serve', help='Serve the HTTP job control surface')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=8080)

    return parser


def exit_code_for(job: MigrationJob, interrupted: bool = False) -> int:
    """Map a finished job to the process exit code."""
    if interrupted:
        return EXIT_INTERRUPTED
    if job.status == JobStatus.COMPLETED:
        return EXIT_FAILURES if job.failed else EXIT_OK
    return EXIT_ERROR


def run_foreground(
    controller: MigrationController,
    launch: Callable[[], MigrationJob],
    logger: logging.Logger
) -> int:
    """
    Run a job on the controller's worker thread and wait for it.

    Ctrl+C cancels the job cleanly: the item in flight finishes and the
    checkpoint is flushed before the process exits.
    """
    launch()
    interrupted = False
    while True:
        try:
            if controller.wait(POLL_INTERVAL):
                break
        except KeyboardInterrupt:
            if interrupted:
                logger.warning("Second interrupt, waiting for the current item to finish")
                continue
            interrupted = True
            logger.warning("Interrupted, cancelling after the current item...")
            controller.cancel()

    job = controller.status()
    return exit_code_for(job, interrupted)


def print_job(job: MigrationJob) -> None:
    print(json.dumps(job.to_dict(), indent=2))


def _report(controller: MigrationController, metrics: TransferMetrics, logger: logging.Logger) -> None:
    job = controller.status()
    logger.info("=" * 60)
    logger.info(
        f"Job {job.job_id}: {job.status.value} - copied {job.copied}, skipped {job.skipped}, "
        f"failed {job.failed} of {job.total}"
        + (f" ({job.already_completed} already completed)" if job.already_completed else "")
    )
    for error in job.recent_errors:
        logger.error(f"  - {error.public_id or error.source_url}: {error.message}")
    print(metrics.format_summary())


def cmd_run(args, config: MigrationConfig, logger: logging.Logger) -> int:
    factory = MigrationFactory(config)
    credentials = config.destination_credentials()

    if args.dry_run:
        controller = factory.create_controller()
        actions = controller.plan(destination=credentials.account_name if credentials else None)
        counts = {}
        for action in actions:
            counts[action.action] = counts.get(action.action, 0) + 1
            detail = action.public_id or action.reason
            print(f"{action.action:<9} {action.source_url} -> {detail}")
        logger.info(
            f"Dry run: {len(actions)} candidates "
            + ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
        )
        return EXIT_OK

    if credentials is None:
        logger.error("Destination credentials required: set CLOUDINARY_CLOUD_NAME, "
                     "CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET")
        return EXIT_ERROR

    if args.reset_checkpoint:
        factory.create_checkpoint_store().clear()

    metrics = TransferMetrics()
    controller = factory.create_controller(metrics, recover_interrupted=True)
    code = run_foreground(
        controller, lambda: controller.start(credentials, background=True), logger
    )
    _report(controller, metrics, logger)
    return code


def cmd_continue(args, config: MigrationConfig, logger: logging.Logger) -> int:
    metrics = TransferMetrics()
    controller = MigrationFactory(config).create_controller(metrics, recover_interrupted=True)
    try:
        code = run_foreground(controller, lambda: controller.resume(background=True), logger)
    except JobStateError as e:
        logger.error(f"Nothing to continue: {e}")
        return EXIT_ERROR
    _report(controller, metrics, logger)
    return code


def cmd_validate(args, config: MigrationConfig, logger: logging.Logger) -> int:
    credentials = config.destination_credentials()
    if credentials is None:
        logger.error("Destination credentials incomplete")
        print(json.dumps({"valid": False}))
        return EXIT_ERROR
    valid = MigrationFactory(config).create_controller().validate(credentials)
    print(json.dumps({"valid": valid, "account": credentials.masked()}))
    return EXIT_OK if valid else EXIT_ERROR


def cmd_status(args, config: MigrationConfig, logger: logging.Logger) -> int:
    controller = MigrationFactory(config).create_controller()
    print_job(controller.status())
    if args.history:
        print(json.dumps([job.to_dict() for job in controller.history(args.history)], indent=2))
    return EXIT_OK


def cmd_serve(args, config: MigrationConfig, logger: logging.Logger) -> int:
    from presentation.api import create_app

    controller = MigrationFactory(config).create_controller(recover_interrupted=True)
    app = create_app(controller)
    logger.info(f"Serving migration control on http://{args.host}:{args.port}/admin/migration")
    app.run(host=args.host, port=args.port, threaded=True)
    return EXIT_OK


COMMANDS = {
    'run': cmd_run,
    'continue': cmd_continue,
    'validate': cmd_validate,
    'status': cmd_status,
    'serve': cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    configure_root(level=log_level)
    logger = get_logger('asset_migrate')

    try:
        overrides = {}
        if getattr(args, 'asset_list', None):
            overrides['asset_list_path'] = args.asset_list
        config = ConfigLoader(config_path=args.config).load(overrides=overrides)
        if config.log_file:
            configure_root(level=log_level, log_file=config.log_file)

        return COMMANDS[args.command](args, config, logger)

    except DomainException as e:
        logger.error(f"Migration error: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception(f"Error: {e}")
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
