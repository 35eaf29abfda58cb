"""CLI commands for running the processing workflow by hand.

Provides commands for:
- Processing a podcast/uploaded event from JSON
- Regenerating a single output for a project
- Recomputing the per-user project counters
- Viewing a project's processing status
- Creating the database tables
"""

import argparse
import json
import logging
import os
import sys

from ..argparse_shared import (
    add_dry_run_argument,
    add_log_level_argument,
    add_plan_argument,
    add_user_id_argument,
    get_base_parser,
)
from ..config import Config
from ..db.factory import create_repository_from_config
from ..workflow.events import PODCAST_RETRY_JOB, PODCAST_UPLOADED
from ..workflow.factory import create_dispatcher
from ..workflow.retry_job import RETRYABLE_JOBS, build_retry_job_event

logger = logging.getLogger(__name__)


def _load_event(source: str) -> dict:
    """Read an event payload from a file path, '-' for stdin, or an inline JSON string."""
    if source == "-":
        return json.load(sys.stdin)
    if os.path.isfile(source):
        with open(source, "r", encoding="utf-8") as f:
            return json.load(f)
    return json.loads(source)


def process_event(args, config: Config):
    """
    Run the processing workflow for one podcast/uploaded event in the foreground.

    Parameters:
        args: CLI arguments with `event` (path, '-' or inline JSON) and optional `event_id`.
        config (Config): Application configuration.
    """
    try:
        data = _load_event(args.event)
    except (OSError, ValueError) as e:
        print(f"Error: could not read event: {e}")
        sys.exit(1)

    config.validate_transcription()
    repository = create_repository_from_config(config)
    try:
        dispatcher = create_dispatcher(config, repository)
        result = dispatcher.dispatch(PODCAST_UPLOADED, data, event_id=args.event_id)

        print(f"\nProcessed project {result.project_id}")
        print(f"  Generated: {', '.join(result.generated) or 'nothing'}")
        if result.job_errors:
            print(f"  Failed jobs:")
            for key, message in result.job_errors.items():
                print(f"    - {key}: {message}")
    finally:
        repository.close()


def retry_job(args, config: Config):
    """Regenerate one output for an existing project."""
    repository = create_repository_from_config(config)
    try:
        event = build_retry_job_event(args.project_id, args.user_id, args.job, args.plan)
        dispatcher = create_dispatcher(config, repository)
        dispatcher.dispatch(PODCAST_RETRY_JOB, event.to_json_dict(), event_id=args.event_id)
        print(f"\nRegenerated '{args.job}' for project {args.project_id}")
    finally:
        repository.close()


def backfill_counters(args, config: Config):
    """
    Recompute every user's total and active project counters from project rows.

    With `--dry-run`, only reports whether the store is reachable.
    """
    repository = create_repository_from_config(config)
    try:
        if args.dry_run:
            print("\n[DRY RUN] Would recompute project counters for all users")
            return
        users = repository.backfill_project_counters()
        print(f"\nBackfilled project counters for {users} users")
    finally:
        repository.close()


def show_project(args, config: Config):
    """
    Print the processing status of one project.

    Notes:
        Exits with status code 1 if the project is not found for the given user.
    """
    repository = create_repository_from_config(config)
    try:
        project = repository.get_project(args.project_id, args.user_id)
        if project is None:
            print(f"Project not found: {args.project_id}")
            sys.exit(1)

        print(f"\nProject: {project.display_name or project.file_name}")
        print(f"  ID: {project.id}")
        print(f"  Status: {project.status}")
        print(f"  Transcription: {project.job_status.get('transcription')}")
        print(f"  Content generation: {project.job_status.get('contentGeneration')}")
        print(f"  Created: {project.created_at}")
        if project.completed_at:
            print(f"  Completed: {project.completed_at}")
        if project.job_errors:
            print(f"\n  Job errors:")
            for key, message in project.job_errors.items():
                print(f"    - {key}: {message}")
        if project.error:
            print(f"\n  Error in {project.error.get('step')}: {project.error.get('message')}")
    finally:
        repository.close()


def init_db(args, config: Config):
    """Create any missing tables without running migrations."""
    repository = create_repository_from_config(config, create_tables=True)
    repository.close()
    print("\nDatabase tables created")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = get_base_parser()
    add_log_level_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # process command
    process_parser = subparsers.add_parser(
        "process",
        help="Process a podcast/uploaded event",
    )
    process_parser.add_argument("event", help="Event JSON: a file path, '-' for stdin, or an inline string")
    process_parser.add_argument(
        "--event-id",
        help="Stable event id; reusing one resumes a previous run",
    )

    # retry-job command
    retry_parser = subparsers.add_parser(
        "retry-job",
        help="Regenerate one output for a project",
    )
    retry_parser.add_argument("project_id", help="Project ID")
    retry_parser.add_argument(
        "job",
        choices=[job.value for job in RETRYABLE_JOBS],
        help="Output to regenerate",
    )
    add_user_id_argument(retry_parser)
    add_plan_argument(retry_parser)
    retry_parser.add_argument("--event-id", help="Stable event id")

    # backfill-counters command
    backfill_parser = subparsers.add_parser(
        "backfill-counters",
        help="Recompute per-user project counters",
    )
    add_dry_run_argument(backfill_parser)

    # show command
    show_parser = subparsers.add_parser(
        "show",
        help="Show a project's processing status",
    )
    show_parser.add_argument("project_id", help="Project ID")
    add_user_id_argument(show_parser)

    # init-db command
    subparsers.add_parser(
        "init-db",
        help="Create database tables",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Load configuration
    config = Config(env_file=args.env_file)

    # Route to appropriate command
    commands = {
        "process": process_event,
        "retry-job": retry_job,
        "backfill-counters": backfill_counters,
        "show": show_project,
        "init-db": init_db,
    }

    command_func = commands.get(args.command)
    if command_func:
        command_func(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
