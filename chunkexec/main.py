import argparse
import logging
from pathlib import Path

from chunkexec.config import get_settings
from chunkexec.notify import build_notifier
from chunkexec.pipeline import BatchRunner
from chunkexec.record_source import FileRecordSource
from chunkexec.remote import build_remote_client
from chunkexec.run_store import build_session_factory
from chunkexec.scheduler import start_scheduler


def _add_job_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--query", required=True, help="Record source descriptor (path to an identifier file)")
    parser.add_argument("--template-file", required=True, help="File holding the script template")
    parser.add_argument("--no-notify", action="store_true", help="skip the completion report delivery")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a script against record identifiers in chunks")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="run one batch")
    _add_job_arguments(run_parser)
    run_parser.add_argument("--run-key", required=True, help="Idempotency key for this run")
    run_parser.add_argument(
        "--trigger-source",
        default="manual",
        choices=["manual", "scheduled"],
        help="Metadata label for how this run was triggered",
    )

    schedule_parser = subparsers.add_parser("schedule", help="start daily scheduler")
    _add_job_arguments(schedule_parser)
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    script_template = Path(args.template_file).read_text(encoding="utf-8")
    client = build_remote_client(settings)
    runner = BatchRunner(
        settings,
        build_session_factory(settings.database_url),
        executor=client,
        notifier=build_notifier(settings),
        record_source=FileRecordSource(),
    )

    try:
        if args.command == "schedule":
            start_scheduler(
                settings,
                runner,
                query=args.query,
                script_template=script_template,
                notify_on_completion=not args.no_notify,
                run_now=args.run_now,
            )
            return

        result = runner.run(
            run_key=args.run_key,
            query=args.query,
            script_template=script_template,
            notify_on_completion=not args.no_notify,
            trigger_source=args.trigger_source,
        )
    finally:
        client.close()

    print(
        "run_id={run_id} run_key={run_key} trigger={trigger} status={status} records={records} chunks={chunks} failed_chunks={failed} reused={reused}".format(
            run_id=result.run_id,
            run_key=result.run_key,
            trigger=result.trigger_source,
            status=result.status,
            records=result.total_records,
            chunks=result.chunk_count,
            failed=result.failed_chunks,
            reused=result.reused_existing_run,
        )
    )
    if result.status == "failed" or result.failed_chunks:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
