import logging

from sqlalchemy.orm import Session, sessionmaker

from chunkexec.config import Settings
from chunkexec.db_models import BatchRun, ChunkRun
from chunkexec.job import Job
from chunkexec.notify import Notifier
from chunkexec.orchestrator import ChunkOrchestrator, ScriptExecutor
from chunkexec.record_source import RecordSource, iter_chunks
from chunkexec.run_store import (
    abandon_chunk,
    create_or_get_run,
    finish_chunk,
    mark_run_completed,
    mark_run_failed,
    mark_run_running,
    reset_failed_run,
    start_chunk,
)
from chunkexec.schemas import BatchResult


logger = logging.getLogger(__name__)


class BatchRunner:
    # Feeds one job's chunks through the orchestrator sequentially.
    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker[Session],
        *,
        executor: ScriptExecutor,
        notifier: Notifier,
        record_source: RecordSource,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.executor = executor
        self.notifier = notifier
        self.record_source = record_source

    def run(
        self,
        *,
        run_key: str,
        query: str,
        script_template: str,
        notify_on_completion: bool = True,
        trigger_source: str = "manual",
    ) -> BatchResult:
        job = Job(
            record_source=query,
            script_template=script_template,
            notify_on_completion=notify_on_completion,
        )

        with self.session_factory() as db:
            run, created = create_or_get_run(db, run_key=run_key, query=query, trigger_source=trigger_source)
            if not created:
                if run.status == "failed":
                    logger.info("retrying previously failed run", extra={"run_key": run_key})
                    reset_failed_run(db, run, query=query, trigger_source=trigger_source)
                else:
                    logger.info("idempotent run reused", extra={"run_key": run_key, "status": run.status})
                    return self._result_from_run(run, reused_existing_run=True)

            mark_run_running(db, run)
            orchestrator = ChunkOrchestrator(job, self.executor, self.notifier)

            total_records = 0
            chunk_count = 0
            in_flight: ChunkRun | None = None
            try:
                descriptor = orchestrator.on_start()
                ids = self.record_source.fetch_ids(descriptor)
                total_records = len(ids)

                for chunk_index, chunk in enumerate(iter_chunks(ids, self.settings.chunk_size)):
                    in_flight = start_chunk(
                        db,
                        run_id=run.id,
                        chunk_index=chunk_index,
                        identifier_count=len(chunk),
                    )
                    outcome = orchestrator.on_chunk(chunk)
                    finish_chunk(db, in_flight, outcome)
                    in_flight = None
                    chunk_count += 1

                report = orchestrator.on_finish()
            except Exception as exc:
                if in_flight is not None:
                    abandon_chunk(db, in_flight, str(exc))
                mark_run_failed(
                    db,
                    run,
                    error=str(exc),
                    total_records=total_records,
                    chunk_count=chunk_count,
                    failed_chunks=len(job.error_log),
                )
                logger.exception("batch run failed", extra={"run_key": run_key})
                return self._result_from_run(run, reused_existing_run=False)

            mark_run_completed(
                db,
                run,
                total_records=total_records,
                chunk_count=chunk_count,
                failed_chunks=report.error_count,
                report_subject=report.subject,
            )
            logger.info(
                "batch run completed",
                extra={"run_key": run_key, "chunks": chunk_count, "errors": report.error_count},
            )
            return self._result_from_run(run, reused_existing_run=False)

    def _result_from_run(self, run: BatchRun, reused_existing_run: bool) -> BatchResult:
        return BatchResult(
            run_id=run.id,
            run_key=run.run_key,
            trigger_source=run.trigger_source,
            status=run.status,
            total_records=run.total_records,
            chunk_count=run.chunk_count,
            failed_chunks=run.failed_chunks,
            report_subject=run.report_subject,
            reused_existing_run=reused_existing_run,
        )
