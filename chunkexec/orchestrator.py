from collections.abc import Sequence
from enum import Enum
import logging
from typing import Protocol

from chunkexec.composer import compose, render_identifiers
from chunkexec.errors import LifecycleViolation
from chunkexec.job import Job
from chunkexec.notify import Notifier
from chunkexec.schemas import CompletionReport, RemoteOutcome


logger = logging.getLogger(__name__)


class ScriptExecutor(Protocol):
    def execute(self, script: str) -> RemoteOutcome: ...


class JobState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


def build_report(job: Job) -> CompletionReport:
    error_count = len(job.error_log)
    if error_count == 0:
        subject = "Batch script run completed with no errors"
        errors = "No errors recorded."
    else:
        subject = f"Batch script run completed with {error_count} error(s)"
        errors = job.error_log.render_all("\n")

    body = "\n\n".join(
        [
            f"Query:\n{job.record_source}",
            f"Script template:\n{job.script_template}",
            f"Errors:\n{errors}",
        ]
    )
    return CompletionReport(subject=subject, body=body, error_count=error_count)


class ChunkOrchestrator:
    def __init__(self, job: Job, executor: ScriptExecutor, notifier: Notifier) -> None:
        self.job = job
        self.executor = executor
        self.notifier = notifier
        self.state = JobState.NOT_STARTED

    def _require(self, expected: JobState, operation: str) -> None:
        if self.state is not expected:
            raise LifecycleViolation(f"{operation} is not allowed in state '{self.state.value}'")

    def on_start(self) -> str:
        self._require(JobState.NOT_STARTED, "on_start")
        self.state = JobState.RUNNING
        return self.job.record_source

    def on_chunk(self, chunk: Sequence[str]) -> RemoteOutcome:
        self._require(JobState.RUNNING, "on_chunk")
        script = compose(self.job.script_template, chunk)
        outcome = self.executor.execute(script)

        if not outcome.succeeded:
            descriptor = f"[{render_identifiers(chunk)}]"
            self.job.error_log.record(descriptor, outcome.failure_detail or "")
            logger.warning(
                "chunk failed",
                extra={"identifiers": len(chunk), "failure_kind": outcome.failure_kind},
            )
        return outcome

    def on_finish(self) -> CompletionReport:
        self._require(JobState.RUNNING, "on_finish")
        self.state = JobState.FINISHED

        report = build_report(self.job)
        if self.job.notify_on_completion:
            # Delivery is fire-and-forget; a failure here never fails the job.
            try:
                self.notifier.deliver(report.subject, report.body)
            except Exception:
                logger.exception("completion report delivery failed", extra={"subject": report.subject})
        return report
