from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    TRANSPORT = "transport"
    SERVER_STATUS = "server_status"
    PROTOCOL_VIOLATION = "protocol_violation"
    REMOTE_RUNTIME = "remote_runtime"
    REMOTE_COMPILE = "remote_compile"


@dataclass(frozen=True)
class RemoteOutcome:
    succeeded: bool
    failure_detail: str | None = None
    failure_kind: FailureKind | None = None

    def __post_init__(self) -> None:
        # Exactly one of success or a populated failure detail.
        if self.succeeded and (self.failure_detail or self.failure_kind):
            raise ValueError("a successful outcome cannot carry failure details")
        if not self.succeeded and not (self.failure_detail and self.failure_kind):
            raise ValueError("a failed outcome needs a failure kind and detail")

    @classmethod
    def success(cls) -> "RemoteOutcome":
        return cls(succeeded=True)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str) -> "RemoteOutcome":
        return cls(succeeded=False, failure_detail=detail, failure_kind=kind)


@dataclass(frozen=True)
class CompletionReport:
    subject: str
    body: str
    error_count: int


@dataclass(frozen=True)
class BatchResult:
    run_id: int
    run_key: str
    trigger_source: str
    status: str
    total_records: int
    chunk_count: int
    failed_chunks: int
    report_subject: str | None
    reused_existing_run: bool
