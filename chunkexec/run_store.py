from sqlalchemy import create_engine, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from chunkexec.db_models import Base, BatchRun, ChunkRun, utc_now
from chunkexec.schemas import RemoteOutcome


def build_session_factory(database_url: str) -> sessionmaker[Session]:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_run_by_key(db: Session, run_key: str) -> BatchRun | None:
    return db.execute(select(BatchRun).where(BatchRun.run_key == run_key)).scalar_one_or_none()


def create_or_get_run(db: Session, *, run_key: str, query: str, trigger_source: str) -> tuple[BatchRun, bool]:
    run = BatchRun(run_key=run_key, query=query, trigger_source=trigger_source, status="queued")
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        # run_key is unique; a second insert means the run already exists.
        db.rollback()
        existing = get_run_by_key(db, run_key)
        if existing:
            return existing, False
        raise

    db.refresh(run)
    return run, True


def reset_failed_run(db: Session, run: BatchRun, *, query: str, trigger_source: str) -> None:
    db.execute(delete(ChunkRun).where(ChunkRun.run_id == run.id))
    run.query = query
    run.trigger_source = trigger_source
    run.status = "queued"
    run.error = None
    run.report_subject = None
    run.completed_at = None
    run.total_records = 0
    run.chunk_count = 0
    run.failed_chunks = 0
    db.commit()


def mark_run_running(db: Session, run: BatchRun) -> None:
    run.status = "running"
    run.started_at = utc_now()
    db.commit()


def mark_run_completed(
    db: Session,
    run: BatchRun,
    *,
    total_records: int,
    chunk_count: int,
    failed_chunks: int,
    report_subject: str,
) -> None:
    run.status = "completed"
    run.total_records = total_records
    run.chunk_count = chunk_count
    run.failed_chunks = failed_chunks
    run.report_subject = report_subject
    run.completed_at = utc_now()
    db.commit()


def mark_run_failed(
    db: Session,
    run: BatchRun,
    *,
    error: str,
    total_records: int = 0,
    chunk_count: int = 0,
    failed_chunks: int = 0,
) -> None:
    run.status = "failed"
    run.error = error
    run.total_records = total_records
    run.chunk_count = chunk_count
    run.failed_chunks = failed_chunks
    run.completed_at = utc_now()
    db.commit()


def start_chunk(db: Session, *, run_id: int, chunk_index: int, identifier_count: int) -> ChunkRun:
    chunk = ChunkRun(
        run_id=run_id,
        chunk_index=chunk_index,
        identifier_count=identifier_count,
        status="started",
        started_at=utc_now(),
    )
    db.add(chunk)
    db.commit()
    db.refresh(chunk)
    return chunk


def finish_chunk(db: Session, chunk: ChunkRun, outcome: RemoteOutcome) -> None:
    finished_at = utc_now()
    chunk.status = "succeeded" if outcome.succeeded else "failed"
    chunk.failure_kind = outcome.failure_kind.value if outcome.failure_kind else None
    chunk.error = outcome.failure_detail
    chunk.completed_at = finished_at
    chunk.duration_ms = (finished_at - chunk.started_at).total_seconds() * 1000
    db.commit()


def abandon_chunk(db: Session, chunk: ChunkRun, error: str) -> None:
    finished_at = utc_now()
    chunk.status = "failed"
    chunk.error = error
    chunk.completed_at = finished_at
    chunk.duration_ms = (finished_at - chunk.started_at).total_seconds() * 1000
    db.commit()
