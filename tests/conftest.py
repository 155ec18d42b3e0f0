from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from chunkexec.config import Settings
from chunkexec.pipeline import BatchRunner
from chunkexec.record_source import FileRecordSource
from chunkexec.run_store import build_session_factory
from chunkexec.schemas import RemoteOutcome


class FakeExecutor:
    # Returns (or raises) queued outcomes in order, then succeeds.
    def __init__(self, outcomes: list[RemoteOutcome | Exception] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.scripts: list[str] = []

    def execute(self, script: str) -> RemoteOutcome:
        self.scripts.append(script)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return RemoteOutcome.success()


class RecordingNotifier:
    def __init__(self) -> None:
        self.delivered: list[tuple[str, str]] = []

    def deliver(self, subject: str, body: str) -> None:
        self.delivered.append((subject, body))


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="chunkexec",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        instance_url="https://example.my.salesforce.com",
        api_version="59.0",
        session_id="SESSION-123",
        request_timeout_seconds=5,
        chunk_size=2,
        dry_run=True,
        smtp_host="",
        smtp_port=25,
        notify_from="",
        notify_to="",
        schedule_hour_utc=2,
        schedule_minute_utc=0,
    )


@pytest.fixture()
def session_factory(test_settings: Settings) -> sessionmaker[Session]:
    return build_session_factory(test_settings.database_url)


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def runner(
    test_settings: Settings,
    session_factory: sessionmaker[Session],
    executor: FakeExecutor,
    notifier: RecordingNotifier,
) -> Generator[BatchRunner, None, None]:
    yield BatchRunner(
        test_settings,
        session_factory,
        executor=executor,
        notifier=notifier,
        record_source=FileRecordSource(),
    )
