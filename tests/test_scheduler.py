from pathlib import Path

from chunkexec import scheduler


class FakeScheduler:
    instances: list["FakeScheduler"] = []

    def __init__(self, timezone: str) -> None:
        self.timezone = timezone
        self.jobs: list[dict[str, object]] = []
        self.started = False
        FakeScheduler.instances.append(self)

    def add_job(self, func, trigger, **kwargs) -> None:
        self.jobs.append({"func": func, "trigger": trigger, **kwargs})

    def start(self) -> None:
        self.started = True


def test_scheduler_registers_daily_job_and_runs_now(
    runner, test_settings, executor, temp_workspace: Path, monkeypatch
) -> None:
    FakeScheduler.instances = []
    monkeypatch.setattr(scheduler, "BlockingScheduler", FakeScheduler)
    ids_file = temp_workspace / "data" / "ids.txt"
    ids_file.write_text("001A\n001B\n001C\n", encoding="utf-8")

    scheduler.start_scheduler(
        test_settings,
        runner,
        query=str(ids_file),
        script_template="System.debug(ids);",
        run_now=True,
    )

    fake = FakeScheduler.instances[0]
    job = fake.jobs[0]
    assert fake.started is True
    assert fake.timezone == "UTC"
    assert job["trigger"] == "cron"
    assert job["id"] == "daily_batch"
    assert (job["hour"], job["minute"]) == (2, 0)
    assert len(executor.scripts) == 2
