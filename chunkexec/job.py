from dataclasses import dataclass, field

from chunkexec.errors import InvalidJob


class ErrorLog:
    # Unsynchronized: at most one active call per Job.
    def __init__(self) -> None:
        self._entries: list[str] = []

    def record(self, chunk_descriptor: str, detail: str) -> None:
        self._entries.append(f"{chunk_descriptor}: {detail}")

    def is_empty(self) -> bool:
        return not self._entries

    def render_all(self, separator: str) -> str:
        return separator.join(self._entries)

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class Job:
    record_source: str
    script_template: str
    notify_on_completion: bool = True
    error_log: ErrorLog = field(default_factory=ErrorLog, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.record_source.strip():
            raise InvalidJob("record source must not be blank")
        if not self.script_template.strip():
            raise InvalidJob("script template must not be blank")
