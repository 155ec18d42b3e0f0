from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Protocol


class RecordSource(Protocol):
    def fetch_ids(self, descriptor: str) -> list[str]: ...


class FileRecordSource:
    # The descriptor is a path to a file with one identifier per line.
    def fetch_ids(self, descriptor: str) -> list[str]:
        path = Path(descriptor)
        if not path.exists():
            raise FileNotFoundError(f"record source not found: {path}")

        ids: list[str] = []
        with path.open("r", encoding="utf-8") as infile:
            for line in infile:
                line = line.strip()
                if not line:
                    continue
                ids.append(line)
        return ids


def iter_chunks(ids: Sequence[str], size: int) -> Iterator[list[str]]:
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    for start in range(0, len(ids), size):
        yield list(ids[start : start + size])
