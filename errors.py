from __future__ import annotations

from pathlib import Path
from typing import Optional


class LevelArchiveError(RuntimeError):
    pass


class NotArchived(LevelArchiveError):
    def __init__(self, level_id: str) -> None:
        super().__init__(f"No archived version found for {level_id}")
        self.level_id = level_id


class FetchFailed(LevelArchiveError):
    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(f"GET {url} failed after {attempts} attempt(s): {last_error}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class MalformedContainer(LevelArchiveError):
    def __init__(self, path: Path, found: int, expected: int = 4) -> None:
        super().__init__(f"{path} has {found} ASH0 segments, expected {expected}")
        self.path = path
        self.found = found
        self.expected = expected


class DecompressionFailed(LevelArchiveError):
    def __init__(self, path: Path, cause: Optional[BaseException] = None) -> None:
        message = f"Decompression of {path} produced no output"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message)
        self.path = path
        self.cause = cause
