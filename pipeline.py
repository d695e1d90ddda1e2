from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from archiver import LevelArchiveTool
from config import Settings
from container import SplitResult, split_file
from decompressor import AshDecompressor
from errors import LevelArchiveError, NotArchived


logger = logging.getLogger(__name__)

STATUS_DONE = "done"
STATUS_SKIPPED = "skipped"
STATUS_NOT_ARCHIVED = "not_archived"
STATUS_FAILED = "failed"


@dataclass
class LevelResult:
    level_id: str
    status: str
    blob_path: Optional[Path] = None
    split: Optional[SplitResult] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    total: int
    results: List[LevelResult] = field(default_factory=list)
    seconds: float = 0.0

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    def summary(self) -> Dict[str, int]:
        return {
            "total": self.total,
            STATUS_DONE: self.count(STATUS_DONE),
            STATUS_SKIPPED: self.count(STATUS_SKIPPED),
            STATUS_NOT_ARCHIVED: self.count(STATUS_NOT_ARCHIVED),
            STATUS_FAILED: self.count(STATUS_FAILED),
        }


class LevelPipeline:
    def __init__(
        self,
        settings: Settings,
        tool: Optional[LevelArchiveTool] = None,
        decompressor: Optional[AshDecompressor] = None,
    ) -> None:
        self.settings = settings
        self.tool = tool or LevelArchiveTool(
            timeout=settings.timeout,
            retries=settings.retries,
            backoff=settings.backoff,
        )
        self.decompressor = decompressor or AshDecompressor(settings.ashextractor_path)

    def _emit_progress(self, callback: Optional[Callable[[Dict[str, object]], None]], **payload: object) -> None:
        if callback is None:
            return
        callback(payload)

    def _split(self, level_id: str, blob_path: Path) -> LevelResult:
        split = split_file(blob_path, self.settings.output_dir, self.decompressor)
        status = STATUS_SKIPPED if split.skipped else STATUS_DONE
        return LevelResult(level_id=level_id, status=status, blob_path=blob_path, split=split)

    def process_level(self, level_id: str) -> LevelResult:
        logger.info("Processing %s", level_id)
        blob_path = self.settings.compressed_path(level_id)

        if not blob_path.exists():
            try:
                archive_url = self.tool.locate(level_id)
            except NotArchived as exc:
                logger.warning("%s, skipping", exc)
                return LevelResult(level_id=level_id, status=STATUS_NOT_ARCHIVED, error=str(exc))
            self.tool.download(archive_url, blob_path)

        return self._split(level_id, blob_path)

    def _run_isolated(self, level_id: str, action: Callable[[], LevelResult]) -> LevelResult:
        try:
            return action()
        except (LevelArchiveError, OSError, ValueError) as exc:
            logger.exception("Failed to process %s", level_id)
            return LevelResult(level_id=level_id, status=STATUS_FAILED, error=str(exc))

    def run_batch(
        self,
        level_ids: Sequence[str],
        continue_from: Optional[str] = None,
        progress_callback: Optional[Callable[[Dict[str, object]], None]] = None,
    ) -> BatchResult:
        started = time.time()
        remaining = list(level_ids)
        if continue_from:
            if continue_from not in remaining:
                raise ValueError(f"Level {continue_from} is not in the batch list")
            remaining = remaining[remaining.index(continue_from):]

        batch = BatchResult(total=len(remaining))
        for idx, level_id in enumerate(remaining):
            logger.info("Starting %s (%d remaining)", level_id, len(remaining) - idx)
            self._emit_progress(progress_callback, stage="level", level_id=level_id, done=idx, total=len(remaining))
            batch.results.append(self._run_isolated(level_id, lambda: self.process_level(level_id)))

        batch.seconds = round(time.time() - started, 2)
        self._emit_progress(progress_callback, stage="done", level_id="", done=len(remaining), total=len(remaining))
        logger.info("Batch finished in %.2fs: %s", batch.seconds, batch.summary())
        return batch

    def process_compressed_dir(
        self,
        directory: Path,
        progress_callback: Optional[Callable[[Dict[str, object]], None]] = None,
    ) -> BatchResult:
        started = time.time()
        files = sorted(p for p in Path(directory).iterdir() if p.is_file())
        batch = BatchResult(total=len(files))
        for idx, path in enumerate(files):
            self._emit_progress(progress_callback, stage="split", level_id=path.name, done=idx, total=len(files))
            batch.results.append(self._run_isolated(path.name, lambda: self._split(path.name, path)))

        batch.seconds = round(time.time() - started, 2)
        self._emit_progress(progress_callback, stage="done", level_id="", done=len(files), total=len(files))
        logger.info("Directory %s finished in %.2fs: %s", directory, batch.seconds, batch.summary())
        return batch
