from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config import DEFAULT_LEVEL_ID, Settings, load_settings
from pipeline import STATUS_FAILED, BatchResult, LevelPipeline


logger = logging.getLogger(__name__)


def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _batch_ids(pipeline: LevelPipeline, settings: Settings, levels_url: Optional[str]) -> List[str]:
    url = levels_url or settings.levels_url
    if url:
        logger.info("Loading level list from %s", url)
        return pipeline.tool.fetch_level_ids(url)
    return list(settings.level_ids)


def _batch_exit_code(batch: BatchResult) -> int:
    return 1 if batch.count(STATUS_FAILED) else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Download archived Super Mario Maker levels from the Wayback Machine and unpack them.")
    parser.add_argument("level_ids", nargs="*", help=f"Level ids to process (default: {DEFAULT_LEVEL_ID})")
    parser.add_argument("--batch", action="store_true", help="Process the configured batch list")
    parser.add_argument("--levels-url", default=None, help="JSON list of {levelId} objects to use as batch list")
    parser.add_argument("--continue-from", default=None, help="Resume the batch at this level id")
    parser.add_argument("--from-dir", type=Path, default=None, help="Split every already downloaded file in this directory")
    parser.add_argument("--env-file", type=Path, default=None, help="Path of the .env file to load")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    settings = load_settings(args.env_file)
    setup_logging(settings.log_file, verbose=args.verbose)
    settings.ensure_dirs()
    pipeline = LevelPipeline(settings)

    if args.from_dir is not None:
        batch = pipeline.process_compressed_dir(args.from_dir)
        print(f"Processed {args.from_dir}: {batch.summary()}")
        return _batch_exit_code(batch)

    if args.batch or args.levels_url or args.continue_from:
        try:
            ids = _batch_ids(pipeline, settings, args.levels_url)
            batch = pipeline.run_batch(ids, continue_from=args.continue_from)
        except Exception:
            logger.exception("Batch aborted")
            return 1
        print(f"Batch finished: {batch.summary()}")
        return _batch_exit_code(batch)

    if len(args.level_ids) > 1:
        batch = pipeline.run_batch(args.level_ids)
        print(f"Levels finished: {batch.summary()}")
        return _batch_exit_code(batch)

    level_id = args.level_ids[0] if args.level_ids else DEFAULT_LEVEL_ID
    try:
        result = pipeline.process_level(level_id)
    except Exception:
        logger.exception("Failed to process %s", level_id)
        return 1
    print(f"{level_id}: {result.status}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
