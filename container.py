from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple

from decompressor import AshDecompressor, decompress_all
from errors import DecompressionFailed, MalformedContainer


logger = logging.getLogger(__name__)

ASH_MARKER = b"ASH0"
PART_NAMES = (
    "thumbnail0.tnl",
    "course_data.cdt",
    "course_data_sub.cdt",
    "thumbnail1.tnl",
)
DATA_PART_NAMES = PART_NAMES[1:3]
THUMBNAIL_SUFFIX = ".tnl"
THUMBNAIL_HEADER_SIZE = 8
COMPRESSED_SUFFIX = "_compressed"


@dataclass
class SplitResult:
    source: Path
    output_dir: Path
    skipped: bool = False
    parts: List[Path] = field(default_factory=list)
    thumbnails: List[Path] = field(default_factory=list)
    failures: List[DecompressionFailed] = field(default_factory=list)
    thumbnail_errors: List[Tuple[str, BaseException]] = field(default_factory=list)


def output_dir_for(blob_path: Path, output_root: Path) -> Path:
    name = Path(blob_path).stem
    if name.endswith(COMPRESSED_SUFFIX):
        name = name[: -len(COMPRESSED_SUFFIX)]
    return Path(output_root) / name


def is_processed(directory: Path) -> bool:
    return all((directory / name).exists() for name in DATA_PART_NAMES)


def find_segments(data: bytes, marker: bytes = ASH_MARKER) -> List[bytes]:
    parts: List[bytes] = []
    index = data.find(marker)
    if index > 0:
        logger.warning("Dropping %d byte(s) before the first %r marker", index, marker)
    while index != -1:
        end = data.find(marker, index + len(marker))
        end = len(data) if end == -1 else end
        part = data[index:end]
        if part:
            parts.append(part)
        index = end if end < len(data) else -1
    return parts


def split_file(
    blob_path: Path,
    output_root: Path,
    decompressor: AshDecompressor,
) -> SplitResult:
    blob_path = Path(blob_path)
    parts_dir = output_dir_for(blob_path, output_root)
    result = SplitResult(source=blob_path, output_dir=parts_dir)

    if is_processed(parts_dir):
        logger.warning("Skipping %s because it has already been processed", blob_path)
        result.skipped = True
        return result

    logger.info("Splitting file: %s", blob_path)
    parts = find_segments(blob_path.read_bytes())
    if len(parts) != len(PART_NAMES):
        raise MalformedContainer(blob_path, len(parts), expected=len(PART_NAMES))

    parts_dir.mkdir(parents=True, exist_ok=True)
    for name, part in zip(PART_NAMES, parts):
        part_path = parts_dir / name
        part_path.write_bytes(part)
        result.parts.append(part_path)
        logger.info("Saved: %s", part_path)

    result.failures = decompress_all(parts_dir, len(parts), PART_NAMES, decompressor)
    thumbnails = [name for name in PART_NAMES if name.endswith(THUMBNAIL_SUFFIX)]
    result.thumbnails, result.thumbnail_errors = extract_thumbnails(parts_dir, thumbnails)
    return result


def _extract_thumbnail(path: Path) -> Path:
    logger.info("Extracting thumbnail from %s", path.name)
    data = path.read_bytes()
    image_path = path.with_suffix(".jpg")
    image_path.write_bytes(data[THUMBNAIL_HEADER_SIZE:])
    path.unlink()
    logger.info("Extracted thumbnail from %s", path.name)
    return image_path


def extract_thumbnails(
    directory: Path,
    names: Sequence[str],
) -> Tuple[List[Path], List[Tuple[str, BaseException]]]:
    written: List[Path] = []
    errors: List[Tuple[str, BaseException]] = []
    if not names:
        return written, errors

    with ThreadPoolExecutor(max_workers=len(names)) as pool:
        futures = [(name, pool.submit(_extract_thumbnail, Path(directory) / name)) for name in names]
        for name, future in futures:
            try:
                written.append(future.result())
            except OSError as exc:
                logger.error("Could not extract thumbnail %s: %s", name, exc)
                errors.append((name, exc))
    return written, errors
