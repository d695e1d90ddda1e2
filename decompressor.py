from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from errors import DecompressionFailed


logger = logging.getLogger(__name__)

ARC_SUFFIX = ".arc"


class AshDecompressor:
    """Runs the ASH Extractor (http://wiibrew.org/wiki/ASH_Extractor) on one segment file.

    The extractor writes ``<path>.arc`` next to its input. It also exits
    non-zero on some runs that did produce output, so the exit status is
    ignored and the ``.arc`` file is the only success signal. On success the
    ``.arc`` file replaces the segment under the segment's own name.
    """

    def __init__(self, executable: Path, timeout: Optional[float] = 120.0) -> None:
        self.executable = Path(executable)
        self.timeout = timeout

    def run(self, path: Path) -> Path:
        path = Path(path)
        cause: Optional[BaseException] = None
        logger.info("Decompressing: %s", path)
        try:
            subprocess.run(
                [str(self.executable), str(path)],
                check=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
            cause = exc
            logger.debug("Extractor reported failure for %s: %s", path, exc)

        arc_path = path.with_name(path.name + ARC_SUFFIX)
        if not arc_path.exists():
            raise DecompressionFailed(path, cause)

        os.replace(arc_path, path)
        logger.info("Decompressed: %s", path)
        return path


def decompress_all(
    directory: Path,
    count: int,
    names: Sequence[str],
    decompressor: AshDecompressor,
) -> List[DecompressionFailed]:
    failures: List[DecompressionFailed] = []
    for name in list(names)[:count]:
        try:
            decompressor.run(Path(directory) / name)
        except DecompressionFailed as exc:
            logger.error("%s", exc)
            failures.append(exc)
    logger.info("All files have been decompressed, find them here: %s", directory)
    return failures
