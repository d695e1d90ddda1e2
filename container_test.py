from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from typing import List
from unittest.mock import patch

from container import (
    ASH_MARKER,
    PART_NAMES,
    extract_thumbnails,
    find_segments,
    output_dir_for,
    split_file,
)
from errors import MalformedContainer


class StubDecompressor:
    def __init__(self) -> None:
        self.calls: List[Path] = []

    def run(self, path: Path) -> Path:
        self.calls.append(path)
        return path


def make_blob(bodies: List[bytes]) -> bytes:
    return b"".join(ASH_MARKER + body for body in bodies)


class FindSegmentsTest(unittest.TestCase):
    def test_four_markers_reconstruct_blob(self) -> None:
        cases = [
            [b"\x00" * 16, b"course", b"sub-course", b"\xff" * 3],
            [b"", b"", b"", b""],
            [b"a", b"ASH", b"SH0", b"b" * 1024],
        ]
        for bodies in cases:
            with self.subTest(bodies=[len(b) for b in bodies]):
                blob = make_blob(bodies)
                parts = find_segments(blob)
                self.assertEqual(len(parts), 4)
                self.assertTrue(all(part.startswith(ASH_MARKER) for part in parts))
                self.assertEqual(b"".join(parts), blob)

    def test_bytes_before_first_marker_are_dropped(self) -> None:
        blob = b"junk" + make_blob([b"1", b"2"])
        self.assertEqual(find_segments(blob), [ASH_MARKER + b"1", ASH_MARKER + b"2"])

    def test_no_marker_returns_nothing(self) -> None:
        self.assertEqual(find_segments(b"no markers here"), [])
        self.assertEqual(find_segments(b""), [])


class SplitFileTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.compressed = self.root / "compressed"
        self.output = self.root / "output"
        self.compressed.mkdir()
        self.level_id = "0000-0000-02E7-C6D0"
        self.blob_path = self.compressed / f"{self.level_id}_compressed"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_output_dir_strips_compressed_suffix(self) -> None:
        self.assertEqual(output_dir_for(self.blob_path, self.output), self.output / self.level_id)

    def test_split_writes_parts_and_thumbnails(self) -> None:
        bodies = [b"HEADER01jpeg-a", b"course-data", b"course-sub", b"HEADER02jpeg-b"]
        self.blob_path.write_bytes(make_blob(bodies))
        decompressor = StubDecompressor()

        result = split_file(self.blob_path, self.output, decompressor)

        parts_dir = self.output / self.level_id
        self.assertFalse(result.skipped)
        self.assertEqual(result.output_dir, parts_dir)
        self.assertEqual([p.name for p in decompressor.calls], list(PART_NAMES))
        self.assertEqual((parts_dir / "course_data.cdt").read_bytes(), ASH_MARKER + b"course-data")
        self.assertEqual((parts_dir / "course_data_sub.cdt").read_bytes(), ASH_MARKER + b"course-sub")
        self.assertEqual((parts_dir / "thumbnail0.jpg").read_bytes(), (ASH_MARKER + bodies[0])[8:])
        self.assertEqual((parts_dir / "thumbnail1.jpg").read_bytes(), (ASH_MARKER + bodies[3])[8:])
        self.assertFalse((parts_dir / "thumbnail0.tnl").exists())
        self.assertFalse((parts_dir / "thumbnail1.tnl").exists())
        self.assertEqual(sorted(p.name for p in result.thumbnails), ["thumbnail0.jpg", "thumbnail1.jpg"])
        self.assertEqual(result.failures, [])
        self.assertEqual(result.thumbnail_errors, [])

    def test_wrong_marker_count_raises_without_writing(self) -> None:
        for count in (3, 5):
            with self.subTest(count=count):
                self.blob_path.write_bytes(make_blob([b"part%d" % i for i in range(count)]))
                decompressor = StubDecompressor()
                with self.assertRaises(MalformedContainer) as ctx:
                    split_file(self.blob_path, self.output, decompressor)
                self.assertEqual(ctx.exception.found, count)
                parts_dir = self.output / self.level_id
                self.assertFalse(any(parts_dir.glob("*")) if parts_dir.exists() else False)
                self.assertEqual(decompressor.calls, [])

    def test_already_processed_directory_is_skipped(self) -> None:
        self.blob_path.write_bytes(make_blob([b"a", b"b", b"c", b"d"]))
        parts_dir = self.output / self.level_id
        parts_dir.mkdir(parents=True)
        (parts_dir / "course_data.cdt").write_bytes(b"done")
        (parts_dir / "course_data_sub.cdt").write_bytes(b"done")
        decompressor = StubDecompressor()

        with patch.object(Path, "write_bytes") as write_bytes, patch.object(Path, "mkdir") as mkdir:
            result = split_file(self.blob_path, self.output, decompressor)

        self.assertTrue(result.skipped)
        write_bytes.assert_not_called()
        mkdir.assert_not_called()
        self.assertEqual(decompressor.calls, [])
        self.assertEqual((parts_dir / "course_data.cdt").read_bytes(), b"done")

    def test_thumbnail_errors_are_reported(self) -> None:
        self.blob_path.write_bytes(make_blob([b"HEADER01a", b"b", b"c", b"HEADER02d"]))

        class LosingDecompressor(StubDecompressor):
            def run(self, path: Path) -> Path:
                if path.name == "thumbnail0.tnl":
                    path.unlink()
                return super().run(path)

        result = split_file(self.blob_path, self.output, LosingDecompressor())

        self.assertEqual([p.name for p in result.thumbnails], ["thumbnail1.jpg"])
        self.assertEqual([name for name, _ in result.thumbnail_errors], ["thumbnail0.tnl"])
        self.assertIsInstance(result.thumbnail_errors[0][1], FileNotFoundError)

    def test_second_split_is_a_no_op(self) -> None:
        self.blob_path.write_bytes(make_blob([b"HEADER01a", b"b", b"c", b"HEADER02d"]))
        split_file(self.blob_path, self.output, StubDecompressor())

        decompressor = StubDecompressor()
        result = split_file(self.blob_path, self.output, decompressor)
        self.assertTrue(result.skipped)
        self.assertEqual(decompressor.calls, [])


class ExtractThumbnailsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_header_is_stripped_and_source_removed(self) -> None:
        payload = bytes(range(200))
        (self.dir / "thumbnail0.tnl").write_bytes(b"\x01" * 8 + payload)

        written, errors = extract_thumbnails(self.dir, ["thumbnail0.tnl"])

        self.assertEqual(errors, [])
        self.assertEqual(written, [self.dir / "thumbnail0.jpg"])
        self.assertEqual((self.dir / "thumbnail0.jpg").read_bytes(), payload)
        self.assertFalse((self.dir / "thumbnail0.tnl").exists())

    def test_one_failure_does_not_block_the_other(self) -> None:
        (self.dir / "thumbnail1.tnl").write_bytes(b"12345678jpeg")

        written, errors = extract_thumbnails(self.dir, ["thumbnail0.tnl", "thumbnail1.tnl"])

        self.assertEqual(written, [self.dir / "thumbnail1.jpg"])
        self.assertEqual([name for name, _ in errors], ["thumbnail0.tnl"])
        self.assertIsInstance(errors[0][1], FileNotFoundError)
        self.assertEqual((self.dir / "thumbnail1.jpg").read_bytes(), b"jpeg")

    def test_short_thumbnail_yields_empty_image(self) -> None:
        (self.dir / "thumbnail0.tnl").write_bytes(b"1234")
        written, _ = extract_thumbnails(self.dir, ["thumbnail0.tnl"])
        self.assertEqual(written[0].read_bytes(), b"")

    def test_no_names(self) -> None:
        self.assertEqual(extract_thumbnails(self.dir, []), ([], []))


if __name__ == "__main__":
    unittest.main(verbosity=2)
