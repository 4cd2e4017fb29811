import io
import tarfile
import unittest

from ustartape.append import find_terminator, open_for_append
from ustartape.exceptions import ChecksumMismatch, FormatMismatch, TruncatedArchive
from ustartape.reader import ArchiveReader
from tests.base import NonSeekableStream, UstarTestCase


class TestAppend(UstarTestCase):
    def _read_all(self, data: bytes):
        reader = ArchiveReader(io.BytesIO(data))
        entries = [(entry.metadata, entry.read()) for entry in reader]
        return entries, reader.terminator_offset

    def test_append_to_two_entry_archive_on_disk(self):
        original = self.build_archive(
            [self.make_file("a.txt", b"alpha" * 200), self.make_file("b.txt", b"beta")]
        )
        path = self.write_archive_file("archive.tar", original)
        original_entries, original_marker = self._read_all(original)

        with open(path, "r+b") as f:
            with open_for_append(f) as writer:
                self.assertEqual(writer.offset, original_marker)
                writer.add(*self.make_file("c.txt", b"gamma"))

        result = path.read_bytes()
        entries, marker = self._read_all(result)

        self.assertEqual(len(entries), 3)
        self.assertEqual(entries[:2], original_entries)
        self.assertEqual(entries[2][0].name, "c.txt")
        self.assertEqual(entries[2][1], b"gamma")

        # Prior entries are byte-for-byte untouched
        self.assertEqual(result[:original_marker], original[:original_marker])
        self.assertEqual(marker, original_marker + 1024)
        self.assertEqual(len(result), marker + 1024)
        self.assertEqual(result[marker:], b"\0" * 1024)

        with tarfile.open(path, mode="r:") as tf:
            self.assertEqual(tf.getnames(), ["a.txt", "b.txt", "c.txt"])

    def test_append_to_empty_archive(self):
        buffer = io.BytesIO(b"\0" * 1024)
        with open_for_append(buffer) as writer:
            writer.add(*self.make_file("only.txt", b"x"))

        entries, _ = self._read_all(buffer.getvalue())
        self.assertEqual([m.name for m, _ in entries], ["only.txt"])

    def test_append_to_tarfile_archive_with_record_padding(self):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as tf:
            info = tarfile.TarInfo("from-tarfile.txt")
            info.size = 3
            tf.addfile(info, io.BytesIO(b"abc"))
        self.assertEqual(len(buffer.getvalue()) % 10240, 0)

        with open_for_append(buffer) as writer:
            writer.add(*self.make_file("appended.txt", b"def"))

        buffer.seek(0)
        with tarfile.open(fileobj=buffer, mode="r:") as tf:
            self.assertEqual(tf.getnames(), ["from-tarfile.txt", "appended.txt"])
            self.assertEqual(tf.extractfile("appended.txt").read(), b"def")  # type: ignore

    def test_append_after_single_block_marker(self):
        data = self.build_archive([self.make_file("a.txt", b"a")])[:-512]
        buffer = io.BytesIO(data)
        with open_for_append(buffer) as writer:
            writer.add(*self.make_file("b.txt", b"b"))

        entries, marker = self._read_all(buffer.getvalue())
        self.assertEqual([m.name for m, _ in entries], ["a.txt", "b.txt"])
        self.assertEqual(len(buffer.getvalue()), marker + 1024)

    def test_append_twice(self):
        buffer = io.BytesIO(self.build_archive([]))
        for name in ("one.txt", "two.txt"):
            with open_for_append(buffer) as writer:
                writer.add(*self.make_file(name, name.encode()))

        entries, _ = self._read_all(buffer.getvalue())
        self.assertEqual([(m.name, p) for m, p in entries], [("one.txt", b"one.txt"), ("two.txt", b"two.txt")])

    def test_corrupt_archive_is_not_recovered(self):
        data = bytearray(self.build_archive([self.make_file("a.txt", b"a")]))
        data[0] ^= 0x01
        buffer = io.BytesIO(bytes(data))
        with self.assertRaises(ChecksumMismatch):
            open_for_append(buffer)
        self.assertEqual(buffer.getvalue(), bytes(data))

    def test_unterminated_archive_is_rejected(self):
        data = self.build_archive([self.make_file("a.txt", b"a")])[:-1024]
        with self.assertRaises(TruncatedArchive):
            open_for_append(io.BytesIO(data))

    def test_gnu_archive_is_rejected(self):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w", format=tarfile.GNU_FORMAT) as tf:
            info = tarfile.TarInfo("l" * 150)  # needs a GNU long-name block
            info.size = 1
            tf.addfile(info, io.BytesIO(b"1"))

        with self.assertRaises(FormatMismatch):
            open_for_append(buffer)

    def test_requires_seekable_archive(self):
        with self.assertRaises(io.UnsupportedOperation):
            open_for_append(NonSeekableStream(b"\0" * 1024))

    def test_find_terminator(self):
        data = self.build_archive([self.make_file("a.txt", b"a" * 600)])
        self.assertEqual(find_terminator(io.BytesIO(data)), 512 + 1024)


if __name__ == "__main__":
    unittest.main()
