import io
import shutil
import tempfile
import unittest
from pathlib import Path
from typing import Iterable, Tuple

from ustartape import ArchiveWriter, EntryMetadata


class UstarTestCase(unittest.TestCase):
    """Base class for every ustartape test."""

    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())

    def tearDown(self):
        if self.tmp.exists():
            shutil.rmtree(self.tmp)

    def make_metadata(self, **kwargs) -> EntryMetadata:
        """Helper that builds a valid EntryMetadata for tests."""
        defaults = {
            "name": "file.txt",
            "size": 0,
            "mtime": 1700000000,
            "mode": 0o644,
            "uid": 1000,
            "gid": 1000,
            "uname": "user",
            "gname": "group",
        }
        defaults.update(kwargs)
        return EntryMetadata(**defaults)

    def make_file(self, name: str, content: bytes, **kwargs) -> Tuple[EntryMetadata, bytes]:
        return self.make_metadata(name=name, size=len(content), **kwargs), content

    def build_archive(self, entries: Iterable[Tuple[EntryMetadata, bytes]]) -> bytes:
        buffer = io.BytesIO()
        with ArchiveWriter(buffer) as writer:
            for metadata, payload in entries:
                writer.add(metadata, payload)
        return buffer.getvalue()

    def write_archive_file(self, name: str, data: bytes) -> Path:
        path = self.tmp / name
        path.write_bytes(data)
        return path


class NonSeekableStream(io.RawIOBase):
    """Pipe-like source: no seeking and deliberately short reads."""

    def __init__(self, data: bytes, max_read: int = 100):
        self._data = io.BytesIO(data)
        self._max_read = max_read

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, buffer) -> int:
        chunk = self._data.read(min(len(buffer), self._max_read))
        buffer[: len(chunk)] = chunk
        return len(chunk)
