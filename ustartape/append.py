import io
import logging
from typing import BinaryIO

from .constants import CHUNK_SIZE_DEFAULT
from .reader import ArchiveReader
from .streams import is_seekable
from .writer import ArchiveWriter

logger = logging.getLogger(__name__)


def find_terminator(archive: BinaryIO, chunk_size: int = CHUNK_SIZE_DEFAULT) -> int:
    """
    Scans a well-formed archive from its start and returns the offset of the
    first end-of-archive block. Structural errors propagate as raised by the
    reader; nothing is repaired.
    """
    archive.seek(0)
    reader = ArchiveReader(archive, chunk_size=chunk_size)
    for _ in reader:
        pass

    return reader.require_terminator()


def open_for_append(archive: BinaryIO, chunk_size: int = CHUNK_SIZE_DEFAULT) -> ArchiveWriter:
    """
    Resumes a writer session on an existing archive.

    `archive` must be readable, writable and seekable (e.g. a file opened in
    "r+b" mode) and is owned exclusively by the session until it is closed.
    New entries overwrite the old end-of-archive marker; closing the writer
    writes a fresh one after them.
    """
    if not is_seekable(archive):
        raise io.UnsupportedOperation("Appending requires a seekable archive")

    offset = find_terminator(archive, chunk_size=chunk_size)
    archive.seek(offset)
    logger.info(f"Appending to archive at offset {offset}.")
    return ArchiveWriter(archive, chunk_size=chunk_size, offset=offset)
