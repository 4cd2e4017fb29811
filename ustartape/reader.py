import io
import logging
from typing import BinaryIO, Iterator, Optional

from .block import Block, payload_blocks
from .constants import CHUNK_SIZE_DEFAULT, TAR_BLOCK_SIZE
from .enums import Dialect, ReaderState
from .exceptions import (
    ArchiveStateError,
    PayloadExpired,
    TarError,
    TruncatedArchive,
    UnexpectedEof,
    UnexpectedNonZeroMarker,
)
from .header import decode_header
from .schemas import EntryMetadata
from .streams import is_seekable, read_exact, stream_length

logger = logging.getLogger(__name__)


class PayloadView:
    """
    Bounded window (offset, length) onto an entry's payload in the source.

    The view does not own a copy of the data: it reads straight from the
    reader's source and stops working once the reader moves to the next
    entry.
    """

    def __init__(self, reader: "ArchiveReader", generation: int, offset: int, length: int):
        self._reader = reader
        self._generation = generation
        self.offset = offset
        self.length = length
        self._consumed = 0

    @property
    def remaining(self) -> int:
        return self.length - self._consumed

    @property
    def is_valid(self) -> bool:
        reader = self._reader
        return (
            self._generation == reader._generation
            and reader._state is ReaderState.IN_ENTRY
        )

    def read(self, size: int = -1) -> bytes:
        if not self.is_valid:
            raise PayloadExpired(
                f"Payload at offset {self.offset} is no longer readable: "
                f"the reader has advanced past it."
            )

        if size is None or size < 0 or size > self.remaining:
            size = self.remaining
        if size == 0:
            return b""

        data = self._reader._read_payload(size)
        self._consumed += len(data)
        return data

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE_DEFAULT) -> Iterator[bytes]:
        while self.remaining > 0:
            yield self.read(chunk_size)


class Entry:
    """A decoded member as produced by ArchiveReader."""

    def __init__(self, metadata: EntryMetadata, header_offset: int, payload: PayloadView):
        self.metadata = metadata
        self.header_offset = header_offset
        self.payload = payload

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def size(self) -> int:
        return self.metadata.size

    @property
    def data_offset(self) -> int:
        return self.header_offset + TAR_BLOCK_SIZE

    @property
    def end_offset(self) -> int:
        """Offset right after the entry's last (padded) payload block."""
        return self.data_offset + payload_blocks(self.size) * TAR_BLOCK_SIZE

    def read(self, size: int = -1) -> bytes:
        return self.payload.read(size)

    def __repr__(self) -> str:
        return (
            f"Entry(name={self.name!r}, typeflag={self.metadata.typeflag!r}, "
            f"size={self.size}, offset={self.header_offset})"
        )


class ArchiveReader:
    """
    Forward-only reader over a byte source.

    Iterating yields Entry objects lazily. Payloads are never buffered: when
    the reader advances it skips the remaining payload blocks of the current
    entry, seeking when the source allows it and reading through otherwise.
    Any failure leaves the reader unusable.
    """

    def __init__(self, source: BinaryIO, chunk_size: int = CHUNK_SIZE_DEFAULT):
        self.source = source
        self.chunk_size = chunk_size
        self._seekable = is_seekable(source)
        self.start_offset = source.tell() if self._seekable else 0
        self._length: Optional[int] = None
        self._reset()

    def _reset(self):
        self._position = self.start_offset
        self._state = ReaderState.START
        self._generation = 0
        self._current: Optional[Entry] = None
        self.entries_read = 0
        self.terminator_offset: Optional[int] = None

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def position(self) -> int:
        return self._position

    def require_terminator(self) -> int:
        """Offset of the end-of-archive marker. Fails unless the reader has reached it."""
        if self.terminator_offset is None:
            raise TruncatedArchive(
                f"No end-of-archive marker read yet (reader is {self._state.value})"
            )
        return self.terminator_offset

    def __iter__(self) -> "ArchiveReader":
        return self

    def __next__(self) -> Entry:
        entry = self.next_entry()
        if entry is None:
            raise StopIteration
        return entry

    def rewind(self):
        """Restarts reading from the offset the reader was created at."""
        if not self._seekable:
            raise io.UnsupportedOperation("Cannot rewind a non-seekable source")

        self.source.seek(self.start_offset)
        generation = self._generation + 1
        self._reset()
        # Views handed out before the rewind stay invalid
        self._generation = generation

    def next_entry(self) -> Optional[Entry]:
        """Returns the next entry, or None once the end-of-archive marker was read."""
        if self._state is ReaderState.END:
            return None
        if self._state is ReaderState.FAILED:
            raise ArchiveStateError("Reader is unusable after an earlier failure")

        try:
            self._skip_current()
            self._state = ReaderState.READING_HEADER
            return self._read_entry()
        except (TarError, OSError):
            self._state = ReaderState.FAILED
            raise

    def _read_entry(self) -> Optional[Entry]:
        header_offset = self._position
        block = self._read_block(allow_eof=True)

        if block is None:
            raise TruncatedArchive(
                f"Archive ends at offset {header_offset} without an end-of-archive marker"
            )

        if block.is_zero():
            self._read_terminator(header_offset)
            return None

        metadata = decode_header(block, offset=header_offset)
        if metadata.dialect is Dialect.LEGACY:
            logger.debug(f"Legacy UNIX header at offset {header_offset}: {metadata.name}")

        self._generation += 1
        payload = PayloadView(
            self, self._generation, header_offset + TAR_BLOCK_SIZE, metadata.size
        )
        self._current = Entry(metadata, header_offset, payload)
        self._state = ReaderState.IN_ENTRY
        self.entries_read += 1

        logger.debug(
            f"Entry '{metadata.name}' at offset {header_offset} ({metadata.size} bytes)"
        )
        return self._current

    def _read_terminator(self, marker_offset: int):
        second = self._read_block(allow_eof=True)
        if second is None:
            # Some producers write a single zero block before EOF
            logger.warning(
                f"Archive has a single end-of-archive block at offset {marker_offset}"
            )
        elif not second.is_zero():
            raise UnexpectedNonZeroMarker(
                f"Zero block at offset {marker_offset} is followed by a non-zero block"
            )

        self.terminator_offset = marker_offset
        self._state = ReaderState.END
        self._generation += 1
        self._current = None
        logger.info(
            f"Reached end of archive after {self.entries_read} entries "
            f"(marker at offset {marker_offset})."
        )

    def _read_block(self, allow_eof: bool = False) -> Optional[Block]:
        data = read_exact(self.source, TAR_BLOCK_SIZE, allow_empty=allow_eof)
        if not data:
            return None

        self._position += len(data)
        return Block(data)

    def _read_payload(self, size: int) -> bytes:
        try:
            data = read_exact(self.source, size)
        except (TarError, OSError):
            self._state = ReaderState.FAILED
            raise

        self._position += len(data)
        return data

    def _skip_current(self):
        """Moves past whatever is left of the current entry's payload blocks."""
        if self._current is None:
            return

        target = self._current.end_offset
        self._current = None
        self._generation += 1

        remaining = target - self._position
        if remaining <= 0:
            return

        if self._seekable:
            if self._length is None:
                self._length = stream_length(self.source)
            if target > self._length:
                raise UnexpectedEof(
                    f"Payload needs {target} bytes but the source holds {self._length}"
                )
            self.source.seek(target)
        else:
            while remaining > 0:
                chunk = read_exact(self.source, min(self.chunk_size, remaining))
                remaining -= len(chunk)

        self._position = target
