import logging
import shutil
import tempfile
from typing import BinaryIO, Iterable, Optional, Tuple, Union

from .constants import CHUNK_SIZE_DEFAULT, SPOOL_MAX_SIZE, TAR_FOOTER_SIZE
from .exceptions import ArchiveStateError, SizeMismatch, TarError
from .header import encode_header
from .schemas import EntryMetadata
from .streams import is_seekable, stream_length, write_all

logger = logging.getLogger(__name__)


class SizedPayload:
    """
    A stream whose length is promised up front.

    It is streamed straight to the sink without buffering; if the stream
    turns out shorter or longer than promised the writer fails with
    SizeMismatch.
    """

    def __init__(self, stream: BinaryIO, length: int):
        if length < 0:
            raise ValueError(f"Payload length cannot be negative: {length}")
        self.stream = stream
        self.length = length


PayloadSource = Union[None, bytes, bytearray, memoryview, SizedPayload, BinaryIO, Iterable[bytes]]


class ArchiveWriter:
    """
    Serializes (EntryMetadata, payload) pairs into a USTAR byte stream.

    Header validation happens before any byte of an entry is written, so an
    entry rejected for a too-long name or an oversized number leaves the
    archive intact and the session usable. A failure while streaming a
    payload leaves the sink partially written and the writer unusable.
    """

    def __init__(
        self,
        sink: BinaryIO,
        chunk_size: int = CHUNK_SIZE_DEFAULT,
        spool_max_size: int = SPOOL_MAX_SIZE,
        offset: Optional[int] = None,
    ):
        self.sink = sink
        self.chunk_size = chunk_size
        self.spool_max_size = spool_max_size
        if offset is None:
            offset = sink.tell() if is_seekable(sink) else 0
        self.start_offset = offset
        self.offset = offset
        self.entries_written = 0
        self._closed = False
        self._broken = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
            return

        if not self._closed:
            logger.warning(
                f"Writer left without end-of-archive marker at offset {self.offset} "
                f"due to {exc_type.__name__}."
            )
            self._closed = True

    def _ensure_usable(self):
        if self._closed:
            raise ArchiveStateError("Archive writer is already closed")
        if self._broken:
            raise ArchiveStateError("Archive writer is unusable after a failed write")

    def add(self, metadata: EntryMetadata, payload: PayloadSource = None) -> EntryMetadata:
        """
        Appends one entry and returns the metadata actually written.

        Bytes-like payloads, SizedPayload and seekable streams commit to a
        length, which must match `metadata.size`. Non-seekable streams and
        iterables of bytes have no known length: they are spooled first and
        `size` is taken from the measured length.
        """
        self._ensure_usable()

        source, length, committed = self._resolve_payload(metadata, payload)
        try:
            if not committed:
                metadata = metadata.model_copy(update={"size": length})
            header = encode_header(metadata)
            self._write_entry(metadata, header, source, length, committed)
        finally:
            if not committed:
                source.close()

        self.entries_written += 1
        return metadata

    def _write_entry(
        self, metadata: EntryMetadata, header: bytes, source, length: int, committed: bool
    ):
        entry_offset = self.offset
        try:
            self._write(header)
            if isinstance(source, (bytes, bytearray, memoryview)):
                self._write(source)
            elif source is not None:
                self._stream(source, length, check_overflow=committed)
            if metadata.padding_size:
                self._write(b"\0" * metadata.padding_size)
        except (TarError, OSError):
            self._broken = True
            logger.error(
                f"Failed while writing '{metadata.name}' at offset {entry_offset}; "
                f"archive is left unterminated."
            )
            raise

        logger.debug(f"Wrote '{metadata.name}' at offset {entry_offset} ({length} bytes)")

    def close(self):
        """Writes the two-block end-of-archive marker. Must be called exactly once."""
        if self._closed:
            raise ArchiveStateError("Archive writer is already closed")
        if self._broken:
            raise ArchiveStateError("Archive writer is unusable after a failed write")

        self._closed = True
        self._write(b"\0" * TAR_FOOTER_SIZE)
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()

        logger.info(
            f"Archive closed: {self.entries_written} entries, {self.offset} bytes total."
        )

    def _resolve_payload(
        self, metadata: EntryMetadata, payload: PayloadSource
    ) -> Tuple[object, int, bool]:
        """Returns (source, length, committed)."""
        if payload is None:
            length, source = 0, None
        elif isinstance(payload, (bytes, bytearray, memoryview)):
            length, source = len(payload), payload
        elif isinstance(payload, SizedPayload):
            length, source = payload.length, payload.stream
        elif hasattr(payload, "read") and is_seekable(payload):
            # Bytes left from the current position
            length, source = stream_length(payload) - payload.tell(), payload
        else:
            return self._spool(payload)

        if length != metadata.size:
            raise SizeMismatch(
                f"Entry '{metadata.name}' declares {metadata.size} bytes "
                f"but its payload holds {length}"
            )
        return source, length, True

    def _spool(self, payload) -> Tuple[BinaryIO, int, bool]:
        """Measures a payload of unknown length by buffering it."""
        spool = tempfile.SpooledTemporaryFile(max_size=self.spool_max_size)
        try:
            if hasattr(payload, "read"):
                shutil.copyfileobj(payload, spool, self.chunk_size)
            else:
                for chunk in payload:
                    spool.write(chunk)
            length = spool.tell()
            spool.seek(0)
        except BaseException:
            spool.close()
            raise

        logger.debug(f"Buffered payload of unknown length: {length} bytes")
        return spool, length, False

    def _stream(self, stream: BinaryIO, length: int, check_overflow: bool):
        remaining = length
        while remaining > 0:
            chunk = stream.read(min(self.chunk_size, remaining))
            if not chunk:
                raise SizeMismatch(
                    f"Payload shrunk: {remaining} of {length} promised bytes missing"
                )
            self._write(chunk)
            remaining -= len(chunk)

        if check_overflow and stream.read(1):
            raise SizeMismatch(f"Payload grew: content exceeds promised {length} bytes")

    def _write(self, data: bytes):
        self.offset += write_all(self.sink, data)
