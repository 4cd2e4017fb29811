import io
from typing import BinaryIO

from .exceptions import UnexpectedEof


def is_seekable(stream) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


def read_exact(source: BinaryIO, size: int, allow_empty: bool = False) -> bytes:
    """
    Reads exactly `size` bytes, looping over short reads (pipes, sockets).

    With `allow_empty`, hitting end-of-stream before the first byte returns
    b"" instead of failing; a partial read always fails.
    """
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)

    data = b"".join(chunks)
    if remaining == 0 or (allow_empty and not data):
        return data

    raise UnexpectedEof(f"Expected {size} bytes, stream ended after {len(data)}")


def write_all(sink: BinaryIO, data: bytes) -> int:
    """Writes every byte of `data`, looping over short writes of raw streams."""
    view = memoryview(data)
    while view:
        written = sink.write(view)
        if written is None:
            # Sinks that do not report a count write everything
            break
        view = view[written:]
    return len(data)


def stream_length(stream: BinaryIO) -> int:
    """Total length of a seekable stream, leaving its position unchanged."""
    position = stream.tell()
    try:
        return stream.seek(0, io.SEEK_END)
    finally:
        stream.seek(position)
