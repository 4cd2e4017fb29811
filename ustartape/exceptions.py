class TarError(Exception):
    """Base class for every archive error raised by ustartape."""

    pass


class MalformedNumericField(TarError, ValueError):
    """A numeric header field holds something other than octal digits, or overflows."""

    def __init__(self, field: str, raw: bytes, reason: str = "not an octal number"):
        self.field = field
        self.raw = raw
        super().__init__(f"Malformed numeric field '{field}': {raw!r} ({reason})")


class ChecksumMismatch(TarError):
    """Stored header checksum disagrees with the computed one."""

    def __init__(self, expected: int, found: int, offset: int | None = None):
        self.expected = expected
        self.found = found
        self.offset = offset
        where = f" at offset {offset}" if offset is not None else ""
        super().__init__(
            f"Header checksum mismatch{where}: stored {found:o}, computed {expected:o}"
        )


class FieldTooLong(TarError, ValueError):
    pass


class NameTooLong(FieldTooLong):
    pass


class ValueTooLarge(TarError, ValueError):
    pass


class TruncatedArchive(TarError):
    """The archive ends (or derails) before a proper end-of-archive marker."""

    pass


class UnexpectedNonZeroMarker(TruncatedArchive):
    pass


class FormatMismatch(TruncatedArchive):
    """Header is neither USTAR nor legacy UNIX (e.g. GNU or pax extension blocks)."""

    pass


class UnexpectedEof(TarError, EOFError):
    pass


class SizeMismatch(TarError):
    pass


class ArchiveStateError(TarError):
    """A reader or writer session was used out of order, or after it failed."""

    pass


class PayloadExpired(ArchiveStateError):
    pass
