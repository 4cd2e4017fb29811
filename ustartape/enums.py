from enum import Enum, IntFlag


class TypeFlag(bytes, Enum):
    """
    Entry kind stored in the typeflag byte.

    The named members are the POSIX set. Any other single byte (GNU 'L',
    vendor 'A'-'Z', z/OS 'S'/'T' ...) resolves to a cached CUSTOM pseudo-member
    that keeps the raw byte, so unknown kinds survive a decode/encode cycle.
    """

    REGULAR = b"0"
    HARD_LINK = b"1"
    SYMLINK = b"2"
    CHAR_DEVICE = b"3"
    BLOCK_DEVICE = b"4"
    DIRECTORY = b"5"
    FIFO = b"6"
    RESERVED = b"7"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            value = value.encode("latin-1")
        if not isinstance(value, (bytes, bytearray)) or len(value) != 1:
            return None

        value = bytes(value)
        if value == b"\0":
            # Pre-POSIX regular file
            return cls.REGULAR
        if value in cls._value2member_map_:
            return cls._value2member_map_[value]

        member = bytes.__new__(cls, value)
        member._name_ = f"CUSTOM_{value.hex().upper()}"
        member._value_ = value
        return cls._value2member_map_.setdefault(value, member)

    @property
    def is_custom(self) -> bool:
        return self._name_ not in type(self).__members__

    @property
    def is_device(self) -> bool:
        return self in (TypeFlag.CHAR_DEVICE, TypeFlag.BLOCK_DEVICE)

    @property
    def is_link(self) -> bool:
        return self in (TypeFlag.HARD_LINK, TypeFlag.SYMLINK)


class Dialect(str, Enum):
    USTAR = "ustar"
    LEGACY = "legacy"  # UNIX V7 layout, no magic


class Mode(IntFlag):
    """Bits used in the mode field (octal)."""

    TSUID = 0o4000  # set UID on execution
    TSGID = 0o2000  # set GID on execution
    TSVTX = 0o1000  # reserved
    TUREAD = 0o0400
    TUWRITE = 0o0200
    TUEXEC = 0o0100
    TGREAD = 0o0040
    TGWRITE = 0o0020
    TGEXEC = 0o0010
    TOREAD = 0o0004
    TOWRITE = 0o0002
    TOEXEC = 0o0001


class ReaderState(Enum):
    START = "start"
    READING_HEADER = "reading_header"
    IN_ENTRY = "in_entry"
    END = "end"
    FAILED = "failed"
