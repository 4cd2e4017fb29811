import logging
from typing import Optional, Tuple, Union

from .block import ENCODING, ENCODING_ERRORS, Block
from .constants import (
    CHKSUM,
    DEVMAJOR,
    DEVMINOR,
    GID,
    GNAME,
    LIMIT_NAME_BYTES,
    LIMIT_PREFIX_BYTES,
    LIMIT_UINT32,
    LIMIT_UINT64,
    LINKNAME,
    MAGIC,
    MODE,
    MTIME,
    NAME,
    PREFIX,
    SEPARATOR,
    SIZE,
    TYPEFLAG,
    UID,
    UNAME,
    USTAR_MAGIC,
    USTAR_VERSION,
    VERSION,
)
from .enums import Dialect, TypeFlag
from .exceptions import ChecksumMismatch, FormatMismatch, NameTooLong
from .schemas import EntryMetadata

logger = logging.getLogger(__name__)

# Link flags understood by the pre-POSIX layout
LEGACY_TYPEFLAGS = {
    b"\0": TypeFlag.REGULAR,
    b"0": TypeFlag.REGULAR,
    b"1": TypeFlag.HARD_LINK,
    b"2": TypeFlag.SYMLINK,
}


def _byte_length(value: str) -> int:
    return len(value.encode(ENCODING, ENCODING_ERRORS))


def split_path(path: str) -> Tuple[str, str]:
    """
    Splits a path to ensure USTAR compatibility.
    Limits: Name (100 bytes), Prefix (155 bytes).

    Returns (name, prefix). The separator at the split point is dropped and
    the last separator that keeps both parts within their widths wins.
    """
    if _byte_length(path) <= LIMIT_NAME_BYTES:
        return path, ""

    # Find a '/' such that:
    # - Left part (prefix) <= 155 bytes
    # - Right part (name) <= 100 bytes
    best_split_index = -1
    for i, char in enumerate(path):
        if char != SEPARATOR:
            continue

        prefix_size = _byte_length(path[:i])
        name_size = _byte_length(path[i + 1 :])
        if prefix_size > LIMIT_PREFIX_BYTES:
            break
        if name_size <= LIMIT_NAME_BYTES and (prefix_size > 0 and name_size > 0):
            best_split_index = i

    # A directory whose path (minus the slash) fills the prefix leaves an empty name
    if (
        best_split_index == -1
        and path.endswith(SEPARATOR)
        and 0 < _byte_length(path[:-1]) <= LIMIT_PREFIX_BYTES
    ):
        best_split_index = len(path) - 1

    if best_split_index == -1:
        raise NameTooLong(
            f"Path is too long or cannot be split to fit USTAR limits "
            f"({_byte_length(path)} bytes): '{path}'"
        )

    return path[best_split_index + 1 :], path[:best_split_index]


def join_path(name: str, prefix: str) -> str:
    if not prefix:
        return name
    return prefix + SEPARATOR + name


def encode_header(metadata: EntryMetadata) -> bytes:
    """
    Builds the 512-byte USTAR header for an entry.

    Every field is validated before anything is returned, so a failure here
    never leaves a partial header behind.
    """
    full_path = metadata.name
    if metadata.typeflag is TypeFlag.DIRECTORY and not full_path.endswith(SEPARATOR):
        full_path += SEPARATOR

    name, prefix = split_path(full_path)

    block = Block()
    block.write_string(NAME, name)
    block.write_octal(MODE, metadata.mode)
    block.write_octal(UID, metadata.uid)
    block.write_octal(GID, metadata.gid)
    block.write_octal(SIZE, metadata.size)
    block.write_octal(MTIME, metadata.mtime)
    block.write_bytes(TYPEFLAG.offset, bytes(metadata.typeflag))
    block.write_string(LINKNAME, metadata.linkname)

    # USTAR Signature (Essential for the Prefix field to be recognized)
    block.write_bytes(MAGIC.offset, USTAR_MAGIC)
    block.write_bytes(VERSION.offset, USTAR_VERSION)

    block.write_string(UNAME, metadata.uname)
    block.write_string(GNAME, metadata.gname)
    block.write_octal(DEVMAJOR, metadata.devmajor)
    block.write_octal(DEVMINOR, metadata.devminor)

    # Prefix allows full path to reach 255 bytes (155 prefix + 100 name)
    block.write_string(PREFIX, prefix)

    block.write_checksum()
    return bytes(block)


def detect_dialect(block: Block) -> Dialect:
    magic = block.raw(MAGIC)
    if magic == USTAR_MAGIC and block.raw(VERSION) == USTAR_VERSION:
        return Dialect.USTAR
    if not magic.strip(b"\0"):
        return Dialect.LEGACY

    # "ustar  \0" (old GNU) and anything else carrying a foreign signature
    raise FormatMismatch(f"Unsupported header signature {magic + block.raw(VERSION)!r}")


def verify_checksum(block: Block, offset: Optional[int] = None) -> int:
    stored = block.read_octal(CHKSUM, LIMIT_UINT32)
    unsigned_sum, signed_sum = block.checksums()
    if stored == unsigned_sum:
        return stored
    if stored == signed_sum:
        logger.debug(f"Header at offset {offset} uses a signed-char checksum.")
        return stored

    logger.error(
        f"Checksum mismatch at offset {offset}: stored {stored:o}, computed {unsigned_sum:o}"
    )
    raise ChecksumMismatch(expected=unsigned_sum, found=stored, offset=offset)


def decode_header(
    data: Union[bytes, bytearray, Block], offset: Optional[int] = None
) -> EntryMetadata:
    """
    Decodes one header block.

    The checksum is verified before any other field is interpreted, so a
    corrupted block always surfaces as ChecksumMismatch. `offset` is only
    used for error messages.
    """
    block = data if isinstance(data, Block) else Block(data)

    verify_checksum(block, offset)
    dialect = detect_dialect(block)

    raw_typeflag = block.raw(TYPEFLAG)
    if dialect is Dialect.LEGACY:
        if raw_typeflag not in LEGACY_TYPEFLAGS:
            raise FormatMismatch(
                f"Typeflag {raw_typeflag!r} is not valid in a legacy UNIX header"
            )
        typeflag = LEGACY_TYPEFLAGS[raw_typeflag]
    else:
        typeflag = TypeFlag(raw_typeflag)

    fields = dict(
        name=block.read_string(NAME),
        mode=block.read_octal(MODE, LIMIT_UINT32),
        uid=block.read_octal(UID, LIMIT_UINT32),
        gid=block.read_octal(GID, LIMIT_UINT32),
        size=block.read_octal(SIZE, LIMIT_UINT64),
        mtime=block.read_octal(MTIME, LIMIT_UINT64),
        typeflag=typeflag,
        linkname=block.read_string(LINKNAME),
        dialect=dialect,
    )

    if dialect is Dialect.USTAR:
        fields.update(
            name=join_path(fields["name"], block.read_string(PREFIX)),
            uname=block.read_string(UNAME),
            gname=block.read_string(GNAME),
            devmajor=block.read_octal(DEVMAJOR, LIMIT_UINT32),
            devminor=block.read_octal(DEVMINOR, LIMIT_UINT32),
        )

    return EntryMetadata(**fields)
