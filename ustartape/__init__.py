import logging

from .append import open_for_append
from .block import Block, padding_size, payload_blocks
from .catalog import Catalog
from .enums import Dialect, Mode, TypeFlag
from .exceptions import (
    ArchiveStateError,
    ChecksumMismatch,
    FieldTooLong,
    FormatMismatch,
    MalformedNumericField,
    NameTooLong,
    PayloadExpired,
    SizeMismatch,
    TarError,
    TruncatedArchive,
    UnexpectedEof,
    UnexpectedNonZeroMarker,
    ValueTooLarge,
)
from .header import decode_header, encode_header, split_path
from .reader import ArchiveReader, Entry, PayloadView
from .schemas import EntryMetadata
from .writer import ArchiveWriter, SizedPayload

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ArchiveReader",
    "ArchiveStateError",
    "ArchiveWriter",
    "Block",
    "Catalog",
    "ChecksumMismatch",
    "Dialect",
    "Entry",
    "EntryMetadata",
    "FieldTooLong",
    "FormatMismatch",
    "MalformedNumericField",
    "Mode",
    "NameTooLong",
    "PayloadExpired",
    "PayloadView",
    "SizeMismatch",
    "SizedPayload",
    "TarError",
    "TruncatedArchive",
    "TypeFlag",
    "UnexpectedEof",
    "UnexpectedNonZeroMarker",
    "ValueTooLarge",
    "decode_header",
    "encode_header",
    "open_for_append",
    "padding_size",
    "payload_blocks",
    "split_path",
]
