from typing import Optional, Tuple

from .constants import CHKSUM, TAR_BLOCK_SIZE, HeaderField
from .exceptions import FieldTooLong, MalformedNumericField, ValueTooLarge

OCTAL_DIGITS = frozenset(b"01234567")
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


def payload_blocks(size: int) -> int:
    """Number of 512-byte blocks needed to hold `size` payload bytes."""
    return (size + TAR_BLOCK_SIZE - 1) // TAR_BLOCK_SIZE


def padding_size(size: int) -> int:
    return (TAR_BLOCK_SIZE - (size % TAR_BLOCK_SIZE)) % TAR_BLOCK_SIZE


def is_zero_block(data: bytes) -> bool:
    return data.count(0) == len(data)


class Block:
    """
    A single 512-byte archive block.

    Reads and writes named header fields as either NUL-terminated (or
    full-width) strings or zero-padded octal ASCII numbers.
    """

    def __init__(self, data: Optional[bytes] = None):
        if data is None:
            self.buffer = bytearray(TAR_BLOCK_SIZE)
        else:
            if len(data) != TAR_BLOCK_SIZE:
                raise ValueError(
                    f"A block must be exactly {TAR_BLOCK_SIZE} bytes, got {len(data)}"
                )
            self.buffer = bytearray(data)

    def __bytes__(self) -> bytes:
        return bytes(self.buffer)

    def __len__(self) -> int:
        return len(self.buffer)

    def is_zero(self) -> bool:
        return is_zero_block(self.buffer)

    def raw(self, field: HeaderField) -> bytes:
        return bytes(self.buffer[field.offset : field.end])

    def read_string(self, field: HeaderField) -> str:
        """Field value up to the first NUL, or the whole width if there is none."""
        data = self.raw(field).split(b"\0", 1)[0]
        return data.decode(ENCODING, ENCODING_ERRORS)

    def read_octal(self, field: HeaderField, limit: int) -> int:
        """
        Parses an octal ASCII field.

        Leading/trailing spaces and everything from the first NUL onwards are
        padding. An empty field is 0.
        """
        raw = self.raw(field)
        digits = raw.split(b"\0", 1)[0].strip(b" ")
        if not digits:
            return 0

        if not OCTAL_DIGITS.issuperset(digits):
            raise MalformedNumericField(field.name, raw)

        value = int(digits, 8)
        if value > limit:
            raise MalformedNumericField(field.name, raw, f"overflows {limit}")
        return value

    def write_bytes(self, offset: int, value: bytes):
        """Writes raw bytes at a specific offset."""
        if offset + len(value) > TAR_BLOCK_SIZE:
            raise ValueError(f"Write overflow at offset {offset}")

        self.buffer[offset : offset + len(value)] = value

    def write_string(self, field: HeaderField, value: str):
        """
        Writes an encoded string. Shorter values are NUL-padded; a value of
        exactly the field width is stored without terminator.
        """
        data = value.encode(ENCODING, ENCODING_ERRORS)
        if len(data) > field.width:
            raise FieldTooLong(
                f"'{value}' too long for field '{field.name}' "
                f"({len(data)} > {field.width})"
            )

        self.buffer[field.offset : field.end] = data.ljust(field.width, b"\0")

    def write_octal(self, field: HeaderField, value: int):
        """
        Writes a number in octal format following the TAR standard:
        1. Converts the number to octal.
        2. Pads with leading zeros.
        3. Leaves space for the NULL terminator at the end.
        """
        if value < 0:
            raise ValueTooLarge(f"Negative value {value} for field '{field.name}'")

        octal_string = format(value, "o")

        # The last byte is reserved for the NUL terminator
        max_digits = field.width - 1
        if len(octal_string) > max_digits:
            raise ValueTooLarge(
                f"Number {value} too large for octal field '{field.name}' "
                f"(width {field.width})"
            )

        final_string = octal_string.zfill(max_digits) + "\0"
        self.buffer[field.offset : field.end] = final_string.encode("ascii")

    def checksums(self) -> Tuple[int, int]:
        """
        Sum of the 512 bytes with the checksum field counted as eight ASCII
        spaces, as (unsigned, signed). Old Sun/BSD tars summed signed chars.
        """
        blanked = bytearray(self.buffer)
        blanked[CHKSUM.offset : CHKSUM.end] = b" " * CHKSUM.width
        unsigned_sum = sum(blanked)
        signed_sum = unsigned_sum - 256 * sum(1 for b in blanked if b > 127)
        return unsigned_sum, signed_sum

    def write_checksum(self) -> int:
        """
        Calculates and writes the header checksum.

        Stored as 6 octal digits, followed by a NULL byte and a space.
        """
        total_sum, _ = self.checksums()
        final_string = format(total_sum, "o").zfill(6) + "\0" + " "
        self.buffer[CHKSUM.offset : CHKSUM.end] = final_string.encode("ascii")
        return total_sum
