from pydantic import BaseModel, Field, field_validator

from .block import padding_size, payload_blocks
from .constants import SEPARATOR, TAR_BLOCK_SIZE
from .enums import Dialect, Mode, TypeFlag


class EntryMetadata(BaseModel):
    """
    Plain description of one archive member.

    `name` is the full path; splitting it into the USTAR name/prefix pair
    is the header codec's job. Legacy (pre-USTAR) headers decode with the
    ownership-name, device and prefix fields left at their defaults.
    """

    name: str
    mode: int = Field(default=0o644, ge=0)
    uid: int = Field(default=0, ge=0)
    gid: int = Field(default=0, ge=0)
    size: int = Field(default=0, ge=0)
    mtime: int = Field(default=0, ge=0)
    typeflag: TypeFlag = TypeFlag.REGULAR
    linkname: str = ""
    uname: str = ""
    gname: str = ""
    devmajor: int = Field(default=0, ge=0)
    devminor: int = Field(default=0, ge=0)
    dialect: Dialect = Dialect.USTAR

    @field_validator("typeflag", mode="before")
    @classmethod
    def _coerce_typeflag(cls, value):
        if isinstance(value, TypeFlag):
            return value
        if isinstance(value, int):
            value = bytes([value])
        return TypeFlag(value)

    @property
    def is_dir(self) -> bool:
        """
        Directory entries. Legacy archives had no directory typeflag and
        marked directories with a trailing separator on a regular entry.
        """
        if self.typeflag is TypeFlag.DIRECTORY:
            return True
        return (
            self.dialect is Dialect.LEGACY
            and self.typeflag is TypeFlag.REGULAR
            and self.name.endswith(SEPARATOR)
        )

    @property
    def permissions(self) -> Mode:
        return Mode(self.mode & 0o7777)

    @property
    def payload_blocks(self) -> int:
        return payload_blocks(self.size)

    @property
    def padding_size(self) -> int:
        return padding_size(self.size)

    @property
    def total_block_size(self) -> int:
        """Header plus block-aligned payload, in bytes."""
        return TAR_BLOCK_SIZE + self.payload_blocks * TAR_BLOCK_SIZE
