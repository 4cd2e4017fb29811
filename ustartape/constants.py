from typing import NamedTuple

TAR_BLOCK_SIZE = 512
TAR_FOOTER_SIZE = 1024  # two zero blocks
CHUNK_SIZE_DEFAULT = 64 * 1024
SPOOL_MAX_SIZE = 1024 * 1024  # unknown-length payloads spill to disk past this

USTAR_MAGIC = b"ustar\0"
USTAR_VERSION = b"00"

LIMIT_NAME_BYTES = 100
LIMIT_PREFIX_BYTES = 155
SEPARATOR = "/"

# Largest values of the numeric field widths
LIMIT_UINT32 = 2**32 - 1
LIMIT_UINT64 = 2**64 - 1

CATALOG_METADATA_DIR = ".ustartape"
CATALOG_DB_NAME = "catalog.db"


class HeaderField(NamedTuple):
    name: str
    offset: int
    width: int

    @property
    def end(self) -> int:
        return self.offset + self.width


# https://www.gnu.org/software/tar/manual/html_node/Standard.html
NAME = HeaderField("name", 0, 100)
MODE = HeaderField("mode", 100, 8)
UID = HeaderField("uid", 108, 8)
GID = HeaderField("gid", 116, 8)
SIZE = HeaderField("size", 124, 12)
MTIME = HeaderField("mtime", 136, 12)
CHKSUM = HeaderField("chksum", 148, 8)
TYPEFLAG = HeaderField("typeflag", 156, 1)
LINKNAME = HeaderField("linkname", 157, 100)
MAGIC = HeaderField("magic", 257, 6)
VERSION = HeaderField("version", 263, 2)
UNAME = HeaderField("uname", 265, 32)
GNAME = HeaderField("gname", 297, 32)
DEVMAJOR = HeaderField("devmajor", 329, 8)
DEVMINOR = HeaderField("devminor", 337, 8)
PREFIX = HeaderField("prefix", 345, 155)
