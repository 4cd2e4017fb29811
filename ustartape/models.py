from typing import cast

from peewee import CharField, IntegerField, Model

from ustartape.block import payload_blocks
from ustartape.constants import TAR_BLOCK_SIZE
from ustartape.enums import Dialect, TypeFlag
from ustartape.schemas import EntryMetadata


class BaseModel(Model):
    """Catalog tables. Bound to a database per catalog, see CatalogDatabase."""


class CatalogMetadata(BaseModel):
    """Global information about the indexed archive (member count, marker offset, size)."""

    key = CharField(unique=True)
    value = CharField()


class Member(BaseModel):
    """One header found in the archive, keyed by its byte offset."""

    header_offset = cast(int, IntegerField(primary_key=True))
    name = cast(str, CharField(index=True))

    # Tar Header
    typeflag = cast(str, CharField(max_length=1))
    size = cast(int, IntegerField())
    mtime = cast(int, IntegerField())
    mode = cast(int, IntegerField())
    uid = cast(int, IntegerField())
    gid = cast(int, IntegerField())
    uname = cast(str, CharField(default=""))
    gname = cast(str, CharField(default=""))
    linkname = cast(str, CharField(default=""))
    devmajor = cast(int, IntegerField(default=0))
    devminor = cast(int, IntegerField(default=0))
    dialect = cast(str, CharField(default=Dialect.USTAR.value))

    # Header offset of the previous member with the same name
    prev_offset = cast(int, IntegerField(null=True))

    @classmethod
    def from_metadata(
        cls, metadata: EntryMetadata, header_offset: int, prev_offset: int | None = None
    ) -> "Member":
        return cls(
            header_offset=header_offset,
            name=metadata.name,
            typeflag=bytes(metadata.typeflag).decode("latin-1"),
            size=metadata.size,
            mtime=metadata.mtime,
            mode=metadata.mode,
            uid=metadata.uid,
            gid=metadata.gid,
            uname=metadata.uname,
            gname=metadata.gname,
            linkname=metadata.linkname,
            devmajor=metadata.devmajor,
            devminor=metadata.devminor,
            dialect=metadata.dialect.value,
            prev_offset=prev_offset,
        )

    def to_metadata(self) -> EntryMetadata:
        return EntryMetadata(
            name=self.name,
            mode=self.mode,
            uid=self.uid,
            gid=self.gid,
            size=self.size,
            mtime=self.mtime,
            typeflag=TypeFlag(self.typeflag.encode("latin-1")),
            linkname=self.linkname,
            uname=self.uname,
            gname=self.gname,
            devmajor=self.devmajor,
            devminor=self.devminor,
            dialect=Dialect(self.dialect),
        )

    @property
    def data_offset(self) -> int:
        return self.header_offset + TAR_BLOCK_SIZE

    @property
    def end_offset(self) -> int:
        return self.data_offset + payload_blocks(self.size) * TAR_BLOCK_SIZE


CATALOG_MODELS = [Member, CatalogMetadata]
