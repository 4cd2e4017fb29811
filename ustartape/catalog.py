import logging
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union, cast

import peewee

from .constants import CATALOG_DB_NAME, CATALOG_METADATA_DIR, CHUNK_SIZE_DEFAULT
from .database import CatalogDatabase
from .models import CatalogMetadata, Member
from .reader import ArchiveReader
from .streams import read_exact

logger = logging.getLogger(__name__)


class Catalog:
    """
    Persistent index of an archive's members (a SQLite file).

    Tar allows the same name to appear several times, later members
    superseding earlier ones; every member keeps a link to the previous
    revision of its name. Each catalog owns its connection, so any number
    of them can be open at once.
    """

    def __init__(self, db_path: str | Path):
        self.path = Path(db_path) if db_path != ":memory:" else db_path
        self.db = CatalogDatabase(db_path)
        self.db.connect()

    @classmethod
    def build(
        cls,
        source: BinaryIO,
        db_path: str | Path,
        batch_size: int = 300,
        chunk_size: int = CHUNK_SIZE_DEFAULT,
    ) -> "Catalog":
        """
        Scans an archive from its current position and records every member.
        Any structural error aborts the build; nothing partial is kept for
        a file-backed catalog.
        """
        if db_path != ":memory:" and Path(db_path).exists():
            raise FileExistsError(f"Catalog already exists at: {db_path}")

        catalog = cls(db_path)
        try:
            with catalog.db.bound():
                catalog._index(ArchiveReader(source, chunk_size=chunk_size), batch_size)
        except BaseException:
            catalog.close()
            if db_path != ":memory:":
                Path(db_path).unlink(missing_ok=True)
            raise
        return catalog

    @classmethod
    def open(cls, path: str | Path) -> "Catalog":
        """Opens an existing catalog."""
        logger.info(f"Opening catalog from: {path}")
        if path != ":memory:" and not Path(path).exists():
            raise FileNotFoundError(f"The catalog does not exist in: {path}")
        try:
            return cls(path)
        except peewee.DatabaseError:
            logger.error(f"Failed to open catalog at {path}. Is it a valid catalog file?")
            raise FileNotFoundError(
                f"Failed to open catalog at {path}. Is it a valid catalog file?"
            )

    @classmethod
    def default_path(cls, directory: str | Path) -> Path:
        return Path(directory) / CATALOG_METADATA_DIR / CATALOG_DB_NAME

    def _index(self, reader: ArchiveReader, batch_size: int):
        last_revision: Dict[str, int] = {}
        buffer: List[dict] = []

        for entry in reader:
            member = Member.from_metadata(
                entry.metadata,
                header_offset=entry.header_offset,
                prev_offset=last_revision.get(entry.name),
            )
            last_revision[entry.name] = entry.header_offset
            buffer.append(member.__data__)

            if len(buffer) >= batch_size:
                self._flush(buffer)
                buffer = []

        self._flush(buffer)

        terminator_offset = reader.require_terminator()
        archive_size = reader.position
        with self.db.atomic():
            for key, value in (
                ("member_count", reader.entries_read),
                ("terminator_offset", terminator_offset),
                ("archive_size", archive_size),
            ):
                CatalogMetadata.insert(key=key, value=str(value)).on_conflict_replace().execute()

        logger.info(
            f"Catalog built: {reader.entries_read} members, "
            f"{len(last_revision)} distinct names."
        )

    def _flush(self, buffer: List[dict]):
        """Write the buffer to the database."""
        if not buffer:
            return

        with self.db.atomic():
            Member.insert_many(buffer).execute()

    def _metadata_int(self, key: str) -> int:
        with self.db.bound():
            return int(CatalogMetadata.get(CatalogMetadata.key == key).value)

    @property
    def member_count(self) -> int:
        return self._metadata_int("member_count")

    @property
    def terminator_offset(self) -> int:
        """Offset of the end-of-archive marker, where appended entries go."""
        return self._metadata_int("terminator_offset")

    @property
    def archive_size(self) -> int:
        """Bytes up to and including the end-of-archive marker that was read."""
        return self._metadata_int("archive_size")

    def members(self) -> List[Member]:
        """Returns every member in archive order."""
        with self.db.bound():
            return list(Member.select().order_by(Member.header_offset))

    def names(self) -> List[str]:
        """Distinct member names, in order of first appearance."""
        seen: Dict[str, None] = {}
        for member in self.members():
            seen.setdefault(member.name, None)
        return list(seen)

    def lookup(self, name: str) -> Optional[Member]:
        """Latest revision of `name`, or None."""
        with self.db.bound():
            return cast(
                Optional[Member],
                Member.select()
                .where(Member.name == name)
                .order_by(Member.header_offset.desc())
                .first(),
            )

    def revisions(self, name: str) -> List[Member]:
        """All members named `name`, oldest first."""
        with self.db.bound():
            return list(
                Member.select().where(Member.name == name).order_by(Member.header_offset)
            )

    def is_latest(self, member: Member) -> bool:
        """True if no later member in the archive has the same name."""
        with self.db.bound():
            newer = Member.select().where(
                (Member.name == member.name)
                & (Member.header_offset > member.header_offset)
            )
            return not newer.exists()

    def read_payload(self, source: BinaryIO, member: Union[str, Member]) -> bytes:
        """Seeks `source` to a member's payload and reads exactly its size."""
        if isinstance(member, str):
            found = self.lookup(member)
            if found is None:
                raise KeyError(f"No member named '{member}' in catalog")
            member = found

        source.seek(member.data_offset)
        return read_exact(source, member.size)

    def close(self):
        """Close the connection to the catalog database."""
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
