from pathlib import Path
from typing import Literal, Union

import peewee

from ustartape.models import CATALOG_MODELS


class CatalogDatabase:
    """
    The SQLite file behind one catalog.

    Models carry no database of their own. Queries run inside `bound()`,
    which points the models at this connection and restores the previous
    binding on exit, so several catalogs can stay open side by side.
    """

    def __init__(self, db_path: Union[Union[str, Path], Literal[":memory:"]]):
        self.db_path = Path(db_path) if db_path != ":memory:" else db_path
        self.db = peewee.SqliteDatabase(
            str(self.db_path),
            pragmas={"journal_mode": "wal", "cache_size": -1024 * 64},
            timeout=10,
        )

    def connect(self) -> peewee.SqliteDatabase:
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db.connect(reuse_if_open=True)
        with self.bound():
            self.db.create_tables(CATALOG_MODELS, safe=True)
        return self.db

    def bound(self):
        return self.db.bind_ctx(CATALOG_MODELS)

    def atomic(self):
        return self.db.atomic()

    def close(self):
        if not self.db.is_closed():
            self.db.close()

    def __enter__(self) -> peewee.SqliteDatabase:
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
