import asyncio
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

DATABASE_FILENAME = "materials.db"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS FOLDER (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        parent_id INTEGER REFERENCES FOLDER(id) ON DELETE CASCADE,
        created_at INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS MATERIAL (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        folder_id INTEGER REFERENCES FOLDER(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        kind TEXT NOT NULL DEFAULT 'text',
        content TEXT,
        created_at INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_material_folder ON MATERIAL(folder_id)",
    "CREATE INDEX IF NOT EXISTS idx_folder_user ON FOLDER(user_id)",
)


class AsyncDatabaseInitializer:
    """
    Own the SQLite file that stores the learner's study folders and materials.

    - The file lives at <database_dir>/materials.db; the directory is created
      on construction and a RuntimeError is raised when that is impossible.
    - `ensure_database()` creates the schema once per instance and never
      drops existing rows.
    - `connection()` yields a connection with foreign keys enforced.
    """

    def __init__(self, database_dir: Path | str) -> None:
        db_dir = Path(database_dir).expanduser()
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={str(database_dir)!r} is a file ({db_dir}); "
                "point it at a directory for the materials store."
            )
        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(f"Cannot create materials directory {db_dir}") from exc

        self.db_dir = db_dir
        self.db_path = db_dir / DATABASE_FILENAME
        self._initialized = False
        self._lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """Create the FOLDER and MATERIAL tables if this instance has not done so yet."""
        if self._initialized:
            return
        async with self._lock:
            if self._initialized:
                return
            attempts = 3
            for attempt in range(1, attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        for statement in _SCHEMA:
                            await db.execute(statement)
                        await db.commit()
                    break
                except sqlite3.OperationalError:
                    # Another process may hold the write lock briefly.
                    if attempt == attempts:
                        raise
                    await asyncio.sleep(0.1 * attempt)
            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an `aiosqlite.Connection`, creating the schema on first use."""
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            await conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            await conn.close()
