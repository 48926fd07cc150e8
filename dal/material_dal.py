"""Async read-only Data Access Layer for the FOLDER and MATERIAL tables.

Rows are written by the materials upload service; the relay only reads them.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from models.material_record import FolderRecord, MaterialRecord
from utils.database_init import AsyncDatabaseInitializer


class MaterialDAL:
    """Data access layer for study folders and materials.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _FOLDER_COLUMNS = ("id", "user_id", "name", "parent_id", "created_at")
    _MATERIAL_COLUMNS = ("id", "user_id", "folder_id", "name", "kind", "content", "created_at")

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get_folder(self, folder_id: int, user_id: Optional[str] = None) -> Optional[FolderRecord]:
        """Return FolderRecord for `folder_id`, or None if not found or owned by someone else."""
        sql = f"SELECT {', '.join(self._FOLDER_COLUMNS)} FROM FOLDER WHERE id = ?"
        params: List[object] = [folder_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            row = await cur.fetchone()
            return self._row_to_folder(row) if row else None

    async def get_file(self, material_id: int, user_id: Optional[str] = None) -> Optional[MaterialRecord]:
        """Return MaterialRecord for `material_id`, or None if not found or owned by someone else."""
        sql = f"SELECT {', '.join(self._MATERIAL_COLUMNS)} FROM MATERIAL WHERE id = ?"
        params: List[object] = [material_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            row = await cur.fetchone()
            return self._row_to_material(row) if row else None

    async def list_folder_files(
        self,
        folder_id: int,
        user_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MaterialRecord]:
        """List the materials of one folder, newest first."""
        sql = f"SELECT {', '.join(self._MATERIAL_COLUMNS)} FROM MATERIAL WHERE folder_id = ?"
        params: List[object] = [folder_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        sql += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            rows = await cur.fetchall()
            return [self._row_to_material(r) for r in rows]

    @staticmethod
    def _row_to_folder(row: Sequence[object]) -> FolderRecord:
        return FolderRecord(id=row[0], user_id=row[1], name=row[2], parent_id=row[3], created_at=row[4])

    @staticmethod
    def _row_to_material(row: Sequence[object]) -> MaterialRecord:
        """Convert a DB row tuple into a MaterialRecord."""
        return MaterialRecord(
            id=row[0],
            user_id=row[1],
            folder_id=row[2],
            name=row[3],
            kind=row[4],
            content=row[5],
            created_at=row[6],
        )
