"""Async Data Access Layer for IMAGE table.

Provides ImageDAL class with async CRUD operations compatible with
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from models.image_record import BackendTag, ImageRecord
from utils.database_init import AsyncDatabaseInitializer


class ImageDAL:
    """Data access layer for IMAGE records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "storage_key",
        "backend",
        "relay_message_id",
        "filename",
        "description",
        "upload_time",
    )
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_image(self, record: ImageRecord) -> int:
        """Insert a new IMAGE row and return the new id.

        Args:
            record: ImageRecord with `id=None` and fields to insert.

        Returns:
            The integer primary key of the created row.
        """
        upload_time = record.upload_time or int(time.time())

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO IMAGE ({self._INSERT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.storage_key,
                    record.backend.value,
                    record.relay_message_id,
                    record.filename,
                    record.description,
                    upload_time,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_image_by_id(self, image_id: int) -> Optional[ImageRecord]:
        """Return ImageRecord for `image_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM IMAGE WHERE id = ?",
                (image_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def get_image_by_storage_key(self, storage_key: str) -> Optional[ImageRecord]:
        """Return the newest ImageRecord stored under `storage_key`, or None."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM IMAGE WHERE storage_key = ? ORDER BY id DESC LIMIT 1",
                (storage_key,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_images(self, limit: Optional[int] = None, offset: int = 0) -> List[ImageRecord]:
        """List IMAGE rows, newest upload first.

        Args:
            limit: Maximum number of rows to return (all rows when None).
            offset: Rows to skip.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM IMAGE ORDER BY upload_time DESC, id DESC LIMIT ? OFFSET ?",
                (-1 if limit is None else limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def update_image(
        self,
        storage_key: str,
        *,
        filename: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        """Update display fields of the rows stored under `storage_key`. Returns True if a row changed."""
        updates = {"filename": filename, "description": description}
        fields = [f"{col} = ?" for col, val in updates.items() if val is not None]

        if not fields:
            return False

        params = [val for val in updates.values() if val is not None]
        params.append(storage_key)
        sql = f"UPDATE IMAGE SET {', '.join(fields)} WHERE storage_key = ?"

        async with self._db.connection() as conn:
            await conn.execute(sql, tuple(params))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    async def delete_image(self, image_id: int) -> bool:
        """Delete IMAGE row by id. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM IMAGE WHERE id = ?", (image_id,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ImageRecord:
        """Convert a DB row tuple into an ImageRecord."""
        return ImageRecord(
            id=row[0],
            storage_key=row[1],
            backend=BackendTag(row[2]),
            relay_message_id=row[3],
            filename=row[4],
            description=row[5],
            upload_time=row[6],
        )
