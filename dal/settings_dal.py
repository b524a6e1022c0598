"""Async Data Access Layer for the SETTINGS key/value table."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from utils.database_init import AsyncDatabaseInitializer


class SettingsDAL:
    """Read and update gateway settings rows."""

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get_settings(self) -> Dict[str, Optional[str]]:
        """Return all settings as a `{key: value}` dict."""
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT key, value FROM SETTINGS")
            rows = await cur.fetchall()
            return {row[0]: row[1] for row in rows}

    async def set_settings(self, updates: Mapping[str, Optional[str]]) -> int:
        """Update existing settings keys and return how many rows changed.

        Keys that are not already present in the table are ignored.
        """
        if not updates:
            return 0
        params = [(None if value is None else str(value), key) for key, value in updates.items()]
        async with self._db.connection() as conn:
            await conn.executemany("UPDATE SETTINGS SET value = ? WHERE key = ?", params)
            await conn.commit()
            cur = await conn.execute("SELECT total_changes()")
            changed = await cur.fetchone()
            return int(changed[0]) if changed and changed[0] is not None else 0
