import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional

import aiosqlite

# Settings rows created on first start. Values come from the upper-cased
# environment variable of the same name; rows that already exist are kept.
DEFAULT_SETTINGS: Dict[str, str] = {
    "storage_backend": "object_store",
    "tg_bot_token": "",
    "tg_chat_id": "",
    "public_base_url": "",
}


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite metadata store using the DATABASE_DIR environment variable.

    - The database file is located at: <DATABASE_DIR>/app.db
    - DATABASE_DIR is required. A RuntimeError is raised if it is missing
      or invalid (not a directory and cannot be created).
    - On the first call to `ensure_database()` for a given instance:
        * The existing database file is deleted only when `reset` is true
          (or RESET_DATABASE=true in the environment).
        * The IMAGE and SETTINGS tables are created if missing.
        * Missing SETTINGS rows are seeded from the environment.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, reset: Optional[bool] = None) -> None:
        env_dir = os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        db_dir = Path(env_dir).expanduser()

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({db_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "app.db"

        if reset is None:
            reset = os.getenv("RESET_DATABASE", "false").lower() == "true"
        self.reset = reset

        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database exists at `self.db_path` with its schema.

        On first call this will:
            - Delete any existing database file when `self.reset` is set.
            - Create the IMAGE and SETTINGS tables if they are missing.
            - Seed SETTINGS with any keys not yet present.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        if self.reset and self.db_path.exists():
            try:
                self.db_path.unlink()
            except Exception as exc:
                raise RuntimeError(
                    f"Failed to delete existing database at {self.db_path}"
                ) from exc

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS IMAGE (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            storage_key TEXT NOT NULL,
                            backend TEXT NOT NULL,
                            relay_message_id INTEGER,
                            filename TEXT NOT NULL,
                            description TEXT,
                            upload_time INTEGER NOT NULL,
                            UNIQUE (backend, storage_key)
                        )
                        """
                    )
                    await db.execute(
                        "CREATE INDEX IF NOT EXISTS idx_image_storage_key ON IMAGE(storage_key)"
                    )
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS SETTINGS (
                            key TEXT PRIMARY KEY,
                            value TEXT
                        )
                        """
                    )
                    await db.executemany(
                        "INSERT OR IGNORE INTO SETTINGS (key, value) VALUES (?, ?)",
                        [
                            (key, os.getenv(key.upper(), default))
                            for key, default in DEFAULT_SETTINGS.items()
                        ],
                    )
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
