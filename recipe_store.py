"""
Recipe Store - SQLite access for the image enrichment job
=========================================================

Thin wrapper around the ``recipes`` table. The job only needs four queries:

- recipes still missing an image (paged, ordered by id)
- how many recipes are still missing an image
- write one recipe's image column
- aggregate image statistics for the final report

Table layout (created by the CSV loader, not by this module):
    recipes(id INTEGER PRIMARY KEY, "RecipeName" TEXT, "URL" TEXT,
            "ImageURL" TEXT, ...)

Each write commits on its own; no transaction spans more than one recipe.
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from tools.logging_utils import get_logger

logger = get_logger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class RecipeStoreError(Exception):
    """
    Base exception for recipe store errors.

    Attributes:
        message: Human-readable error description
        operation: The operation that failed (e.g., "select_missing_image")
        details: Additional context (e.g., recipe id, database path)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context."""
        parts = [self.message]
        if self.operation:
            parts.insert(0, f"[{self.operation}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class RecipeStoreWriteError(RecipeStoreError):
    """Raised when an image update could not be written."""
    pass


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ImageStats:
    """Image coverage across the whole recipes table."""
    total: int
    with_image: int
    without_image: int


# =============================================================================
# STORE
# =============================================================================

class RecipeStore:
    """
    SQLite-backed recipe store.

    Opens one connection for the lifetime of the store. Use as a context
    manager or call close() when done.
    """

    TABLE = "recipes"

    def __init__(self, db_path: str, timeout: float = 30.0):
        """
        Args:
            db_path: Path to the SQLite database file
            timeout: Seconds to wait on a locked database

        Raises:
            RecipeStoreError: If the database file does not exist or cannot be opened
        """
        self.db_path = str(db_path)

        if self.db_path != ":memory:" and not Path(self.db_path).exists():
            raise RecipeStoreError(
                f"Recipe database not found at {self.db_path}",
                operation="init",
                details={'db_path': self.db_path},
            )

        try:
            self._conn = sqlite3.connect(self.db_path, timeout=timeout)
        except sqlite3.Error as e:
            raise RecipeStoreError(
                f"Cannot connect to recipe database: {e}",
                operation="init",
                details={'db_path': self.db_path},
            ) from e
        self._conn.row_factory = sqlite3.Row

        logger.debug(f"RecipeStore initialized: db_path={self.db_path}")

    def __enter__(self) -> "RecipeStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def _query(self, operation: str):
        """Translate sqlite3 errors into RecipeStoreError."""
        if self._conn is None:
            raise RecipeStoreError("Store is closed", operation=operation)
        try:
            yield self._conn
        except sqlite3.Error as e:
            raise RecipeStoreError(
                f"Query failed: {e}",
                operation=operation,
                details={'db_path': self.db_path},
            ) from e

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def check_connection(self) -> bool:
        """
        Verify the recipes table is reachable.

        Raises:
            RecipeStoreError: If the table is missing or the query fails
        """
        with self._query("check_connection") as conn:
            conn.execute(f'SELECT 1 FROM {self.TABLE} LIMIT 1').fetchall()
        return True

    def ensure_image_column(self) -> bool:
        """
        Add the "ImageURL" column if the loader did not create it.

        Returns:
            True if the column was added, False if it already existed
        """
        with self._query("ensure_image_column") as conn:
            columns = [row["name"] for row in conn.execute(f'PRAGMA table_info({self.TABLE})')]
            if not columns:
                raise sqlite3.OperationalError(f"no such table: {self.TABLE}")
            if "ImageURL" in columns:
                return False
            with conn:
                conn.execute(f'ALTER TABLE {self.TABLE} ADD COLUMN "ImageURL" TEXT')
        logger.info('🔧 Added "ImageURL" column to recipes table')
        return True

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def select_missing_image(self, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        """
        Get recipes without an image, ordered by id.

        Returns:
            List of {id, name, url} dicts
        """
        with self._query("select_missing_image") as conn:
            rows = conn.execute(
                f'''SELECT id, "RecipeName" AS name, "URL" AS url
                    FROM {self.TABLE}
                    WHERE "ImageURL" IS NULL
                    ORDER BY id
                    LIMIT ? OFFSET ?''',
                (limit, offset)
            ).fetchall()
        return [dict(row) for row in rows]

    def count_missing_image(self) -> int:
        """Count recipes that still have no image."""
        with self._query("count_missing_image") as conn:
            row = conn.execute(
                f'SELECT COUNT(*) FROM {self.TABLE} WHERE "ImageURL" IS NULL'
            ).fetchone()
        return int(row[0])

    def aggregate_image_stats(self) -> ImageStats:
        """Total recipes, recipes with an image, recipes without one."""
        with self._query("aggregate_image_stats") as conn:
            row = conn.execute(
                f'''SELECT COUNT(*) AS total,
                           COUNT("ImageURL") AS with_image,
                           COUNT(*) - COUNT("ImageURL") AS without_image
                    FROM {self.TABLE}'''
            ).fetchone()
        return ImageStats(
            total=int(row["total"]),
            with_image=int(row["with_image"]),
            without_image=int(row["without_image"]),
        )

    def get_image(self, recipe_id: Any) -> Optional[str]:
        """Current image value for one recipe (None if unset or unknown)."""
        with self._query("get_image") as conn:
            row = conn.execute(
                f'SELECT "ImageURL" FROM {self.TABLE} WHERE id = ?', (recipe_id,)
            ).fetchone()
        return row["ImageURL"] if row else None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def update_image(self, recipe_id: Any, value: str) -> bool:
        """
        Write one recipe's image value in its own transaction.

        Writing the same value again leaves the row unchanged.

        Returns:
            True if a row matched the id, False otherwise

        Raises:
            RecipeStoreWriteError: If the update fails
        """
        if self._conn is None:
            raise RecipeStoreWriteError("Store is closed", operation="update_image")
        try:
            with self._conn:
                cursor = self._conn.execute(
                    f'UPDATE {self.TABLE} SET "ImageURL" = ? WHERE id = ?',
                    (value, recipe_id)
                )
        except sqlite3.Error as e:
            raise RecipeStoreWriteError(
                f"Image update failed: {e}",
                operation="update_image",
                details={'recipe_id': recipe_id},
            ) from e

        if cursor.rowcount == 0:
            logger.warning(f"⚠️ update_image matched no recipe with id={recipe_id}")
            return False
        return True
