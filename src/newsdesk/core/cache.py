"""SQLite-backed response cache for the network providers."""

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

from newsdesk.core.logger import logger


class SQLiteCache:
    """Key-value store of JSON payloads with an optional freshness window.

    Related-article feeds go stale within hours, so entries older than
    ``max_age_hours`` are treated as misses.
    """

    def __init__(self, db_path: str = "output/.cache.db", max_age_hours: Optional[float] = None) -> None:
        """
        Args:
            db_path (str): Path to the SQLite database file.
            max_age_hours (Optional[float]): Entries older than this are ignored; ``None`` keeps them forever.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_age_hours = max_age_hours
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, check_same_thread=False)

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS provider_cache (
                    cache_key TEXT PRIMARY KEY,
                    payload TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def get(self, key: str) -> Optional[Any]:
        """
        Return the decoded payload stored under ``key``, or None on a miss.

        Args:
            key (str): The cache key.

        Returns:
            Optional[Any]: The JSON-decoded payload, if present and fresh.
        """
        query = "SELECT payload FROM provider_cache WHERE cache_key = ?"
        params: tuple = (key,)
        if self.max_age_hours is not None:
            query += " AND created_at >= datetime('now', ?)"
            params = (key, f"-{self.max_age_hours} hours")

        try:
            with self._connect() as conn:
                row = conn.execute(query, params).fetchone()
            if row:
                logger.debug(f"Cache hit: {key}")
                return json.loads(row[0])
        except sqlite3.Error as e:
            logger.error(f"SQLite error reading {key}: {e}")
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt cache payload for {key}: {e}")

        logger.debug(f"Cache miss: {key}")
        return None

    def set(self, key: str, value: Any) -> None:
        """
        Store ``value`` as JSON under ``key``, refreshing its timestamp.

        Args:
            key (str): The cache key.
            value (Any): A JSON-serializable payload.
        """
        try:
            payload = json.dumps(value)
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO provider_cache (cache_key, payload, created_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    """,
                    (key, payload),
                )
        except (sqlite3.Error, TypeError) as e:
            logger.error(f"Failed to cache {key}: {e}")
