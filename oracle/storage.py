"""
Storage module for persisting market records.

This module provides a repository interface over SQLite for the market
collection the oracle scheduler reads and writes. Each record is stored as a
JSON document with a version counter used for optimistic concurrency.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Sequence

from oracle.config import Config
from oracle.errors import StaleMarketError
from oracle.models import Market

# Configure module logger
logger = logging.getLogger(__name__)


class MarketStore(Protocol):
    """Read/write access to the full market collection."""

    def read_markets(self) -> list[Market]:
        ...

    def write_markets(self, markets: Sequence[Market]) -> list[Market]:
        ...


class Storage:
    """
    SQLite repository for market records.

    Provides methods for reading and writing the market collection and
    single markets. Handles table creation automatically.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file. If None, uses Config.DB_PATH
        """
        self.db_path = Path(db_path) if db_path else Config.DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    @contextmanager
    def _get_connection(self):
        """
        Context manager for database connections.

        Commits on success and rolls back the whole transaction on error.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row  # Enable column access by name
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        """Create database tables if they don't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS markets (
                    id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_markets_created_at
                ON markets(created_at)
            """)

        logger.info(f"Database initialized at {self.db_path}")

    # Collection operations

    def read_markets(self) -> list[Market]:
        """
        Read every stored market, oldest first.

        Rows that cannot be decoded are logged and skipped.

        Returns:
            List of Market objects
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM markets ORDER BY created_at, id")
            rows = cursor.fetchall()

        markets: list[Market] = []
        for row in rows:
            market = self._row_to_market(row)
            if market:
                markets.append(market)

        return markets

    def write_markets(self, markets: Sequence[Market]) -> list[Market]:
        """
        Write the market collection in a single transaction.

        Every market must carry the version it was read with. If any stored
        row has moved on since, nothing is written.

        Args:
            markets: Markets to write

        Returns:
            The markets with their new versions

        Raises:
            StaleMarketError: If a market was changed by another writer
        """
        now = _utc_now()
        written: list[Market] = []

        with self._get_connection() as conn:
            cursor = conn.cursor()
            for market in markets:
                written.append(self._upsert(cursor, market, now))

        logger.debug(f"Wrote {len(written)} markets")
        return written

    # Single market operations

    def save_market(self, market: Market) -> bool:
        """
        Insert or update one market.

        Args:
            market: Market object to save

        Returns:
            True if successful, False otherwise
        """
        try:
            with self._get_connection() as conn:
                self._upsert(conn.cursor(), market, _utc_now())

            logger.debug(f"Saved market: {market.id}")
            return True

        except StaleMarketError as e:
            logger.warning(f"Market {market.id} not saved: {e}")
            return False

        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Error saving market {market.id}: {e}", exc_info=True)
            return False

    def get_market(self, market_id: str) -> Optional[Market]:
        """
        Retrieve a market by ID.

        Args:
            market_id: Market identifier

        Returns:
            Market object if found, None otherwise
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM markets WHERE id = ?", (market_id,))
            row = cursor.fetchone()

        if not row:
            return None

        return self._row_to_market(row)

    def _upsert(self, cursor: sqlite3.Cursor, market: Market, now: str) -> Market:
        """Insert a new row or update an existing one whose version matches."""
        cursor.execute("SELECT version FROM markets WHERE id = ?", (market.id,))
        row = cursor.fetchone()

        if row is not None and row["version"] != market.version:
            raise StaleMarketError(market.id, market.version, row["version"])

        next_version = market.version + 1
        payload = dict(market.to_dict())
        payload["version"] = next_version

        if row is None:
            cursor.execute("""
                INSERT INTO markets (id, payload, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (market.id, json.dumps(payload), next_version, now, now))
        else:
            cursor.execute("""
                UPDATE markets
                SET payload = ?, version = ?, updated_at = ?
                WHERE id = ? AND version = ?
            """, (json.dumps(payload), next_version, now, market.id, market.version))

        return Market.from_dict(payload)

    def _row_to_market(self, row: sqlite3.Row) -> Optional[Market]:
        """Convert database row to Market object."""
        try:
            data = json.loads(row["payload"])
            data["version"] = row["version"]
            return Market.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Error decoding market {row['id']}: {e}", exc_info=True)
            return None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
