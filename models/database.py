"""SQLite persistence for store categories and the collection log."""
import json
import sqlite3
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("fxbias.db")


class Database:
    def __init__(self, db_path="data/fxbias.db"):
        self.db_path = db_path
        self.conn = None
        self._lock = threading.Lock()

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS stored_data (
                category TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS collection_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                success INTEGER NOT NULL,
                record_count INTEGER DEFAULT 0,
                elapsed_ms INTEGER DEFAULT 0,
                errors TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_collection_source
                ON collection_log(source, timestamp);
        """)
        self.conn.commit()

    # --- Category snapshots ---

    def save_category(self, category, records):
        """Replace the stored list for a category. `records` must be JSON-serializable."""
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self.conn.execute("""
                INSERT OR REPLACE INTO stored_data (category, payload, updated_at)
                VALUES (?, ?, ?)
            """, (category, json.dumps(records), now))
            self.conn.commit()
        logger.debug(f"Persisted {len(records)} {category} records")

    def load_category(self, category):
        with self._lock:
            row = self.conn.execute(
                "SELECT payload FROM stored_data WHERE category = ?", (category,)
            ).fetchone()
        if not row:
            return []
        return json.loads(row["payload"])

    def list_categories(self):
        with self._lock:
            rows = self.conn.execute(
                "SELECT category, updated_at FROM stored_data ORDER BY category"
            ).fetchall()
        return [dict(r) for r in rows]

    def clear_categories(self):
        with self._lock:
            self.conn.execute("DELETE FROM stored_data")
            self.conn.commit()

    # --- Collection log ---

    def log_collection(self, result):
        with self._lock:
            self.conn.execute("""
                INSERT INTO collection_log (source, timestamp, success, record_count, elapsed_ms, errors)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                result.source,
                result.timestamp.isoformat(),
                int(result.record_count > 0 or not result.errors),
                result.record_count,
                result.elapsed_ms,
                json.dumps(result.errors),
            ))
            self.conn.commit()

    def get_collection_log(self, source=None, limit=50):
        query = "SELECT * FROM collection_log WHERE 1=1"
        params = []
        if source:
            query += " AND source = ?"
            params.append(source)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        out = []
        for r in rows:
            d = dict(r)
            d["success"] = bool(d["success"])
            d["errors"] = json.loads(d["errors"] or "[]")
            out.append(d)
        return out
