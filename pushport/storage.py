from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional


class PayloadStore:
    """SQLite-backed storage for raw push-port bodies, keyed by their `ts` attribute."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS payloads (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts TEXT NOT NULL,
                destination TEXT,
                message_id TEXT,
                body BLOB NOT NULL,
                received_at INTEGER NOT NULL
            )
            """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_payloads_ts ON payloads(ts)")
        self.conn.commit()

    def save(
        self,
        ts: str,
        body: bytes,
        destination: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> int:
        cursor = self.conn.execute(
            "INSERT INTO payloads (ts, destination, message_id, body, received_at) VALUES (?, ?, ?, ?, ?)",
            (ts, destination, message_id, sqlite3.Binary(body), int(time.time())),
        )
        self.conn.commit()
        return int(cursor.lastrowid)

    def count(self) -> int:
        return int(self.conn.execute("SELECT COUNT(*) FROM payloads").fetchone()[0])

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        rows = self.conn.execute("SELECT * FROM payloads ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [self._row_to_record(row) for row in rows]

    def by_timestamp(self, ts: str) -> List[Dict[str, Any]]:
        rows = self.conn.execute("SELECT * FROM payloads WHERE ts = ? ORDER BY id ASC", (ts,)).fetchall()
        return [self._row_to_record(row) for row in rows]

    def close(self) -> None:
        self.conn.close()

    def _row_to_record(self, row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "ts": row["ts"],
            "destination": row["destination"],
            "message_id": row["message_id"],
            "body": bytes(row["body"]),
            "received_at": row["received_at"],
        }


__all__ = ["PayloadStore"]
