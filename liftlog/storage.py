"""SQLite storage layer for users, imports, and canonical sets. Single writer."""

from __future__ import annotations

import json
import sqlite3
import uuid
from pathlib import Path
from typing import Iterable, Optional

from .models import CanonicalSet, ParseMeta


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class Storage:
    """SQLite-backed store for imported workout sets."""

    def __init__(self, db_path: str | Path = "liftlog.db"):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = _dict_factory
            self._ensure_schema()
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        conn = self.connect()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                weight_unit TEXT NOT NULL DEFAULT 'kg',
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS imports (
                import_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                source TEXT NOT NULL,
                meta_json TEXT NOT NULL,
                set_count INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            );
            CREATE TABLE IF NOT EXISTS sets (
                import_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                exercise_title TEXT NOT NULL,
                parsed_date TEXT,
                set_json TEXT NOT NULL,
                PRIMARY KEY (import_id, position),
                FOREIGN KEY (import_id) REFERENCES imports(import_id)
            );
            CREATE INDEX IF NOT EXISTS idx_sets_user_exercise ON sets(user_id, exercise_title);
            CREATE INDEX IF NOT EXISTS idx_imports_user_id ON imports(user_id);
        """)
        conn.commit()

    def ensure_user(self, user_id: Optional[str] = None, weight_unit: str = "kg") -> str:
        """Ensure user exists; return user_id (generated if not provided)."""
        conn = self.connect()
        user_id = user_id or generate_id("user")
        conn.execute(
            """
            INSERT INTO users (user_id, weight_unit)
            VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET weight_unit = excluded.weight_unit
            """,
            (user_id, weight_unit),
        )
        conn.commit()
        return user_id

    def store_import(
        self,
        user_id: str,
        sets: Iterable[CanonicalSet],
        meta: Optional[ParseMeta] = None,
        source: str = "csv",
    ) -> str:
        """Persist one import and its sets in a single transaction; return import_id."""
        conn = self.connect()
        import_id = generate_id("imp")
        rows = [
            (
                import_id,
                position,
                user_id,
                s.exercise_title,
                s.parsed_date.isoformat() if s.parsed_date else None,
                s.model_dump_json(),
            )
            for position, s in enumerate(sets)
        ]
        meta_json = meta.model_dump_json() if meta else "{}"
        with conn:
            conn.execute(
                "INSERT INTO imports (import_id, user_id, source, meta_json, set_count) VALUES (?, ?, ?, ?, ?)",
                (import_id, user_id, source, meta_json, len(rows)),
            )
            conn.executemany(
                """
                INSERT INTO sets (import_id, position, user_id, exercise_title, parsed_date, set_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return import_id

    def get_import(self, import_id: str) -> Optional[dict]:
        """Return dict with import_id, user_id, source, meta (parsed), set_count, created_at."""
        conn = self.connect()
        row = conn.execute(
            "SELECT import_id, user_id, source, meta_json, set_count, created_at FROM imports WHERE import_id = ?",
            (import_id,),
        ).fetchone()
        if not row:
            return None
        row["meta"] = json.loads(row.pop("meta_json"))
        return row

    def get_sets_for_user(self, user_id: str, exercise_title: Optional[str] = None) -> list[CanonicalSet]:
        """Stored sets for a user (optionally one exercise), in import order."""
        conn = self.connect()
        query = """
            SELECT s.set_json FROM sets s
            JOIN imports i ON i.import_id = s.import_id
            WHERE s.user_id = ?
        """
        params: list = [user_id]
        if exercise_title:
            query += " AND s.exercise_title = ?"
            params.append(exercise_title)
        query += " ORDER BY i.created_at, i.rowid, s.position"
        return [CanonicalSet.model_validate_json(r["set_json"]) for r in conn.execute(query, params).fetchall()]

    def list_exercises(self, user_id: str) -> list[dict]:
        """Exercise titles the user has logged, with set counts and the latest date, by name."""
        conn = self.connect()
        return conn.execute(
            """
            SELECT exercise_title, COUNT(*) AS set_count, MAX(parsed_date) AS last_date
            FROM sets WHERE user_id = ?
            GROUP BY exercise_title
            ORDER BY exercise_title
            """,
            (user_id,),
        ).fetchall()
