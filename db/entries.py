import json
import time
import uuid

from db.database import Database
from db.models import UNCATEGORIZED_COLOR, UNCATEGORIZED_NAME

UPDATABLE_FIELDS = ("transcript", "summary", "category_id", "tags", "duration", "processed")


def _now() -> int:
    return int(time.time())


def _normalize_tags(tags) -> list[str]:
    if not tags:
        return []
    return [str(t).strip().lower() for t in tags if str(t).strip()]


def _row_to_entry(row: dict) -> dict:
    entry = dict(row)
    entry["tags"] = json.loads(entry.get("tags") or "[]")
    entry["processed"] = bool(entry.get("processed"))
    return entry


class EntryStore:
    def __init__(self, db: Database):
        self.db = db

    def _prepare(self, item: dict, now: int) -> tuple:
        duration = item.get("duration") or 0
        if duration < 0:
            raise ValueError("La duracion no puede ser negativa")
        summary = item.get("summary") or None
        category_id = item.get("category_id") or None
        # processed refleja si la entrada se categorizo al crearla; no se recalcula
        processed = bool(summary and category_id)
        return (
            str(uuid.uuid4()),
            item.get("recorded_at") or now,
            int(duration),
            item.get("transcript") or None,
            summary,
            category_id,
            json.dumps(_normalize_tags(item.get("tags"))),
            item.get("audio_uri") or None,
            1 if processed else 0,
            now,
            now,
        )

    _INSERT_SQL = (
        "INSERT INTO entries (id, recorded_at, duration, transcript, summary, category_id, "
        "tags, audio_uri, processed, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
    )

    def create(self, recorded_at: int | None = None, duration: int = 0,
               transcript: str | None = None, summary: str | None = None,
               category_id: str | None = None, tags: list[str] | None = None,
               audio_uri: str | None = None) -> dict:
        return self.create_many([{
            "recorded_at": recorded_at,
            "duration": duration,
            "transcript": transcript,
            "summary": summary,
            "category_id": category_id,
            "tags": tags,
            "audio_uri": audio_uri,
        }])[0]

    def create_many(self, items: list[dict]) -> list[dict]:
        """Inserta todas las entradas en una sola transaccion: o se guardan todas o ninguna."""
        now = _now()
        rows = [self._prepare(item, now) for item in items]
        with self.db.transaction() as conn:
            for row in rows:
                conn.execute(self._INSERT_SQL, row)
        return [self.get(row[0]) for row in rows]

    def get(self, entry_id: str) -> dict | None:
        row = self.db.fetchone("SELECT * FROM entries WHERE id = ?", (entry_id,))
        return _row_to_entry(row) if row else None

    def list_all(self) -> list[dict]:
        rows = self.db.fetchall("SELECT * FROM entries ORDER BY recorded_at DESC, created_at DESC")
        return [_row_to_entry(r) for r in rows]

    def list_paginated(self, limit: int = 30, offset: int = 0) -> tuple[list[dict], bool]:
        # Se pide una fila extra para saber si hay mas
        rows = self.db.fetchall(
            "SELECT * FROM entries ORDER BY recorded_at DESC, created_at DESC LIMIT ? OFFSET ?",
            (limit + 1, offset),
        )
        has_more = len(rows) > limit
        return [_row_to_entry(r) for r in rows[:limit]], has_more

    def list_between(self, start: int, end: int) -> list[dict]:
        rows = self.db.fetchall(
            "SELECT * FROM entries WHERE recorded_at >= ? AND recorded_at <= ? "
            "ORDER BY recorded_at DESC, created_at DESC",
            (start, end),
        )
        return [_row_to_entry(r) for r in rows]

    def list_by_category(self, category_id: str) -> list[dict]:
        rows = self.db.fetchall(
            "SELECT * FROM entries WHERE category_id = ? ORDER BY recorded_at DESC",
            (category_id,),
        )
        return [_row_to_entry(r) for r in rows]

    def list_unprocessed(self) -> list[dict]:
        rows = self.db.fetchall("SELECT * FROM entries WHERE processed = 0 ORDER BY recorded_at ASC")
        return [_row_to_entry(r) for r in rows]

    def update(self, entry_id: str, **fields) -> dict | None:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Campos no actualizables: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get(entry_id)

        values = {}
        for key, value in fields.items():
            if key == "tags":
                value = json.dumps(_normalize_tags(value))
            elif key == "duration":
                if value is None or value < 0:
                    raise ValueError("La duracion no puede ser negativa")
                value = int(value)
            elif key == "processed":
                value = 1 if value else 0
            values[key] = value
        values["updated_at"] = _now()

        set_clause = ", ".join(f"{k} = ?" for k in values)
        params = list(values.values()) + [entry_id]
        self.db.execute(f"UPDATE entries SET {set_clause} WHERE id = ?", tuple(params))
        return self.get(entry_id)

    def delete(self, entry_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    # -- Analitica --

    def time_by_category(self, start: int, end: int) -> list[dict]:
        return self.db.fetchall(
            """
            SELECT
                e.category_id,
                COALESCE(c.name, ?) AS category_name,
                COALESCE(c.color, ?) AS color,
                SUM(e.duration) AS total_duration
            FROM entries e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE e.recorded_at >= ? AND e.recorded_at <= ?
            GROUP BY e.category_id
            ORDER BY total_duration DESC
            """,
            (UNCATEGORIZED_NAME, UNCATEGORIZED_COLOR, start, end),
        )

    def daily_totals(self, start: int, end: int) -> list[dict]:
        return self.db.fetchall(
            """
            SELECT
                date(recorded_at, 'unixepoch', 'localtime') AS date,
                SUM(duration) AS total_duration
            FROM entries
            WHERE recorded_at >= ? AND recorded_at <= ?
            GROUP BY date
            ORDER BY date ASC
            """,
            (start, end),
        )
