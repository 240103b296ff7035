import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from db.models import DEFAULT_CATEGORIES, SCHEMA_SQL

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


class Database:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Una conexion por hilo y por instancia
        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), timeout=30, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
        return conn

    def _init_schema(self):
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()
        self._seed_categories()

    def _seed_categories(self):
        row = self.fetchone("SELECT COUNT(*) AS count FROM categories")
        if row and row["count"] > 0:
            return
        with self.transaction() as conn:
            for category in DEFAULT_CATEGORIES:
                conn.execute(
                    "INSERT INTO categories (id, name, color, icon) VALUES (?, ?, ?, ?)",
                    (category["id"], category["name"], category["color"], category["icon"]),
                )
        logger.info("Categorias por defecto creadas (%d)", len(DEFAULT_CATEGORIES))

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        cursor = self._get_conn().execute(sql, params)
        row = cursor.fetchone()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        cursor = self._get_conn().execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    @contextmanager
    def transaction(self):
        """Ejecuta varias sentencias como un solo lote atomico.
        Si alguna falla se revierte todo y se lanza StorageError.
        """
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            conn.rollback()
            raise

    def release(self):
        """Cierra la conexion del hilo actual; se reabre en el siguiente uso."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            return
        self._local.conn = None
        try:
            conn.close()
        except sqlite3.Error as e:
            logger.warning("Error cerrando conexion: %s", e)
