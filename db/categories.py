import time
import uuid

from db.database import Database
from db.models import DEFAULT_CATEGORY_COLOR, DEFAULT_CATEGORY_ICON


class CategoryStore:
    def __init__(self, db: Database):
        self.db = db

    def create(self, name: str, color: str | None = None, icon: str | None = None) -> dict:
        if not name or not name.strip():
            raise ValueError("El nombre de la categoria es obligatorio")
        category_id = str(uuid.uuid4())
        now = int(time.time())
        self.db.execute(
            "INSERT INTO categories (id, name, color, icon, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (category_id, name.strip(), color or DEFAULT_CATEGORY_COLOR,
             icon or DEFAULT_CATEGORY_ICON, now, now),
        )
        return self.get(category_id)

    def get(self, category_id: str) -> dict | None:
        return self.db.fetchone("SELECT * FROM categories WHERE id = ?", (category_id,))

    def list_all(self) -> list[dict]:
        return self.db.fetchall("SELECT * FROM categories ORDER BY name ASC")

    def list_with_entry_counts(self) -> list[dict]:
        return self.db.fetchall(
            """
            SELECT c.*, COUNT(e.id) AS entry_count
            FROM categories c
            LEFT JOIN entries e ON c.id = e.category_id
            GROUP BY c.id
            ORDER BY c.name ASC
            """
        )

    def update(self, category_id: str, name: str | None = None,
               color: str | None = None, icon: str | None = None) -> dict | None:
        fields = {}
        if name is not None:
            if not name.strip():
                raise ValueError("El nombre de la categoria es obligatorio")
            fields["name"] = name.strip()
        if color is not None:
            fields["color"] = color
        if icon is not None:
            fields["icon"] = icon
        if not fields:
            return self.get(category_id)

        fields["updated_at"] = int(time.time())
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        values = list(fields.values()) + [category_id]
        self.db.execute(f"UPDATE categories SET {set_clause} WHERE id = ?", tuple(values))
        return self.get(category_id)

    def delete(self, category_id: str) -> bool:
        # Las entradas nunca se borran con la categoria: solo pierden la referencia
        with self.db.transaction() as conn:
            conn.execute("UPDATE entries SET category_id = NULL WHERE category_id = ?", (category_id,))
            cursor = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        return cursor.rowcount > 0
