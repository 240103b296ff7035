from db.database import Database
from db.models import DEFAULT_SETTINGS

INT_KEYS = (
    "notification_interval",
    "notification_start_hour",
    "notification_end_hour",
    "max_recording_duration",
)


def _to_bool(value: str | None) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _to_int(value: str | None, default: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


class SettingsStore:
    def __init__(self, db: Database, env_api_key: str = ""):
        self.db = db
        self.env_api_key = env_api_key

    def get(self, key: str, default: str | None = None) -> str | None:
        row = self.db.fetchone("SELECT value FROM settings WHERE key = ?", (key,))
        if row is None:
            return default if default is not None else DEFAULT_SETTINGS.get(key)
        return row["value"]

    def set(self, key: str, value) -> None:
        self.db.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, str(value)),
        )

    def get_all(self) -> dict:
        rows = self.db.fetchall("SELECT key, value FROM settings")
        values = {r["key"]: r["value"] for r in rows}

        def raw(key: str) -> str | None:
            return values.get(key, DEFAULT_SETTINGS.get(key))

        result = {key: _to_int(raw(key), DEFAULT_SETTINGS[key]) for key in INT_KEYS}
        result["notification_enabled"] = _to_bool(raw("notification_enabled"))
        result["api_key"] = raw("api_key") or ""
        last = values.get("last_check_in_time")
        result["last_check_in_time"] = int(last) if last else None
        return result

    def update(self, **fields) -> dict:
        current = self.get_all()
        unknown = set(fields) - set(current)
        if unknown:
            raise ValueError(f"Configuracion desconocida: {', '.join(sorted(unknown))}")

        merged = {**current, **{k: v for k, v in fields.items() if v is not None}}
        if merged["notification_interval"] < 1:
            raise ValueError("El intervalo de notificacion debe ser de al menos 1 minuto")
        for key in ("notification_start_hour", "notification_end_hour"):
            if not 0 <= merged[key] <= 23:
                raise ValueError(f"{key} debe estar entre 0 y 23")
        if merged["notification_start_hour"] >= merged["notification_end_hour"]:
            raise ValueError("La hora de inicio debe ser anterior a la hora de fin")
        if merged["max_recording_duration"] < 1:
            raise ValueError("La duracion maxima de grabacion debe ser de al menos 1 segundo")

        for key, value in fields.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            self.set(key, value)
        return self.get_all()

    def set_last_check_in(self, timestamp: int) -> None:
        self.set("last_check_in_time", int(timestamp))

    def get_api_key(self) -> str:
        # La variable de entorno tiene prioridad sobre la guardada en la base
        if self.env_api_key:
            return self.env_api_key
        return self.get("api_key") or ""
