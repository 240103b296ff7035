import logging
import threading
from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Query

from db.categories import CategoryStore
from db.entries import EntryStore
from db.settings import SettingsStore
from notifications.scheduler import ReminderScheduler, is_record_action
from processing.categorizer import Categorizer
from processing.orchestrator import RecordingOrchestrator, RecordingState
from server.schemas import (
    CreateCategoryRequest,
    CreateEntryRequest,
    UpdateCategoryRequest,
    UpdateEntryRequest,
    UpdateSettingsRequest,
)

logger = logging.getLogger(__name__)

PERIODS = ("today", "week", "month")


def period_window(period: str, now: datetime | None = None) -> tuple[int, int]:
    """Limites (inicio, fin) en timestamps Unix para hoy, la semana (lunes-domingo) o el mes."""
    now = now or datetime.now()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        start = day_start
        end = day_start + timedelta(days=1)
    elif period == "week":
        start = day_start - timedelta(days=day_start.weekday())
        end = start + timedelta(days=7)
    elif period == "month":
        start = day_start.replace(day=1)
        end = (start + timedelta(days=32)).replace(day=1)
    else:
        raise ValueError(f"Periodo desconocido: {period}")
    return int(start.timestamp()), int(end.timestamp()) - 1


def create_router(entries: EntryStore, categories: CategoryStore, settings: SettingsStore,
                  orchestrator: RecordingOrchestrator, categorizer: Categorizer,
                  reminders: ReminderScheduler | None = None,
                  transcriber=None) -> APIRouter:
    router = APIRouter()

    def _resolve_window(period: str | None, start: int | None, end: int | None) -> tuple[int, int]:
        if start is not None and end is not None:
            if start > end:
                raise HTTPException(400, "start must be before end")
            return start, end
        try:
            return period_window(period or "today")
        except ValueError as e:
            raise HTTPException(400, str(e))

    # -- Status --

    @router.get("/status")
    def get_status():
        return {
            **orchestrator.status(),
            "whisper_model_loaded": bool(transcriber and transcriber.is_loaded),
            "categorizer_configured": categorizer.is_configured(),
        }

    # -- Recording control --

    @router.post("/recording/start")
    def start_recording():
        if orchestrator.state not in (RecordingState.IDLE, RecordingState.ERROR):
            raise HTTPException(409, "A recording session is already in progress")

        state = orchestrator.start()
        if state == RecordingState.ERROR:
            raise HTTPException(403 if orchestrator.permission_denied else 500, orchestrator.error)
        return orchestrator.status()

    @router.post("/recording/stop")
    def stop_recording():
        if orchestrator.state != RecordingState.RECORDING:
            return {**orchestrator.status(), "stopped": False}

        # La transcripcion y categorizacion corren en segundo plano
        threading.Thread(target=orchestrator.stop, daemon=True).start()
        return {"state": RecordingState.TRANSCRIBING.value, "stopped": True}

    @router.post("/recording/cancel")
    def cancel_recording():
        cancelled = orchestrator.cancel()
        return {**orchestrator.status(), "cancelled": cancelled}

    # -- Entries --

    @router.get("/entries")
    def list_entries(limit: int = Query(30, ge=1, le=500), offset: int = Query(0, ge=0)):
        page, has_more = entries.list_paginated(limit, offset)
        return {"entries": page, "has_more": has_more}

    @router.get("/entries/range")
    def list_entries_between(start: int, end: int):
        if start > end:
            raise HTTPException(400, "start must be before end")
        return entries.list_between(start, end)

    @router.get("/entries/unprocessed")
    def list_unprocessed_entries():
        return entries.list_unprocessed()

    @router.post("/entries", status_code=201)
    def create_entry(body: CreateEntryRequest):
        if body.category_id and not categories.get(body.category_id):
            raise HTTPException(400, "Unknown category")
        return entries.create(**body.model_dump())

    @router.get("/entries/{entry_id}")
    def get_entry(entry_id: str):
        entry = entries.get(entry_id)
        if not entry:
            raise HTTPException(404, "Entry not found")
        return entry

    @router.patch("/entries/{entry_id}")
    def update_entry(entry_id: str, body: UpdateEntryRequest):
        if not entries.get(entry_id):
            raise HTTPException(404, "Entry not found")
        fields = body.model_dump(exclude_unset=True)
        if fields.get("category_id") and not categories.get(fields["category_id"]):
            raise HTTPException(400, "Unknown category")
        try:
            return entries.update(entry_id, **fields)
        except ValueError as e:
            raise HTTPException(400, str(e))

    @router.delete("/entries/{entry_id}")
    def delete_entry(entry_id: str):
        if not entries.delete(entry_id):
            raise HTTPException(404, "Entry not found")
        return {"deleted": True}

    # -- Stats --

    @router.get("/stats/categories")
    def time_by_category(period: str | None = None, start: int | None = None, end: int | None = None):
        window_start, window_end = _resolve_window(period, start, end)
        return {
            "start": window_start,
            "end": window_end,
            "categories": entries.time_by_category(window_start, window_end),
        }

    @router.get("/stats/daily")
    def daily_totals(period: str | None = None, start: int | None = None, end: int | None = None):
        window_start, window_end = _resolve_window(period or "week", start, end)
        return {
            "start": window_start,
            "end": window_end,
            "days": entries.daily_totals(window_start, window_end),
        }

    # -- Categories --

    @router.get("/categories")
    def list_categories(with_counts: bool = False):
        if with_counts:
            return categories.list_with_entry_counts()
        return categories.list_all()

    @router.post("/categories", status_code=201)
    def create_category(body: CreateCategoryRequest):
        return categories.create(body.name, color=body.color, icon=body.icon)

    @router.get("/categories/{category_id}")
    def get_category(category_id: str):
        category = categories.get(category_id)
        if not category:
            raise HTTPException(404, "Category not found")
        return category

    @router.get("/categories/{category_id}/entries")
    def list_category_entries(category_id: str):
        if not categories.get(category_id):
            raise HTTPException(404, "Category not found")
        return entries.list_by_category(category_id)

    @router.patch("/categories/{category_id}")
    def update_category(category_id: str, body: UpdateCategoryRequest):
        if not categories.get(category_id):
            raise HTTPException(404, "Category not found")
        return categories.update(category_id, **body.model_dump(exclude_unset=True))

    @router.delete("/categories/{category_id}")
    def delete_category(category_id: str):
        if not categories.delete(category_id):
            raise HTTPException(404, "Category not found")
        return {"deleted": True}

    # -- Settings --

    def _public_settings() -> dict:
        current = settings.get_all()
        current.pop("api_key", None)
        current["api_key_configured"] = bool(settings.get_api_key())
        return current

    @router.get("/settings")
    def get_settings():
        return _public_settings()

    @router.put("/settings")
    def update_settings(body: UpdateSettingsRequest):
        fields = body.model_dump(exclude_none=True)
        try:
            settings.update(**fields)
        except ValueError as e:
            raise HTTPException(400, str(e))

        notification_keys = {
            "notification_interval", "notification_enabled",
            "notification_start_hour", "notification_end_hour",
        }
        if reminders and notification_keys & set(fields):
            reminders.schedule(force=True)
        return _public_settings()

    @router.post("/settings/test-connection")
    def test_connection():
        return {"success": categorizer.test_connection()}

    # -- Notifications --

    @router.get("/notifications")
    def list_notifications():
        if not reminders:
            return []
        return reminders.list_scheduled()

    @router.post("/notifications/schedule")
    def schedule_notifications(force: bool = False):
        if not reminders:
            raise HTTPException(503, "Reminder scheduler not available")
        return reminders.schedule(force=force)

    @router.delete("/notifications")
    def cancel_notifications():
        if reminders:
            reminders.cancel_all()
        return {"cancelled": True}

    @router.post("/notifications/respond")
    def respond_to_notification(payload: dict):
        # Tocar un recordatorio abre directamente una grabacion nueva
        if not is_record_action(payload):
            return {**orchestrator.status(), "started": False}
        return start_recording() | {"started": True}

    @router.post("/notifications/test")
    def test_notification():
        if not reminders:
            raise HTTPException(503, "Reminder scheduler not available")
        reminders.send_test()
        return {"sent": True}

    return router
