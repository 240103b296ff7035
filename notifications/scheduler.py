import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_PREFIX = "checkin-reminder"
RECORD_ACTION = "record"
TEST_ACTION = "test"

REMINDER_TITLE = "Time Check!"
REMINDER_BODY = "What have you been working on? Tap to record."


def reminder_times(interval_minutes: int, start_hour: int, end_hour: int) -> list[tuple[int, int]]:
    """Horas (h, m) de los recordatorios dentro de la ventana activa.
    El primero llega un intervalo despues de start_hour y el ultimo no pasa de end_hour:00.
    """
    if interval_minutes < 1:
        raise ValueError("interval_minutes debe ser >= 1")
    start = start_hour * 60
    end = end_hour * 60
    times = []
    current = start + interval_minutes
    while current <= end:
        times.append((current // 60, current % 60))
        current += interval_minutes
    if not times and end > start:
        times.append((end_hour, 0))
    return times


def reminder_payload(interval_minutes: int) -> dict:
    return {
        "title": REMINDER_TITLE,
        "body": REMINDER_BODY,
        "data": {"action": RECORD_ACTION, "interval_minutes": interval_minutes},
    }


def is_record_action(payload: dict | None) -> bool:
    if not payload:
        return False
    return (payload.get("data") or {}).get("action") == RECORD_ACTION


def _job_id(hour: int, minute: int) -> str:
    return f"{JOB_PREFIX}-{hour:02d}{minute:02d}"


class ReminderScheduler:
    def __init__(self, settings, notify, scheduler: BackgroundScheduler | None = None):
        self.settings = settings
        self.notify = notify
        self._scheduler = scheduler or BackgroundScheduler()

    def start(self, paused: bool = False):
        if not self._scheduler.running:
            self._scheduler.start(paused=paused)

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def _reminder_jobs(self):
        return [j for j in self._scheduler.get_jobs() if j.id.startswith(JOB_PREFIX)]

    def schedule(self, force: bool = False) -> list[dict]:
        current = self.settings.get_all()
        if not current["notification_enabled"]:
            self.cancel_all()
            return []

        interval = current["notification_interval"]
        times = reminder_times(interval, current["notification_start_hour"], current["notification_end_hour"])
        expected = {_job_id(h, m) for h, m in times}

        existing = self._reminder_jobs()
        if not force and existing and {j.id for j in existing} == expected:
            # Mismo horario: se conservan los jobs existentes
            logger.info("Recordatorios ya programados con la configuracion actual")
            return self.list_scheduled()

        self.cancel_all()
        payload = reminder_payload(interval)
        for hour, minute in times:
            self._scheduler.add_job(
                self._fire,
                CronTrigger(hour=hour, minute=minute),
                id=_job_id(hour, minute),
                kwargs={"payload": payload},
                replace_existing=True,
                misfire_grace_time=300,
                coalesce=True,
            )
        logger.info(
            "Programados %d recordatorios cada %d min entre %02d:00 y %02d:00",
            len(times), interval, current["notification_start_hour"], current["notification_end_hour"],
        )
        return self.list_scheduled()

    def cancel_all(self):
        for job in self._reminder_jobs():
            job.remove()

    def list_scheduled(self) -> list[dict]:
        scheduled = []
        for job in self._reminder_jobs():
            next_run = getattr(job, "next_run_time", None)
            scheduled.append({
                "id": job.id,
                "next_run_time": next_run.isoformat() if next_run else None,
                "payload": job.kwargs.get("payload"),
            })
        return sorted(scheduled, key=lambda j: j["id"])

    def send_test(self):
        self._fire({
            "title": "Test Notification",
            "body": "Notifications are working! You will be reminded to track your time.",
            "data": {"action": TEST_ACTION},
        })

    def _fire(self, payload: dict):
        try:
            self.notify(payload)
        except Exception as e:
            logger.error("Error enviando recordatorio: %s", e)
