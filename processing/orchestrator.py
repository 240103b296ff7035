import logging
import math
import threading
import time
from enum import Enum

from db.database import StorageError
from processing.categorizer import CategorizationFailed, ConfigurationMissing
from processing.transcriber import TranscriptionFailed
from recorder.audio_capture import PermissionDenied

logger = logging.getLogger(__name__)

TRANSCRIPTION_FAILED_WARNING = "Transcription failed. Entry saved without transcript."
CATEGORIZATION_FAILED_WARNING = "Recording saved but categorization failed."
CONFIGURATION_MISSING_WARNING = (
    "Recording saved but categorization failed: no API key is configured. "
    "Add one in settings or set GEMINI_API_KEY."
)


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    CATEGORIZING = "categorizing"
    ERROR = "error"


def compute_elapsed_minutes(recorded_at: int, last_check_in_time: int | None,
                            notification_interval: int) -> int:
    """Minutos transcurridos desde el ultimo check-in (minimo 1).
    Sin check-in previo se usa el intervalo de notificacion configurado.
    """
    if last_check_in_time:
        # Redondeo hacia arriba en la media: 150 s son 3 minutos
        return max(1, math.floor((recorded_at - last_check_in_time) / 60 + 0.5))
    return notification_interval


class RecordingOrchestrator:
    """Coordina grabacion -> transcripcion -> categorizacion -> persistencia.

    Cualquier fallo a partir de la transcripcion termina en una entrada
    degradada pero guardada; solo los fallos de captura dejan la sesion en error.
    """

    def __init__(self, recorder, transcriber, categorizer, entries, categories, settings,
                 clock=time.time, tick_interval: float = 1.0, on_complete=None):
        self.recorder = recorder
        self.transcriber = transcriber
        self.categorizer = categorizer
        self.entries = entries
        self.categories = categories
        self.settings = settings
        self.clock = clock
        self.tick_interval = tick_interval
        self.on_complete = on_complete

        self._lock = threading.Lock()
        self._state = RecordingState.IDLE
        self._error: str | None = None
        self._warning: str | None = None
        self._permission_denied = False
        self._duration = 0
        self._max_duration = 60
        self._tick_stop = threading.Event()
        self._ticker: threading.Thread | None = None

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def warning(self) -> str | None:
        return self._warning

    @property
    def permission_denied(self) -> bool:
        return self._permission_denied

    @property
    def duration(self) -> int:
        return self._duration

    def status(self) -> dict:
        return {
            "state": self._state.value,
            "duration": self._duration,
            "max_duration": self._max_duration,
            "error": self._error,
            "warning": self._warning,
        }

    def _set_state(self, state: RecordingState):
        if state != self._state:
            logger.info("Estado: %s -> %s", self._state.value, state.value)
        self._state = state

    def _fail(self, message: str):
        self._error = message or "Unexpected error"
        self._set_state(RecordingState.ERROR)

    # -- Transiciones --

    def start(self) -> RecordingState:
        with self._lock:
            if self._state not in (RecordingState.IDLE, RecordingState.ERROR):
                logger.warning("Ya hay una sesion en curso (%s), se ignora start", self._state.value)
                return self._state
            self._error = None
            self._warning = None
            self._permission_denied = False
            self._duration = 0
            self._set_state(RecordingState.RECORDING)

            try:
                self._max_duration = self.settings.get_all()["max_recording_duration"]
                self.recorder.start()
            except PermissionDenied as e:
                logger.warning("Permiso de microfono denegado: %s", e)
                self._permission_denied = True
                self._fail(str(e))
                return self._state
            except Exception as e:
                logger.exception("No se pudo iniciar la grabacion")
                self._fail(f"Failed to start recording: {e}")
                return self._state

            self._start_ticker()
            return self._state

    def stop(self) -> dict | None:
        with self._lock:
            if self._state != RecordingState.RECORDING:
                logger.info("No hay grabacion activa (%s), se ignora stop", self._state.value)
                return None
            self._set_state(RecordingState.TRANSCRIBING)
        self._stop_ticker()

        try:
            result = self._process()
        except Exception as e:
            logger.exception("Error procesando la grabacion")
            with self._lock:
                self._fail(str(e))
            return None
        finally:
            # stop() suele correr en un hilo de corta vida
            self.entries.db.release()

        with self._lock:
            self._duration = 0
            self._set_state(RecordingState.IDLE)
        if self.on_complete:
            try:
                self.on_complete(result)
            except Exception as e:
                logger.error("Error en callback on_complete: %s", e)
        return result

    def cancel(self) -> bool:
        with self._lock:
            if self._state != RecordingState.RECORDING:
                return False
            self._stop_ticker()

            try:
                self.recorder.cancel()
            except Exception as e:
                logger.exception("Error cancelando la grabacion")
                self._fail(f"Failed to cancel recording: {e}")
                return False

            self._duration = 0
            self._set_state(RecordingState.IDLE)
            return True

    # -- Pipeline --

    def _process(self) -> dict:
        recording = self.recorder.stop()
        if not recording:
            raise RuntimeError("No recording data")

        recorded_at = int(self.clock())
        current = self.settings.get_all()
        elapsed = compute_elapsed_minutes(
            recorded_at, current["last_check_in_time"], current["notification_interval"],
        )
        audio_uri = recording["uri"]
        logger.info("Grabacion de %ss, presupuesto de %d min", recording.get("duration_secs"), elapsed)

        try:
            transcript = self.transcriber.transcribe(audio_uri)["transcript"]
        except TranscriptionFailed as e:
            logger.error("Transcripcion fallida: %s", e)
            entry = self.entries.create(recorded_at=recorded_at, duration=elapsed, audio_uri=audio_uri)
            self.settings.set_last_check_in(recorded_at)
            self._warning = TRANSCRIPTION_FAILED_WARNING
            return self._result(recorded_at, elapsed, [entry])

        with self._lock:
            self._set_state(RecordingState.CATEGORIZING)

        try:
            categorized = self.categorizer.categorize(transcript, elapsed, self.categories.list_all())
            created = self.entries.create_many([
                {
                    "recorded_at": recorded_at,
                    "duration": activity["duration"],
                    "transcript": transcript,
                    "summary": activity["summary"],
                    "category_id": activity["category"],
                    "tags": activity["tags"],
                    "audio_uri": audio_uri,
                }
                for activity in categorized["activities"]
            ])
        except (CategorizationFailed, ConfigurationMissing, StorageError) as e:
            logger.error("Categorizacion fallida, se guarda sin categorizar: %s", e)
            created = [self.entries.create(
                recorded_at=recorded_at,
                duration=elapsed,
                transcript=transcript,
                audio_uri=audio_uri,
            )]
            if isinstance(e, ConfigurationMissing):
                self._warning = CONFIGURATION_MISSING_WARNING
            else:
                self._warning = CATEGORIZATION_FAILED_WARNING

        # Solo despues de persistir las entradas
        self.settings.set_last_check_in(recorded_at)
        return self._result(recorded_at, elapsed, created)

    def _result(self, recorded_at: int, elapsed: int, created: list[dict]) -> dict:
        return {
            "recorded_at": recorded_at,
            "elapsed_minutes": elapsed,
            "entries": created,
            "warning": self._warning,
        }

    # -- Contador de duracion --

    def _start_ticker(self):
        self._tick_stop = threading.Event()
        self._ticker = threading.Thread(target=self._tick, args=(self._tick_stop,), daemon=True)
        self._ticker.start()

    def _stop_ticker(self):
        self._tick_stop.set()
        self._ticker = None

    def _tick(self, stop_event: threading.Event):
        while not stop_event.wait(self.tick_interval):
            self._duration += 1
            if self._duration >= self._max_duration:
                logger.info("Duracion maxima alcanzada (%ds), deteniendo", self._max_duration)
                self.stop()
                return
