import logging
import socket
import sys
import threading
import time
import webbrowser

import uvicorn

import config
from db.categories import CategoryStore
from db.database import Database
from db.entries import EntryStore
from db.settings import SettingsStore
from notifications.scheduler import ReminderScheduler
from processing.categorizer import Categorizer
from processing.orchestrator import RecordingOrchestrator, RecordingState
from processing.transcriber import Transcriber
from recorder.audio_capture import AudioRecorder
from server.app import create_app
from tray.tray_icon import TrayIcon

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("timescribe")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No se encontro un puerto disponible entre {start} y {end}")


def build_categorizer(settings: SettingsStore) -> Categorizer:
    provider = config.LLM_PROVIDER
    if provider == "anthropic":
        model = config.ANTHROPIC_MODEL
    elif provider == "gemini":
        model = config.GEMINI_MODEL
    else:
        model = None
    return Categorizer(
        provider=provider,
        api_key=config.provider_api_key(provider),
        model=model,
        settings=settings,
        proxy_url=config.PROXY_URL,
        ollama_url=config.OLLAMA_URL,
        ollama_model=config.OLLAMA_MODEL,
        timeout=config.LLM_TIMEOUT_SECS,
    )


def main():
    # Ensure data directories exist
    for d in [config.RECORDINGS_DIR, config.TEMP_DIR]:
        d.mkdir(parents=True, exist_ok=True)

    try:
        port = find_available_port(config.PORT, 8800)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Puerto %d en uso, usando %d", config.PORT, port)
    config.PORT = port

    # Initialize components
    db = Database(config.DB_PATH)
    entries = EntryStore(db)
    categories = CategoryStore(db)
    settings = SettingsStore(db, env_api_key=config.provider_api_key(config.LLM_PROVIDER))

    recorder = AudioRecorder(
        str(config.RECORDINGS_DIR),
        temp_dir=str(config.TEMP_DIR),
        device_index=config.MIC_DEVICE_INDEX,
    )
    transcriber = Transcriber(
        model_size=config.WHISPER_MODEL,
        language=config.WHISPER_LANGUAGE,
    )
    categorizer = build_categorizer(settings)
    if not categorizer.is_configured():
        logger.warning("Categorizacion sin configurar: las grabaciones se guardaran sin categoria")

    tray = None

    def on_complete(result):
        warning = result.get("warning")
        count = len(result["entries"])
        if tray and warning:
            tray.notify("TimeScribe", warning)
        elif tray:
            tray.notify("TimeScribe", f"Saved {count} entr{'y' if count == 1 else 'ies'}.")

    orchestrator = RecordingOrchestrator(
        recorder, transcriber, categorizer, entries, categories, settings,
        on_complete=on_complete,
    )

    def deliver_reminder(payload: dict):
        if tray:
            tray.notify(payload["title"], payload["body"])
        else:
            logger.info("Recordatorio: %s", payload["body"])

    reminders = ReminderScheduler(settings, notify=deliver_reminder)
    reminders.start()
    reminders.schedule()

    # Load Whisper model in background
    def preload_whisper():
        try:
            logger.info("Pre-cargando modelo Whisper en background...")
            transcriber.load_model()
        except Exception as e:
            logger.warning("No se pudo pre-cargar Whisper: %s", e)

    threading.Thread(target=preload_whisper, daemon=True).start()

    app = create_app(
        entries, categories, settings, orchestrator, categorizer,
        reminders=reminders, transcriber=transcriber,
    )

    def toggle_recording():
        if orchestrator.state == RecordingState.RECORDING:
            threading.Thread(target=orchestrator.stop, daemon=True).start()
        elif orchestrator.state in (RecordingState.IDLE, RecordingState.ERROR):
            if orchestrator.start() == RecordingState.ERROR:
                tray.notify("TimeScribe", orchestrator.error)

    should_stop = threading.Event()

    def quit_app():
        logger.info("Cerrando TimeScribe...")
        orchestrator.cancel()
        recorder.terminate()
        reminders.shutdown()
        db.release()
        should_stop.set()

    tray = TrayIcon(
        on_toggle_recording=toggle_recording,
        on_cancel=orchestrator.cancel,
        on_quit=quit_app,
    )

    def update_tray_state():
        while not should_stop.is_set():
            tray.update_state(orchestrator.state.value)
            time.sleep(1)

    threading.Thread(target=update_tray_state, daemon=True).start()

    server_config = uvicorn.Config(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="warning",
    )
    server = uvicorn.Server(server_config)
    server_thread = threading.Thread(target=server.run, daemon=True)
    server_thread.start()

    url = f"http://{config.HOST}:{config.PORT}/docs"
    logger.info("TimeScribe iniciado en %s", url)
    webbrowser.open(url)

    # Run tray icon on main thread (blocks until quit)
    try:
        tray.run()
    except KeyboardInterrupt:
        pass
    finally:
        if not should_stop.is_set():
            quit_app()
        server.should_exit = True


if __name__ == "__main__":
    main()
