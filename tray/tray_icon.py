import logging
import webbrowser

import pystray
from PIL import Image, ImageDraw

import config

logger = logging.getLogger(__name__)

ICON_SIZE = 64

STATE_COLORS = {
    "idle": "#888888",
    "recording": "#e94560",
    "transcribing": "#f59e0b",
    "categorizing": "#f59e0b",
    "error": "#7f1d1d",
}


def _create_icon_image(color: str) -> Image.Image:
    img = Image.new("RGBA", (ICON_SIZE, ICON_SIZE), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    margin = 8
    draw.ellipse(
        [margin, margin, ICON_SIZE - margin, ICON_SIZE - margin],
        fill=color,
    )
    return img


def icon_for_state(state: str) -> Image.Image:
    return _create_icon_image(STATE_COLORS.get(state, STATE_COLORS["idle"]))


class TrayIcon:
    def __init__(self, on_toggle_recording, on_cancel, on_quit):
        self._on_toggle_recording = on_toggle_recording
        self._on_cancel = on_cancel
        self._on_quit = on_quit
        self._state = "idle"
        self._icon: pystray.Icon | None = None

    def _build_menu(self):
        recording = self._state == "recording"
        busy = self._state in ("transcribing", "categorizing")
        if recording:
            record_label = "Stop and save check-in"
        elif busy:
            record_label = "Processing..."
        else:
            record_label = "Record check-in"

        return pystray.Menu(
            pystray.MenuItem(record_label, self._toggle_recording, default=True, enabled=not busy),
            pystray.MenuItem("Cancel recording", self._cancel, enabled=recording),
            pystray.MenuItem(
                "Open API",
                lambda: webbrowser.open(f"http://{config.HOST}:{config.PORT}/docs"),
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._quit),
        )

    def _toggle_recording(self):
        try:
            self._on_toggle_recording()
        except Exception as e:
            logger.error("Error al alternar la grabacion: %s", e)

    def _cancel(self):
        try:
            self._on_cancel()
        except Exception as e:
            logger.error("Error cancelando grabacion: %s", e)

    def _quit(self):
        try:
            self._on_quit()
        except Exception as e:
            logger.error("Error al salir: %s", e)
        if self._icon:
            self._icon.stop()

    def update_state(self, state: str):
        if state == self._state:
            return
        self._state = state
        if self._icon:
            self._icon.icon = icon_for_state(state)
            self._icon.menu = self._build_menu()

    def notify(self, title: str, body: str):
        if not self._icon:
            logger.info("Recordatorio (sin bandeja): %s - %s", title, body)
            return
        try:
            self._icon.notify(body, title)
        except NotImplementedError:
            logger.info("Recordatorio: %s - %s", title, body)

    def run(self):
        self._icon = pystray.Icon(
            "TimeScribe",
            icon=icon_for_state(self._state),
            title="TimeScribe",
            menu=self._build_menu(),
        )
        self._icon.run()
