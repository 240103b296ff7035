import logging
import shutil
import struct
import threading
import time
import uuid
import wave
from pathlib import Path

import config

logger = logging.getLogger(__name__)

CHUNK_DURATION_MS = 30
FLUSH_INTERVAL_SECS = 5
READ_ERROR_BACKOFF_SECS = 0.05
MAX_CONSECUTIVE_READ_ERRORS = 40


class PermissionDenied(RuntimeError):
    pass


class NoActiveRecording(RuntimeError):
    pass


def to_mono(data: bytes, channels: int) -> bytes:
    if channels <= 1:
        return data
    samples = struct.unpack(f"<{len(data) // 2}h", data)
    mono = []
    for i in range(0, len(samples) - channels + 1, channels):
        frame_samples = samples[i : i + channels]
        mono.append(int(sum(frame_samples) / channels))
    return struct.pack(f"<{len(mono)}h", *mono)


def resample(data: bytes, source_rate: int, target_rate: int) -> bytes:
    if source_rate == target_rate or not data:
        return data
    samples = struct.unpack(f"<{len(data) // 2}h", data)
    ratio = target_rate / source_rate
    new_len = int(len(samples) * ratio)
    if new_len <= 0:
        return b""
    resampled = [samples[min(int(i / ratio), len(samples) - 1)] for i in range(new_len)]
    return struct.pack(f"<{len(resampled)}h", *resampled)


class AudioRecorder:
    """Graba el microfono en WAV mono de 16 kHz, optimizado para reconocimiento de voz."""

    def __init__(self, output_dir: str, temp_dir: str | None = None,
                 device_index: int | None = None):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir = Path(temp_dir) if temp_dir else self.output_dir / "tmp"
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.device_index = device_index
        self._pa = None
        self._recording = False
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._temp_wav: Path | None = None
        self._wf: wave.Wave_write | None = None
        self._frames_written = 0

    def _get_pa(self):
        if self._pa is None:
            import pyaudio

            self._pa = pyaudio.PyAudio()
        return self._pa

    def _open_stream(self):
        import pyaudio

        pa = self._get_pa()
        try:
            if self.device_index is not None:
                device_info = pa.get_device_info_by_index(self.device_index)
            else:
                device_info = pa.get_default_input_device_info()
        except (OSError, IOError) as e:
            raise PermissionDenied(f"Microphone not available: {e}") from e

        sample_rate = int(device_info["defaultSampleRate"])
        channels = max(1, min(2, int(device_info["maxInputChannels"])))
        chunk_size = max(1, int(sample_rate * CHUNK_DURATION_MS / 1000))

        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=sample_rate,
                input=True,
                input_device_index=device_info["index"],
                frames_per_buffer=chunk_size,
            )
        except (OSError, IOError) as e:
            raise PermissionDenied(f"Microphone permission not granted: {e}") from e

        logger.info("Microfono: %s (%d Hz, %d canales)", device_info["name"], sample_rate, channels)
        return stream, sample_rate, channels, chunk_size

    def _record_stream(self, stream, sample_rate: int, channels: int, chunk_size: int):
        frames_since_flush = 0
        flush_frames = int(config.SAMPLE_RATE * FLUSH_INTERVAL_SECS)
        read_errors = 0
        try:
            while self._recording:
                try:
                    data = stream.read(chunk_size, exception_on_overflow=False)
                except (OSError, IOError) as e:
                    read_errors += 1
                    if read_errors >= MAX_CONSECUTIVE_READ_ERRORS:
                        logger.error("Microfono sin respuesta tras %d errores, se deja de leer: %s", read_errors, e)
                        break
                    time.sleep(READ_ERROR_BACKOFF_SECS)
                    continue
                read_errors = 0

                data = resample(to_mono(data, channels), sample_rate, config.SAMPLE_RATE)
                self._wf.writeframes(data)
                self._frames_written += len(data) // 2
                frames_since_flush += len(data) // 2
                if frames_since_flush >= flush_frames:
                    self._wf._ensure_header_written(0)  # noqa: SLF001
                    frames_since_flush = 0
        finally:
            try:
                stream.stop_stream()
                stream.close()
            except (OSError, IOError) as e:
                logger.warning("Error cerrando stream de audio: %s", e)

    def start(self) -> None:
        with self._lock:
            if self._recording:
                raise RuntimeError("Recording already in progress")

            stream, sample_rate, channels, chunk_size = self._open_stream()

            self._temp_wav = self.temp_dir / f"{uuid.uuid4()}.wav"
            self._wf = wave.open(str(self._temp_wav), "wb")
            self._wf.setnchannels(config.CHANNELS)
            self._wf.setsampwidth(2)
            self._wf.setframerate(config.SAMPLE_RATE)
            self._frames_written = 0
            self._recording = True

            self._thread = threading.Thread(
                target=self._record_stream,
                args=(stream, sample_rate, channels, chunk_size),
                daemon=True,
            )
            self._thread.start()
            logger.info("Grabacion iniciada: %s", self._temp_wav.name)

    def _finish(self) -> Path:
        with self._lock:
            if not self._recording:
                raise NoActiveRecording("No active recording")
            self._recording = False

        if self._thread:
            self._thread.join(timeout=5)
        self._thread = None

        if self._wf is not None:
            try:
                self._wf.close()
            except (OSError, wave.Error) as e:
                logger.warning("Error cerrando WAV temporal: %s", e)
        self._wf = None

        temp_wav = self._temp_wav
        self._temp_wav = None
        return temp_wav

    def stop(self) -> dict | None:
        try:
            temp_wav = self._finish()
        except NoActiveRecording:
            logger.info("No hay grabacion activa para detener")
            return None

        duration_secs = round(self._frames_written / config.SAMPLE_RATE)

        # Mover a almacenamiento permanente con un nombre nuevo
        final_path = self.output_dir / f"recording_{uuid.uuid4().hex}.wav"
        shutil.move(str(temp_wav), str(final_path))
        logger.info("Grabacion guardada en %s (%ds)", final_path, duration_secs)

        return {"uri": str(final_path), "duration_secs": duration_secs}

    def cancel(self) -> None:
        try:
            temp_wav = self._finish()
        except NoActiveRecording:
            return

        if temp_wav and temp_wav.exists():
            try:
                temp_wav.unlink()
            except OSError as e:
                logger.warning("No se pudo borrar el audio descartado %s: %s", temp_wav, e)
        logger.info("Grabacion cancelada")

    def is_recording(self) -> bool:
        return self._recording

    def terminate(self):
        if self._recording:
            self.cancel()
        if self._pa:
            self._pa.terminate()
            self._pa = None
