import logging
import math
from pathlib import Path

logger = logging.getLogger(__name__)

_model_cache = {}


class TranscriptionFailed(RuntimeError):
    pass


class Transcriber:
    def __init__(self, model_size: str = "base", language: str = "en"):
        self.model_size = model_size
        self.language = language
        self._model = None

    def load_model(self):
        if self.model_size in _model_cache:
            self._model = _model_cache[self.model_size]
            return

        from faster_whisper import WhisperModel

        # Detect best device
        device = "cpu"
        compute_type = "int8"
        try:
            import torch
            if torch.cuda.is_available():
                device = "cuda"
                compute_type = "float16"
        except ImportError:
            pass

        logger.info(
            "Cargando modelo Whisper '%s' en %s (compute_type=%s)...",
            self.model_size, device, compute_type,
        )
        self._model = WhisperModel(
            self.model_size,
            device=device,
            compute_type=compute_type,
        )
        _model_cache[self.model_size] = self._model
        logger.info("Modelo Whisper cargado")

    @property
    def is_loaded(self) -> bool:
        return self._model is not None or self.model_size in _model_cache

    def transcribe(self, audio_uri: str) -> dict:
        audio_path = Path(audio_uri)
        if not audio_path.exists():
            raise TranscriptionFailed(f"Audio file not found: {audio_path}")

        try:
            if self._model is None:
                self.load_model()

            logger.info("Transcribiendo %s...", audio_path.name)
            segments, info = self._model.transcribe(
                str(audio_path),
                language=self.language,
                beam_size=5,
                vad_filter=True,
            )

            texts = []
            scores = []
            for segment in segments:
                text = segment.text.strip()
                if text:
                    texts.append(text)
                    scores.append(math.exp(segment.avg_logprob))
        except Exception as e:
            raise TranscriptionFailed(f"Speech recognition error: {e}") from e

        transcript = " ".join(texts).strip()
        if not transcript:
            # Sin voz detectada: no es un error
            logger.info("No se detecto voz en %s", audio_path.name)
            return {
                "transcript": "",
                "confidence": 0.0,
                "language": info.language,
                "duration_secs": round(info.duration),
            }

        logger.info("Transcripcion completada: %d segmentos", len(texts))
        return {
            "transcript": transcript,
            "confidence": round(sum(scores) / len(scores), 3),
            "language": info.language,
            "duration_secs": round(info.duration),
        }
