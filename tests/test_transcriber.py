import math
from types import SimpleNamespace

import pytest

from processing import transcriber as transcriber_module
from processing.transcriber import Transcriber, TranscriptionFailed


class FakeWhisperModel:
    def __init__(self, segments=(), error=None):
        self.segments = segments
        self.error = error
        self.calls = []

    def transcribe(self, path, **kwargs):
        self.calls.append((path, kwargs))
        if self.error:
            raise self.error
        info = SimpleNamespace(language="en", duration=12.4)
        return iter(self.segments), info


def segment(text, avg_logprob=-0.1):
    return SimpleNamespace(text=text, avg_logprob=avg_logprob)


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "recording_abc.wav"
    path.write_bytes(b"RIFF")
    return path


@pytest.fixture
def use_model(monkeypatch):
    def _use(model):
        monkeypatch.setitem(transcriber_module._model_cache, "fake", model)
        return Transcriber(model_size="fake", language="en")

    return _use


def test_transcribe_joins_segments(use_model, audio_file):
    model = FakeWhisperModel([segment(" I wrote tests. "), segment("  "), segment("Then lunch.", -0.3)])
    transcriber = use_model(model)

    result = transcriber.transcribe(str(audio_file))

    assert result["transcript"] == "I wrote tests. Then lunch."
    expected = round((math.exp(-0.1) + math.exp(-0.3)) / 2, 3)
    assert result["confidence"] == expected
    assert result["language"] == "en"
    assert result["duration_secs"] == 12
    assert model.calls[0][1]["language"] == "en"
    assert transcriber.is_loaded


def test_silence_is_not_an_error(use_model, audio_file):
    result = use_model(FakeWhisperModel([])).transcribe(str(audio_file))
    assert result["transcript"] == ""
    assert result["confidence"] == 0.0


def test_missing_file_fails(use_model, tmp_path):
    with pytest.raises(TranscriptionFailed):
        use_model(FakeWhisperModel([])).transcribe(str(tmp_path / "missing.wav"))


def test_engine_error_fails(use_model, audio_file):
    transcriber = use_model(FakeWhisperModel(error=RuntimeError("CUDA out of memory")))
    with pytest.raises(TranscriptionFailed, match="CUDA out of memory"):
        transcriber.transcribe(str(audio_file))
