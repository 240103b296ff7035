import pytest

from db.categories import CategoryStore
from db.database import Database
from db.entries import EntryStore
from db.settings import SettingsStore
from processing.orchestrator import RecordingOrchestrator

from fakes import FakeCategorizer, FakeClock, FakeRecorder, FakeTranscriber


@pytest.fixture(scope="function")
def db(tmp_path):
    """Base de datos SQLite aislada por test."""
    database = Database(tmp_path / "test.db")
    yield database
    database.release()


@pytest.fixture
def entries(db):
    return EntryStore(db)


@pytest.fixture
def categories(db):
    return CategoryStore(db)


@pytest.fixture
def settings(db):
    return SettingsStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_orchestrator(entries, categories, settings, clock):
    def _make(recorder=None, transcriber=None, categorizer=None, **kwargs):
        return RecordingOrchestrator(
            recorder or FakeRecorder(),
            transcriber or FakeTranscriber(),
            categorizer or FakeCategorizer(),
            entries,
            categories,
            settings,
            clock=kwargs.pop("clock", clock),
            **kwargs,
        )

    return _make
