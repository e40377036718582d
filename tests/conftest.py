import pytest

from config import Settings
from crawler.pacing import Pacer
from database import create_db_engine, create_session_factory, init_db
from progress_store import ProgressStore
from stats import RunStatistics


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return ProgressStore(session_factory)


@pytest.fixture
def stats():
    return RunStatistics()


@pytest.fixture
def no_wait():
    return Pacer(0, name="test")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        targets=[],
        request_delay_ms=0,
        db_operation_delay_ms=0,
        novel_delay_ms=0,
        report_dir=None,
    )
