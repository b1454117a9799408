import pytest

from talentscout.config import Settings
from talentscout.db.session import build_engine, build_session_factory
from talentscout.storage import SqlAlchemyStorage

IN_MEMORY_DB = "sqlite+pysqlite:///:memory:"


@pytest.fixture
def storage():
    engine = build_engine(IN_MEMORY_DB)
    store = SqlAlchemyStorage(engine, build_session_factory(engine))
    store.create_all()
    yield store
    engine.dispose()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        DATABASE_URL=IN_MEMORY_DB,
        PDL_API_KEY="",
        GEMINI_API_KEY="",
        OPENAI_API_KEY="",
        RATE_LIMIT_DELAY_SECONDS=0,
        CANDIDATE_DELAY_SECONDS=0,
        SESSION_CLEANUP_DELAY_SECONDS=30,
        LOG_LEVEL="WARNING",
    )
