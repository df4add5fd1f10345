import os

# Settings are read once at import; pin test values before quoteflow loads.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("INTERNAL_JOB_SECRET", "test-internal-secret")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from quoteflow.database import Base, get_db  # noqa: E402
from quoteflow.main import app  # noqa: E402
from tests.factories import seed_opportunity  # noqa: E402


# ---------------------------------------------------------------------------
# Database: temp-file SQLite through aiosqlite. The driver's own BEGIN handling
# is disabled and BEGIN IMMEDIATE is emitted instead, so SAVEPOINTs work and
# concurrent writers are serialized the way row locks serialize them in
# PostgreSQL.
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'quoteflow-test.db'}",
        poolclass=NullPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def client(session_factory):
    async def _get_test_db():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def opportunity(session):
    return await seed_opportunity(session)
