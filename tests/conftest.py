import os
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from api.config.settings import Settings, get_settings
from api.infra.database import Base, Database, get_database, get_session
from api.infra.storage import LocalArtifactStorage, get_artifact_storage
from api.main import create_app

# Import models to ensure they're registered
from api.v1.content import models as content_models  # noqa: F401
from api.v1.content.models import ContentSession, SessionSnippet
from api.v1.publishing import models as publishing_models  # noqa: F401
from api.v1.publishing.models import PublishScheduleEntry
from api.v1.render import models as render_models  # noqa: F401

CRON_SECRET = "test-cron-secret"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings tuned for tests: no simulator delay, artifacts under tmp."""
    return Settings(
        cron_secret=CRON_SECRET,
        public_base_url="http://test",
        render_simulate_step_delay_ms=0,
        artifact_root=str(tmp_path / "artifacts"),
    )


@pytest.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a test database engine.

    Uses TEST_DATABASE_URL (PostgreSQL) when set, otherwise a SQLite file so
    concurrent workers still get separate connections.
    """
    database_url = os.getenv("TEST_DATABASE_URL")

    if database_url:
        engine = create_async_engine(database_url, echo=False)
    else:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'studio_jobs.db'}",
            connect_args={"timeout": 30},
        )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def database(test_settings, test_engine) -> Database:
    return Database(test_settings, engine=test_engine)


@pytest.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with database.SessionLocal() as session:
        yield session


@pytest.fixture
def artifact_storage(test_settings) -> LocalArtifactStorage:
    return LocalArtifactStorage(test_settings.artifact_root)


@pytest.fixture
def app(test_settings, database, artifact_storage, mock_principal):
    """Create a test FastAPI application with test database."""
    from api.v1.core.security import get_principal

    app = create_app()

    async def get_test_session():
        async with database.SessionLocal() as session:
            yield session

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[get_artifact_storage] = lambda: artifact_storage
    app.dependency_overrides[get_principal] = lambda: mock_principal

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"X-Cron-Secret": CRON_SECRET}


@pytest.fixture
def mock_principal():
    """Mock principal for testing."""
    from api.v1.core.security import Principal

    return Principal(
        user_id="test_user",
        org_id="test_org",
        roles=["user"],
        email="test@example.com",
    )


@pytest.fixture
def storyboard_payload() -> dict:
    """Smallest valid storyboard."""
    return {
        "title": "Lisbon in a day",
        "aspect": "16:9",
        "fps": 30,
        "style": "travel_magazine",
        "scenes": [
            {
                "id": "s1",
                "title": "Morning",
                "summary": "Tram 28 through Alfama",
                "durationSec": 12,
                "shots": [{"prompt": "Yellow tram on a steep street", "durationSec": 6}],
            }
        ],
    }


@pytest.fixture
def make_content_session(db_session: AsyncSession):
    """Factory: content session with the given snippet texts."""

    async def _make(snippets: list[str | None] | None = None, title: str = "Story"):
        content = ContentSession(id=uuid.uuid4(), owner_id=uuid.uuid4(), title=title)
        db_session.add(content)
        for index, text in enumerate(snippets or []):
            db_session.add(
                SessionSnippet(session_id=content.id, content=text, order_index=index)
            )
        await db_session.commit()
        return content

    return _make


@pytest.fixture
def make_schedule_entry(db_session: AsyncSession):
    """Factory: schedule entry due five minutes ago unless told otherwise."""

    async def _make(session_id, run_at: datetime | None = None, **kwargs):
        entry = PublishScheduleEntry(
            id=uuid.uuid4(),
            session_id=session_id,
            run_at=run_at or datetime.now(UTC) - timedelta(minutes=5),
            **kwargs,
        )
        db_session.add(entry)
        await db_session.commit()
        return entry

    return _make
