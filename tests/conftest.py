import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from marketing_api.main import app
from marketing_api.config import Settings, get_settings
from marketing_api.database import Base, get_db
from marketing_api.models.contact import Contact
from marketing_api.services.segmentation import SegmentLockRegistry, SegmentService

# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


@pytest.fixture
def test_settings() -> Settings:
    """Small pages and batches so paging code paths run on tiny data sets."""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        CONTACT_PAGE_SIZE=2,
        MEMBER_BATCH_SIZE=2,
        SEGMENT_EVALUATION_TIMEOUT_SECONDS=10,
        PREVIEW_SAMPLE_SIZE=2,
    )


@pytest_asyncio.fixture
async def test_db():
    """Create test database and tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def segment_service(test_db: AsyncSession, test_settings: Settings) -> SegmentService:
    return SegmentService(test_db, test_settings, locks=SegmentLockRegistry())


@pytest_asyncio.fixture
async def sample_contacts(test_db: AsyncSession):
    """A handful of base contacts plus one non-base record that must never match."""
    contacts = [
        Contact(
            email="ana@example.com",
            full_name="Ana Souza",
            status="active",
            lifecycle_stage="customer",
            lead_score=80,
            tags=["vip", "newsletter"],
            cashback_info={"current_balance": 150, "expiry_date": "2030-01-01"},
            opt_in_email=True,
        ),
        Contact(
            email="bruno@example.com",
            full_name="Bruno Lima",
            status="active",
            lifecycle_stage="lead",
            lead_score=20,
            tags=["newsletter"],
            opt_in_email=False,
        ),
        Contact(
            email="carla@example.com",
            full_name="Carla Dias",
            status="inactive",
            lifecycle_stage="subscriber",
            lead_score=55,
            tags=["vip"],
            cashback_info={"current_balance": 40},
        ),
        Contact(
            email="davi@example.com",
            full_name="Davi Rocha",
            status="active",
            lifecycle_stage="customer",
            tags=[],
        ),
        Contact(
            email="ana-activity@example.com",
            record_kind="ACTIVITY",
            status="active",
            lead_score=99,
            tags=["vip"],
        ),
    ]
    test_db.add_all(contacts)
    await test_db.commit()
    return contacts


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, test_settings: Settings):
    """Create test client with overridden database and settings."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.state.segment_locks = SegmentLockRegistry()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
