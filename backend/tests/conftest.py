import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import Settings
from app.models.base import Base
# Import all models so they register with Base.metadata for create_all
import app.models  # noqa: F401
from app.models.production import ProductionCase
from app.models.user import Role, User
from app.services.authorization import AuthorizationService
from app.services.blob_store import LocalBlobStore


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def test_engine(tmp_path):
    # File-backed SQLite so concurrent sessions see each other's commits
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        blob_storage_dir=str(tmp_path / "blobs"),
        blob_public_base_url="http://test/files",
        import_write_strategy="auto",
        import_time_budget_seconds=45.0,
        streaming_writer_retry_base_delay=0.0,
    )


@pytest.fixture
def blob_store(test_settings) -> LocalBlobStore:
    return LocalBlobStore.from_settings(test_settings)


class AllowAllAuthorizer(AuthorizationService):
    def __init__(self):
        self.calls: list[tuple[str, str, str]] = []

    async def is_authorized(self, user_id: str, resource: str, action: str) -> bool:
        self.calls.append((user_id, resource, action))
        return True


async def seed_cases(session_factory, shipment_id: str, cases: dict[str, int], consumed: dict[str, int] | None = None):
    """Insert case rows directly: ``{case_number: total_lines}``."""
    consumed = consumed or {}
    async with session_factory() as session:
        async with session.begin():
            for case_number, total in cases.items():
                session.add(ProductionCase(
                    shipment_id=shipment_id,
                    case_number=case_number,
                    critical_parts=0,
                    total_lines=total,
                    domestic_lines=0,
                    bulk_lines=0,
                    consumed_lines=consumed.get(case_number, 0),
                    fully_sorted=consumed.get(case_number, 0) >= total,
                ))


async def fetch_case(session_factory, shipment_id: str, case_number: str) -> ProductionCase | None:
    async with session_factory() as session:
        return await session.get(ProductionCase, (shipment_id, case_number))


@pytest.fixture
async def seeded_users(session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add_all([
                Role(name="sorter", permissions=["productivity:add"]),
                Role(name="planner", permissions=["production:add", "production:delete"]),
                User(id="admin-1", name="Admin", role="admin"),
                User(id="sorter-1", name="Sorter", role="sorter"),
                User(id="planner-1", name="Planner", role="planner"),
                User(id="viewer-1", name="Viewer", role="viewer"),
            ])


@pytest.fixture
async def client(session_factory, blob_store, seeded_users):
    from app.database import get_db, get_session_factory
    from app.dependencies import get_blob_store
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
