"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from models import Base, TrackedPackage, PackageManager, RefreshMode
from ingestion.extractors import DockerHubSource, NpmSource
from ingestion.planner import HistoryWindow
from ingestion.registry import SourceRegistry
from datetime import date, timedelta
from typing import AsyncGenerator, Dict, Optional, Tuple
import uuid

# In-memory SQLite shared by every connection of one test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

RUN_DATE = date(2024, 3, 15)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_package(db_session):
    """Factory inserting a tracked package"""

    async def _make(
        package_name: str,
        package_manager: PackageManager = PackageManager.NPM,
        stats_refresh_mode: RefreshMode = RefreshMode.DAILY,
        name: Optional[str] = None,
    ) -> TrackedPackage:
        package = TrackedPackage(
            id=str(uuid.uuid4()),
            name=name or package_name,
            package_name=package_name,
            package_url=package_name,
            package_manager=package_manager,
            stats_refresh_mode=stats_refresh_mode,
        )
        db_session.add(package)
        await db_session.commit()
        # Detached so later rollbacks inside the runner do not expire it
        db_session.expunge(package)
        return package

    return _make


class FakeUpstream:
    """
    Routes requests by URL path to canned JSON responses.

    Unregistered paths answer 404, like the real registries do for
    unknown packages.
    """

    def __init__(self):
        self.routes: Dict[str, Tuple[int, object]] = {}
        self.requests = []

    def add(self, path: str, body=None, status: int = 200):
        self.routes[path] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get(request.url.path, (404, {"error": "not found"}))
        if isinstance(body, (str, bytes)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def paths(self):
        return [r.url.path for r in self.requests]

    # ---- npm helpers -------------------------------------------------

    def npm_point(self, name: str, window: HistoryWindow, counts: Dict[str, int], status: int = 200):
        """Register point responses for the windows present in counts"""
        for window_name, (start, end) in window.point_ranges().items():
            path = f"/downloads/point/{start.isoformat()}:{end.isoformat()}/{name}"
            if window_name not in counts:
                continue
            self.add(
                path,
                {"downloads": counts[window_name], "start": start.isoformat(), "end": end.isoformat(), "package": name},
                status=status,
            )

    def npm_range(self, name: str, start: date, end: date, per_day: int = 10, status: int = 200):
        days = (end - start).days + 1
        entries = [
            {"downloads": per_day, "day": (start + timedelta(days=i)).isoformat()}
            for i in range(days)
        ]
        self.add(
            f"/downloads/range/{start.isoformat()}:{end.isoformat()}/{name}",
            {"start": start.isoformat(), "end": end.isoformat(), "package": name, "downloads": entries},
            status=status,
        )

    # ---- Docker Hub helpers ------------------------------------------

    def docker_pulls(self, namespace: str, repository: str, pull_count, tag: Optional[str] = None):
        path = f"/v2/repositories/{namespace}/{repository}/"
        if tag:
            path += f"tags/{tag}/"
        self.add(path, {"name": repository, "pull_count": pull_count})


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest_asyncio.fixture
async def http_client(upstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as client:
        yield client


@pytest.fixture
def sources(http_client):
    """Source registry over the fake upstream with retries but no backoff"""
    return SourceRegistry([
        NpmSource(client=http_client, retry_delay=0),
        DockerHubSource(client=http_client, retry_delay=0),
    ])
