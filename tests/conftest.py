"""
Pytest configuration and shared fixtures for backend tests.
"""

import sys
import time
from pathlib import Path

# Add project root to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from datetime import UTC, datetime, timedelta
from typing import AsyncGenerator, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from adapters.social.base import OAuthTokenData, PlatformCredentials
from infrastructure.cache import CacheStore
from infrastructure.database.models import (
    Base,
    SocialAccount,
    SocialAccountStatus,
    Tenant,
    User,
    Workspace,
)


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class InMemoryCacheStore(CacheStore):
    """CacheStore double with real TTL and single-use semantics."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.expires: dict[str, float] = {}

    def _alive(self, key: str) -> bool:
        expires_at = self.expires.get(key)
        if expires_at is not None and expires_at <= time.monotonic():
            self.values.pop(key, None)
            self.expires.pop(key, None)
        return key in self.values

    def expire(self, key: str) -> None:
        """Simulate the TTL running out."""
        self.expires[key] = time.monotonic() - 1

    async def put(self, key: str, value: str, ttl: int) -> None:
        self.values[key] = value
        self.expires[key] = time.monotonic() + ttl

    async def get(self, key: str) -> Optional[str]:
        return self.values[key] if self._alive(key) else None

    async def pull(self, key: str) -> Optional[str]:
        if not self._alive(key):
            return None
        self.expires.pop(key, None)
        return self.values.pop(key)

    async def forget(self, key: str) -> None:
        self.values.pop(key, None)
        self.expires.pop(key, None)

    async def increment_within_limit(self, key: str, limit: int, ttl: int) -> bool:
        current = int(self.values[key]) if self._alive(key) else 0
        if current >= limit:
            return False
        if current == 0:
            self.expires[key] = time.monotonic() + ttl
        self.values[key] = str(current + 1)
        return True

    async def counter(self, key: str) -> int:
        return int(self.values[key]) if self._alive(key) else 0

    async def ttl(self, key: str) -> int:
        if not self._alive(key) or key not in self.expires:
            return 0
        return max(int(self.expires[key] - time.monotonic()), 0)


@pytest.fixture
def memory_cache() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def meta_credentials() -> PlatformCredentials:
    return PlatformCredentials(
        app_id="test_meta_app_id",
        app_secret="test_meta_app_secret",
        redirect_uri="http://localhost:8000/api/v1/oauth/facebook/callback",
        api_version="v19.0",
        scopes=("pages_manage_posts", "pages_show_list"),
    )


@pytest.fixture
def oauth_credentials() -> PlatformCredentials:
    """Credentials for the non-Meta OAuth 2.0 platforms."""
    return PlatformCredentials(
        app_id="test_client_id",
        app_secret="test_client_secret",
        redirect_uri="http://localhost:8000/api/v1/oauth/linkedin/callback",
        api_version="v2",
        scopes=("r_liteprofile", "w_member_social"),
    )


@pytest.fixture
def token_data() -> OAuthTokenData:
    return OAuthTokenData(
        access_token="new_access_token",
        refresh_token="new_refresh_token",
        expires_in=3600,
        platform_account_id="acct-123",
        account_name="Acme Corp",
        account_username="acme",
        metadata={"organization_id": "org-1"},
    )


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def tenant(db_session: AsyncSession) -> Tenant:
    tenant = Tenant(id=str(uuid4()), name="Acme")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture
async def workspace(db_session: AsyncSession, tenant: Tenant) -> Workspace:
    workspace = Workspace(id=str(uuid4()), tenant_id=tenant.id, name="Marketing")
    db_session.add(workspace)
    await db_session.commit()
    return workspace


@pytest.fixture
async def test_user(db_session: AsyncSession, tenant: Tenant) -> User:
    """Create a test user."""
    user = User(
        id=str(uuid4()),
        tenant_id=tenant.id,
        email="test@example.com",
        name="Test User",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def make_account(db_session: AsyncSession, workspace: Workspace, test_user: User):
    """Factory persisting a SocialAccount with sensible defaults."""

    async def _make(
        platform: str = "linkedin",
        status: str = SocialAccountStatus.CONNECTED.value,
        access_token: str = "stored_access_token",
        refresh_token: Optional[str] = "stored_refresh_token",
        expires_in: Optional[timedelta] = timedelta(days=30),
        metadata: Optional[dict] = None,
        workspace_id: Optional[str] = None,
        platform_account_id: Optional[str] = None,
    ) -> SocialAccount:
        now = datetime.now(UTC)
        account = SocialAccount(
            workspace_id=workspace_id or workspace.id,
            connected_by_user_id=test_user.id,
            platform=platform,
            platform_account_id=platform_account_id or f"{platform}-{uuid4().hex[:8]}",
            account_name=f"{platform.capitalize()} Account",
            status=status,
            token_expires_at=now + expires_in if expires_in is not None else None,
            connected_at=now,
            account_metadata=metadata,
        )
        account.access_token = access_token
        account.refresh_token = refresh_token
        db_session.add(account)
        await db_session.commit()
        return account

    return _make
