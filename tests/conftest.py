"""
Test infrastructure for the CMS API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces every session (request sessions, the activity recorder's
  own session and the test's ``db_session``) onto the same in-memory
  connection; a new connection would see an empty database.
- Each test gets a fresh ``Database`` and an app built by ``create_app`` around
  it, so nothing is shared between tests and no dependency overrides are
  needed.
- Bcrypt runs with the minimum cost factor to keep the suite fast.
"""
import os

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# The module-level app in cms.main is built from the environment on import.
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cms.config import Settings  # noqa: E402
from cms.database import Database  # noqa: E402
from cms.main import create_app  # noqa: E402
from cms.models import User  # noqa: E402
from cms.security import CredentialVerifier  # noqa: E402

test_settings = Settings(
    DATABASE_URL=TEST_DATABASE_URL,
    SECRET_KEY="test-secret-key",
    BCRYPT_ROUNDS=4,
    LOG_LEVEL="WARNING",
)

credentials = CredentialVerifier.from_settings(test_settings)

DEFAULT_PASSWORD = "secret123"


# ---------------------------------------------------------------------------
# Database / app
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database() -> Database:
    """Create all tables before each test, drop after to guarantee isolation."""
    db = Database(TEST_DATABASE_URL, poolclass=StaticPool)
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest.fixture
def app(database: Database):
    return create_app(test_settings, database)


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting stored state).
    """
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(app) -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Users and tokens
# ---------------------------------------------------------------------------

def auth_headers(user: User) -> dict[str, str]:
    token = credentials.create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Factory fixture: insert and commit a user, return the ORM instance."""

    async def _make_user(
        username: str,
        role: str = "user",
        status: str = "active",
        password: str = DEFAULT_PASSWORD,
        email: str | None = None,
    ) -> User:
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=credentials.hash_password(password),
            role=role,
            status=status,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin", role="admin")


@pytest_asyncio.fixture
async def editor(make_user) -> User:
    return await make_user("editor", role="editor")


@pytest_asyncio.fixture
async def member(make_user) -> User:
    return await make_user("member", role="user")


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def editor_headers(editor: User) -> dict[str, str]:
    return auth_headers(editor)


@pytest.fixture
def member_headers(member: User) -> dict[str, str]:
    return auth_headers(member)
