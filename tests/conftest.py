from collections.abc import AsyncGenerator
from typing import Any
from uuid import UUID

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from coursemart.config import Settings
from coursemart.exceptions import IdentityProviderError
from coursemart.main import create_app, init_app_state
from coursemart.models import (
    Course,
    CourseProduct,
    CourseSection,
    Lesson,
    Product,
)
from coursemart.models.enums import LessonStatus, ProductStatus, SectionStatus
from coursemart.models.user import User
from coursemart.rate_limit import limiter
from shared.constants.roles import Role
from shared.database.postgres import Base

IDENTITY_SECRET = "whsec_aWRlbnRpdHktd2ViaG9vay10ZXN0LXNlY3JldA=="
PAYMENT_SECRET = "whsec_cGF5bWVudC13ZWJob29rLXRlc3Qtc2VjcmV0IQ=="
JWT_SECRET = "test-jwt-secret"


class FakeIdentityClient:
    """Serves canned profiles and records metadata pushes instead of calling the identity provider."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.profiles: dict[str, dict[str, Any]] = {}
        self.fail_with: int | None = None

    async def get_user(self, external_user_id: str) -> dict[str, Any]:
        if external_user_id not in self.profiles:
            raise IdentityProviderError("not found", status_code=404)
        return self.profiles[external_user_id]

    async def update_user_metadata(self, external_user_id: str, public_metadata: dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise IdentityProviderError("boom", status_code=self.fail_with)
        self.calls.append((external_user_id, public_metadata))


class Seeder:
    """Writes fixture rows directly, each in its own committed session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _add(self, row: Any) -> Any:
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        return row

    async def user(self, external_user_id: str = "user_ext_1", **fields: Any) -> User:
        fields.setdefault("email", f"{external_user_id}@example.com")
        fields.setdefault("name", "Test User")
        return await self._add(User(external_user_id=external_user_id, **fields))

    async def course(self, name: str = "Python 101", **fields: Any) -> Course:
        fields.setdefault("description", "Learn Python")
        return await self._add(Course(name=name, **fields))

    async def section(self, course_id: UUID, sort_order: int, **fields: Any) -> CourseSection:
        fields.setdefault("name", f"Section {sort_order}")
        fields.setdefault("status", SectionStatus.PUBLIC)
        return await self._add(CourseSection(course_id=course_id, sort_order=sort_order, **fields))

    async def lesson(self, section_id: UUID, sort_order: int, **fields: Any) -> Lesson:
        fields.setdefault("name", f"Lesson {sort_order}")
        fields.setdefault("youtube_video_id", "dQw4w9WgXcQ")
        fields.setdefault("status", LessonStatus.PUBLIC)
        return await self._add(Lesson(section_id=section_id, sort_order=sort_order, **fields))

    async def product(self, course_ids: list[UUID], **fields: Any) -> Product:
        fields.setdefault("name", "Bundle")
        fields.setdefault("description", "All the courses")
        fields.setdefault("image_url", "https://img.example.com/bundle.png")
        fields.setdefault("price_in_dollars", 49)
        fields.setdefault("status", ProductStatus.PUBLIC)
        return await self._add(
            Product(course_products=[CourseProduct(course_id=c) for c in course_ids], **fields)
        )


def make_token(user_id: UUID, role: Role = Role.USER) -> str:
    return jwt.encode({"sub": str(user_id), "role": role.value}, JWT_SECRET, algorithm="HS256")


def auth_header(user_id: UUID, role: Role = Role.USER) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'coursemart.db'}",
        jwt_secret=JWT_SECRET,
        identity_webhook_secret=IDENTITY_SECRET,
        payment_webhook_secret=PAYMENT_SECRET,
    )


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(settings.database_url, poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory
    await engine.dispose()


@pytest.fixture
def identity_client() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def app(settings, session_factory, identity_client):
    limiter.reset()
    application = create_app(settings)
    init_app_state(
        application,
        settings,
        session_factory=session_factory,
        identity_client=identity_client,
    )
    return application


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth():
    return auth_header
