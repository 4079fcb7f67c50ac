import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RECALCULATE_ON_STARTUP"] = "false"

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from catalog_api.database import get_db
from catalog_api.main import app
from catalog_api.services.audit import AuditLogger
from catalog_api.services.cache import ReviewRateLimiter
from catalog_shared.config import config
from catalog_shared.models import Base, Establishment, EstablishmentStatus, Review, User

MINSK_POINT = (53.9045, 27.5615)

VALID_ESTABLISHMENT = {
    "name": "Васильки",
    "description": "Белорусская кухня в центре города",
    "city": "Минск",
    "address": "пр. Независимости, 16",
    "latitude": MINSK_POINT[0],
    "longitude": MINSK_POINT[1],
    "phone": "+375 29 123-45-67",
    "categories": ["Ресторан"],
    "cuisines": ["Народная", "Европейская"],
    "price_range": "$$",
    "working_hours": {
        "monday": {"open": "10:00", "close": "23:00"},
        "sunday": {"open": "11:00", "close": "22:00"},
    },
    "attributes": {"wifi": True, "parking": False},
}


class InMemoryCounters:
    """Счётчики вместо Redis"""

    def __init__(self):
        self.values = {}

    async def get_counter(self, key):
        return self.values.get(key, 0)

    async def incr_with_expiry(self, key, ttl):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def close(self):
        pass


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def audit_logger(session_factory):
    return AuditLogger(session_factory)


@pytest.fixture
def rate_limiter():
    return ReviewRateLimiter(InMemoryCounters(), limit=10, window_seconds=24 * 60 * 60)


@pytest.fixture
async def client(session_factory, audit_logger, rate_limiter):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    previous = (app.state.audit_logger, app.state.review_limiter)
    app.dependency_overrides[get_db] = override_get_db
    app.state.audit_logger = audit_logger
    app.state.review_limiter = rate_limiter

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    await audit_logger.drain()
    app.dependency_overrides.clear()
    app.state.audit_logger, app.state.review_limiter = previous


def make_token(user, expires_in=timedelta(hours=1)):
    payload = {
        "userId": str(user.id),
        "email": user.email,
        "role": user.role,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def auth(user):
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def create_user(session_factory):
    async def _create(role="user", name=None, is_active=True):
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=f"{role}-{suffix}@example.by",
            name=name or f"{role.capitalize()} {suffix}",
            role=role,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user
    return _create


@pytest.fixture
async def partner(create_user):
    return await create_user("partner", name="Иван Партнёр")


@pytest.fixture
async def admin(create_user):
    return await create_user("admin", name="Анна Админ")


@pytest.fixture
def create_establishment(session_factory):
    async def _create(partner, status=EstablishmentStatus.DRAFT, **overrides):
        fields = {k: v for k, v in VALID_ESTABLISHMENT.items() if k != "phone"}
        fields.update(overrides)
        establishment = Establishment(
            partner_id=partner.id,
            status=EstablishmentStatus(status).value,
            **fields,
        )
        async with session_factory() as session:
            session.add(establishment)
            await session.commit()
        return establishment
    return _create


@pytest.fixture
def create_review(session_factory):
    async def _create(user, establishment, rating=5, is_visible=True, is_deleted=False, content=None):
        review = Review(
            user_id=user.id,
            establishment_id=establishment.id,
            rating=rating,
            content=content or f"Отзыв на {rating} звёзд, всё понравилось, приду ещё",
            is_visible=is_visible,
            is_deleted=is_deleted,
        )
        async with session_factory() as session:
            session.add(review)
            await session.commit()
        return review
    return _create


@pytest.fixture
def fetch(session_factory):
    """Свежая копия строки из базы"""
    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)
    return _fetch
