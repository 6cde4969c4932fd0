import os

# must be set before villa_booking.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["WHATSAPP_ENABLED"] = "false"
os.environ["HOST_EMAIL"] = "owner@sunvillas.com"

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from villa_booking.core.security import create_access_token, token_claims
from villa_booking.db import crud_services, crud_users, crud_villas
from villa_booking.db.base import Base
from villa_booking.db.enums import BookingStatus, PaymentMethod, Role, ServiceCategory
from villa_booking.db.models import Booking
from villa_booking.db.session import get_db
from villa_booking.main import app

TODAY = date.today()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role: Role = Role.GUEST, **kwargs):
        counter["n"] += 1
        user = await crud_users.create_user(
            db,
            full_name=kwargs.pop("full_name", f"User {counter['n']}"),
            email=kwargs.pop("email", f"user{counter['n']}@example.com"),
            password=kwargs.pop("password", "secret123"),
            phone=kwargs.pop("phone", "+201001234567"),
            date_of_birth=kwargs.pop("date_of_birth", date(1990, 5, 17)),
            role=role,
        )
        return user

    return _make


@pytest.fixture
async def host(make_user):
    return await make_user(Role.HOST, full_name="Hana Host")


@pytest.fixture
async def guest(make_user):
    return await make_user(Role.GUEST, full_name="Gabe Guest")


@pytest.fixture
async def admin(make_user):
    return await make_user(Role.ADMIN, full_name="Ada Admin")


@pytest.fixture
async def villa(db, host):
    return await crud_villas.create_villa(
        db,
        owner_id=host.id,
        title="Sea Breeze Villa",
        description="Three bedrooms facing the Red Sea.",
        address="12 Corniche Road",
        city="Hurghada",
        country="Egypt",
        price_per_night=Decimal("100.00"),
        max_guests=6,
        bedrooms=3,
        bathrooms=2,
        amenities=["Pool", "WiFi"],
        images=[],
    )


@pytest.fixture
async def service(db):
    return await crud_services.create_service(
        db,
        title="Airport Transfer",
        description="Private car from the airport.",
        category=ServiceCategory.TRANSPORT.value,
        price=Decimal("35.00"),
        duration="1 hour",
        highlights=[],
        included=[],
    )


@pytest.fixture
def insert_booking(db):
    """Write a booking row directly, bypassing the date rules."""

    async def _insert(villa, guest, check_in, check_out, status=BookingStatus.PENDING):
        booking = Booking(
            villa_id=villa.id,
            guest_id=guest.id,
            check_in=check_in,
            check_out=check_out,
            total_adults=2,
            total_children=0,
            total_guests=2,
            total_price=Decimal("100.00") * (check_out - check_in).days,
            services_total=Decimal("0.00"),
            grand_total=Decimal("100.00") * (check_out - check_in).days,
            payment_method=PaymentMethod.BANK_TRANSFER.value,
            status=status.value,
        )
        db.add(booking)
        await db.commit()
        return booking

    return _insert


def days(n: int) -> date:
    return TODAY + timedelta(days=n)
