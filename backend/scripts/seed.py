# scripts/seed.py
import asyncio
import random
from decimal import Decimal

from villa_booking.db.base import Base
from villa_booking.db.session import AsyncSessionLocal, engine
from villa_booking.db import models  # noqa: F401 - register tables
from villa_booking.db.crud_services import create_service
from villa_booking.db.crud_users import create_user, get_user_by_email
from villa_booking.db.crud_villas import create_villa
from villa_booking.db.enums import Role, ServiceCategory, ServiceDifficulty

AMENITIES = ["Pool", "WiFi", "Air Conditioning", "Sea View", "BBQ", "Parking", "Kitchen", "Garden"]
CITIES = [("Hurghada", "Egypt"), ("El Gouna", "Egypt"), ("Sharm El Sheikh", "Egypt")]

SERVICES = [
    ("Airport Transfer", ServiceCategory.TRANSPORT, Decimal("35.00"), "1 hour", None),
    ("Snorkeling Trip", ServiceCategory.ADVENTURE, Decimal("60.00"), "Half day", ServiceDifficulty.EASY),
    ("Desert Quad Safari", ServiceCategory.ADVENTURE, Decimal("85.00"), "4 hours", ServiceDifficulty.MODERATE),
    ("Couples Massage", ServiceCategory.WELLNESS, Decimal("120.00"), "90 minutes", None),
    ("Old Town Walking Tour", ServiceCategory.CULTURAL, Decimal("40.00"), "3 hours", ServiceDifficulty.EASY),
]


async def seed():
    # create tables (if migrations not run)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        if not await get_user_by_email(db, "admin@example.com"):
            await create_user(
                db, full_name="Admin", email="admin@example.com", password="password", role=Role.ADMIN
            )

        hosts = []
        for i in range(2):
            email = f"host{i}@example.com"
            host = await get_user_by_email(db, email)
            if not host:
                host = await create_user(
                    db, full_name=f"Host {i}", email=email, password="password", role=Role.HOST
                )
            hosts.append(host)

        if not await get_user_by_email(db, "guest@example.com"):
            await create_user(db, full_name="Guest", email="guest@example.com", password="password")

        for i in range(8):
            city, country = random.choice(CITIES)
            bedrooms = random.randint(2, 6)
            await create_villa(
                db,
                owner_id=random.choice(hosts).id,
                title=f"Villa {city} {i}",
                description="Bright villa a short walk from the beach.",
                address=f"{10 + i} Corniche Road",
                city=city,
                country=country,
                price_per_night=Decimal(150 + i * 25),
                max_guests=bedrooms * 2,
                bedrooms=bedrooms,
                bathrooms=max(1, bedrooms - 1),
                amenities=random.sample(AMENITIES, 4),
                images=[],
            )

        for title, category, price, duration, difficulty in SERVICES:
            await create_service(
                db,
                title=title,
                description=f"{title} arranged by our local team.",
                category=category.value,
                price=price,
                duration=duration,
                difficulty=difficulty.value if difficulty else None,
                highlights=[],
                included=[],
                is_featured=category == ServiceCategory.ADVENTURE,
            )
    print("Seed complete")


if __name__ == "__main__":
    asyncio.run(seed())
