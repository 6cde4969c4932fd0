# villa_booking/db/models.py

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Text,
    ForeignKey,
    Numeric,
    Boolean,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from villa_booking.db.base import Base
from villa_booking.db.enums import BookingStatus, Role, VillaStatus


def utcnow() -> datetime:
    # naive UTC, matching the DateTime columns below
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), nullable=True)
    date_of_birth = Column(Date, nullable=True)

    # DB column name: password_hash
    # Python attribute: hashed_password
    hashed_password = Column("password_hash", String(255), nullable=False)

    role = Column(String(20), nullable=False, default=Role.GUEST.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    villas = relationship(
        "Villa",
        back_populates="owner",
        foreign_keys="Villa.owner_id",
    )

    bookings = relationship(
        "Booking",
        back_populates="guest",
        foreign_keys="Booking.guest_id",
        passive_deletes=True,
    )

    refresh_tokens = relationship(
        "UserRefreshToken",
        back_populates="user",
        cascade="all,delete-orphan",
        passive_deletes=True,
    )


class Villa(Base):
    __tablename__ = "villas"

    id = Column(Integer, primary_key=True, index=True)

    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(300), nullable=False)
    city = Column(String(100), nullable=False, index=True)
    country = Column(String(100), nullable=False)

    price_per_night = Column(Numeric(10, 2), nullable=False)
    max_guests = Column(Integer, nullable=False)
    bedrooms = Column(Integer, nullable=False)
    bathrooms = Column(Integer, nullable=False)

    # list[str] of image URLs as JSON in DB
    images = Column(JSON, nullable=False, default=list)

    status = Column(
        String(20),
        nullable=False,
        default=VillaStatus.AVAILABLE.value,
        index=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship(
        "User",
        back_populates="villas",
        foreign_keys=[owner_id],
        lazy="selectin",
    )

    amenity_links = relationship(
        "VillaAmenity",
        back_populates="villa",
        cascade="all,delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="VillaAmenity.id",
    )

    bookings = relationship(
        "Booking",
        back_populates="villa",
        passive_deletes=True,
    )

    services = relationship("Service", back_populates="villa")

    @property
    def amenities(self) -> list[str]:
        return [link.name for link in self.amenity_links]

    @amenities.setter
    def amenities(self, names: list[str]) -> None:
        # reuse surviving rows so the (villa_id, name) constraint holds during flush
        existing = {link.name: link for link in self.amenity_links}
        self.amenity_links = [
            existing.get(name) or VillaAmenity(name=name) for name in dict.fromkeys(names)
        ]


class VillaAmenity(Base):
    __tablename__ = "villa_amenities"
    __table_args__ = (UniqueConstraint("villa_id", "name", name="uq_villa_amenity"),)

    id = Column(Integer, primary_key=True)
    villa_id = Column(
        Integer,
        ForeignKey("villas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False, index=True)

    villa = relationship("Villa", back_populates="amenity_links")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    long_description = Column(Text, nullable=True)
    category = Column(String(20), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(String(50), nullable=False)
    difficulty = Column(String(20), nullable=True)
    max_group_size = Column(Integer, nullable=True)
    highlights = Column(JSON, nullable=False, default=list)
    included = Column(JSON, nullable=False, default=list)
    image = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)

    # NULL = offered with every villa
    villa_id = Column(
        Integer,
        ForeignKey("villas.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    villa = relationship("Villa", back_populates="services", lazy="selectin")
    booking_services = relationship("BookingService", back_populates="service")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    villa_id = Column(
        Integer,
        ForeignKey("villas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    guest_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    check_in = Column(Date, nullable=False, index=True)
    check_out = Column(Date, nullable=False, index=True)

    total_adults = Column(Integer, nullable=False, default=1)
    total_children = Column(Integer, nullable=False, default=0)
    total_guests = Column(Integer, nullable=False, default=1)

    total_price = Column(Numeric(10, 2), nullable=False)
    services_total = Column(Numeric(10, 2), nullable=False, default=0)
    grand_total = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String(30), nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    status = Column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True,
    )

    confirmed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    villa = relationship("Villa", back_populates="bookings", lazy="selectin")
    guest = relationship(
        "User",
        back_populates="bookings",
        foreign_keys=[guest_id],
        lazy="selectin",
    )
    confirmed_by = relationship("User", foreign_keys=[confirmed_by_id], lazy="selectin")
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id], lazy="selectin")

    booking_services = relationship(
        "BookingService",
        back_populates="booking",
        cascade="all,delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="BookingService.id",
    )


class BookingService(Base):
    __tablename__ = "booking_services"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id = Column(
        Integer,
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    quantity = Column(Integer, nullable=False, default=1)
    number_of_guests = Column(Integer, nullable=True)
    scheduled_date = Column(Date, nullable=True)
    scheduled_time = Column(String(5), nullable=True)
    special_requests = Column(String(500), nullable=True)

    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="booking_services")
    service = relationship("Service", back_populates="booking_services", lazy="selectin")


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class UserRefreshToken(Base):
    __tablename__ = "user_refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="refresh_tokens")
