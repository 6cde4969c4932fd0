from enum import Enum


class Role(str, Enum):
    GUEST = "GUEST"
    HOST = "HOST"
    ADMIN = "ADMIN"


class VillaStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    MAINTENANCE = "MAINTENANCE"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Bookings in these states hold the villa's dates
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYMENT_ON_ARRIVAL = "PAYMENT_ON_ARRIVAL"


class ServiceCategory(str, Enum):
    INCLUDED = "INCLUDED"
    ADVENTURE = "ADVENTURE"
    WELLNESS = "WELLNESS"
    CULTURAL = "CULTURAL"
    TRANSPORT = "TRANSPORT"
    CUSTOM = "CUSTOM"


class ServiceDifficulty(str, Enum):
    EASY = "EASY"
    MODERATE = "MODERATE"
    CHALLENGING = "CHALLENGING"


class BookingEvent(str, Enum):
    NEW_BOOKING = "NEW_BOOKING"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
