from datetime import date

from villa_booking.services.stats import average_stay, month_bounds, occupancy_rate, percentage_change


def test_percentage_change():
    assert percentage_change(15, 10) == 50.0
    assert percentage_change(5, 10) == -50.0
    assert percentage_change(3, 0) == 100.0
    assert percentage_change(0, 0) == 0.0


def test_average_stay():
    stays = [(date(2025, 1, 1), date(2025, 1, 4)), (date(2025, 2, 1), date(2025, 2, 2))]
    assert average_stay(stays) == 2.0
    assert average_stay([]) == 0.0


def test_occupancy_counts_only_held_stays():
    today = date(2025, 1, 11)  # 10 days elapsed
    stays = [
        (date(2025, 1, 2), date(2025, 1, 4), "COMPLETED"),
        (date(2025, 1, 5), date(2025, 1, 6), "CONFIRMED"),
        (date(2025, 1, 6), date(2025, 1, 9), "CANCELLED"),
    ]
    assert occupancy_rate(stays, today) == 30.0


def test_occupancy_without_stays():
    assert occupancy_rate([], date(2025, 3, 1)) == 0.0


def test_month_bounds_wrap_year():
    bounds = month_bounds(date(2025, 1, 15))
    assert bounds["start_last"].year == 2024 and bounds["start_last"].month == 12
    bounds = month_bounds(date(2025, 12, 2))
    assert bounds["start_next"].year == 2026 and bounds["start_next"].month == 1
