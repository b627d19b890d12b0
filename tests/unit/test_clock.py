"""Unit tests for clocks and business days."""

from datetime import UTC, date, datetime

import pytest

from market_order_service.clock import FixedClock, SystemClock, business_date


@pytest.mark.unit
class TestClocks:
    """Tests for the clock implementations."""

    def test_system_clock_is_aware(self) -> None:
        """Test that the system clock returns UTC-aware times."""
        assert SystemClock().now().tzinfo is not None

    def test_fixed_clock_advance(self, fixed_now: datetime) -> None:
        """Test moving a fixed clock forward."""
        clock = FixedClock(fixed_now)

        clock.advance(minutes=12)

        assert clock.now() == datetime(2024, 6, 1, 10, 12, tzinfo=UTC)


@pytest.mark.unit
class TestBusinessDate:
    """Tests for business_date."""

    @pytest.mark.parametrize(
        ("instant", "expected"),
        [
            (datetime(2024, 6, 1, 21, 59, tzinfo=UTC), date(2024, 6, 1)),
            (datetime(2024, 6, 1, 22, 0, tzinfo=UTC), date(2024, 6, 2)),
            (datetime(2024, 5, 31, 22, 0, tzinfo=UTC), date(2024, 6, 1)),
        ],
    )
    def test_lusaka_day_boundaries(self, instant: datetime, expected: date) -> None:
        """Test that days start at local midnight (UTC+2)."""
        assert business_date(instant, "Africa/Lusaka") == expected

    def test_naive_instant_is_utc(self) -> None:
        """Test that naive instants are interpreted as UTC."""
        assert business_date(datetime(2024, 6, 1, 23, 0), "Africa/Lusaka") == date(2024, 6, 2)
