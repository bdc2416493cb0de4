"""Tests for periods, history series bounding and cycle reports."""

from datetime import timedelta
from decimal import Decimal

from marketpulse.constants import CycleStatus, Period, ProviderStatus
from marketpulse.services.market_data.types import (
    FetchCycleReport,
    HistorySeries,
    ProviderFailure,
    ProviderSuccess,
    ProviderTimeout,
)
from tests.conftest import NOW, make_quote


class TestPeriod:
    """Tests for the Period enum."""

    def test_granularity_and_lookback(self):
        """Each period has one granularity and one lookback."""
        assert Period.DAY.granularity == timedelta(hours=1)
        assert Period.DAY.lookback == timedelta(hours=24)
        assert Period.WEEK.granularity == timedelta(hours=4)
        assert Period.WEEK.lookback == timedelta(days=7)
        assert Period.MONTH.granularity == timedelta(days=1)
        assert Period.MONTH.lookback == timedelta(days=30)

    def test_max_points(self):
        assert Period.DAY.max_points == 24
        assert Period.WEEK.max_points == 42
        assert Period.MONTH.max_points == 30

    def test_next_cycles_through_periods(self):
        """The card button cycles 24H -> 1W -> 1M -> 24H."""
        assert Period.DAY.next() == Period.WEEK
        assert Period.WEEK.next() == Period.MONTH
        assert Period.MONTH.next() == Period.DAY

    def test_parse_from_value(self):
        assert Period("1W") is Period.WEEK


class TestHistorySeriesBounded:
    """Tests for HistorySeries.bounded."""

    def test_drops_points_outside_lookback(self):
        """Only the newest 24 hourly points are kept for 24H."""
        points = [(NOW - timedelta(hours=i), Decimal(i + 1)) for i in range(48)]

        series = HistorySeries.bounded("BTC", Period.DAY, points, "stub", NOW)

        assert len(series.points) == 24
        assert series.points[0].timestamp == NOW - timedelta(hours=23)
        assert series.points[-1].timestamp == NOW
        assert series.last_price == Decimal(1)

    def test_sorted_ascending(self):
        """Unsorted input comes out in timestamp order."""
        points = [
            (NOW, Decimal("3")),
            (NOW - timedelta(hours=2), Decimal("1")),
            (NOW - timedelta(hours=1), Decimal("2")),
        ]

        series = HistorySeries.bounded("BTC", Period.DAY, points, "stub", NOW)

        assert [p.price for p in series.points] == [Decimal("1"), Decimal("2"), Decimal("3")]

    def test_newest_point_wins_within_interval(self):
        """Two points in the same hour collapse to the later one."""
        points = [
            (NOW + timedelta(minutes=10), Decimal("100")),
            (NOW + timedelta(minutes=40), Decimal("101")),
        ]

        series = HistorySeries.bounded("BTC", Period.DAY, points, "stub", NOW)

        assert len(series.points) == 1
        assert series.points[0].price == Decimal("101")

    def test_weekly_granularity(self):
        """Hourly input is resampled to 4 hour intervals for 1W."""
        points = [(NOW - timedelta(hours=i), Decimal("1")) for i in range(24)]

        series = HistorySeries.bounded("BTC", Period.WEEK, points, "stub", NOW)

        # 13:00 yesterday through 12:00 today spans seven 4h intervals
        assert len(series.points) == 7

    def test_empty(self):
        series = HistorySeries.bounded("BTC", Period.DAY, [], "stub", NOW)

        assert series.is_empty
        assert series.last_price is None


class TestFetchCycleReport:
    """Tests for the report's derived event."""

    def test_event_carries_statuses(self):
        """The cycle event lists each provider's status."""
        report = FetchCycleReport(
            cycle_id=7,
            started_at=NOW,
            completed_at=NOW,
            attempts=1,
            provider_results={
                "a": ProviderFailure(provider="a", reason="down"),
                "b": ProviderSuccess(provider="b", quotes=(make_quote("BTC", 50000),)),
                "c": ProviderTimeout(provider="c"),
            },
            merged_quotes={"BTC": make_quote("BTC", 50000)},
            overall_status=CycleStatus.PARTIAL_FAILURE,
        )

        event = report.event()

        assert event.cycle_id == 7
        assert event.provider_status == {
            "a": ProviderStatus.FAILURE,
            "b": ProviderStatus.SUCCESS,
            "c": ProviderStatus.TIMEOUT,
        }
        assert event.as_dict() == {
            "cycle_id": 7,
            "overall_status": "PartialFailure",
            "provider_status": {"a": "Failure", "b": "Success", "c": "Timeout"},
        }

    def test_quote_for(self):
        success = ProviderSuccess(provider="b", quotes=(make_quote("BTC", 50000),))

        assert success.quote_for("BTC").price == Decimal("50000")
        assert success.quote_for("ETH") is None
        assert ProviderFailure(provider="a", reason="x").quote_for("BTC") is None
