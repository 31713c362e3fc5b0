"""Tests for the time-series service and its catalog."""

import pytest

from usage_analytics.exceptions import SeriesNotFoundError, TimeSeriesError
from usage_analytics.modules.timeseries import SERIES_CATALOG, TimeSeriesQuery
from usage_analytics.modules.timeseries import catalog
from usage_analytics.modules.timeseries.timeseries_service import now_ms

from tests.factories import recent_ms


class TestInitialize:
    """Tests for catalog creation."""

    async def test_creates_every_series(self, timeseries_service, redis_client):
        """Test initialize creates the full catalog."""
        created = await timeseries_service.initialize()

        assert created == [s.key for s in SERIES_CATALOG]
        for series in SERIES_CATALOG:
            assert await redis_client.exists(series.key) == 1

    async def test_initialize_is_idempotent(self, timeseries_service):
        """Test a second initialize keeps existing data."""
        await timeseries_service.initialize()
        stored_at = await timeseries_service.add_data_point(catalog.ERROR_RATE, recent_ms(), 2.5)

        created = await timeseries_service.initialize()

        assert created == []
        latest = await timeseries_service.get_latest_value(catalog.ERROR_RATE)
        assert latest.timestamp == stored_at
        assert latest.value == 2.5

    def test_catalog_retention(self):
        """Test memory is kept a week and everything else a day."""
        retention = {s.key: s.retention_ms for s in SERIES_CATALOG}
        assert retention[catalog.REDIS_MEMORY_USED] == 7 * 24 * 3600 * 1000
        assert retention[catalog.TOKENS_INPUT_RATE] == 24 * 3600 * 1000
        assert len(SERIES_CATALOG) == 8


class TestQueries:
    """Tests for point insertion and range queries."""

    async def test_add_at_now_is_queryable(self, timeseries_service):
        """Test a point added with timestamp 0 lands at the current time."""
        stored_at = await timeseries_service.add_data_point("m", 0, 1.0)

        response = await timeseries_service.query_range(
            TimeSeriesQuery(key="m", start_time=0, end_time=now_ms() + 1000)
        )

        assert len(response.data) == 1
        assert response.data[0].value == 1.0
        assert response.data[0].timestamp == stored_at
        assert response.labels == {}

    async def test_range_is_inclusive_and_ascending(self, timeseries_service):
        """Test both bounds are inclusive and points come back in time order."""
        await timeseries_service.initialize()
        base = recent_ms()
        for offset, value in [(0, 0.5), (1000, 1.0), (2000, 2.0), (3000, 3.0), (4000, 4.0)]:
            await timeseries_service.add_data_point(catalog.ERROR_RATE, base + offset, value)

        response = await timeseries_service.query_range(
            TimeSeriesQuery(key=catalog.ERROR_RATE, start_time=base + 1000, end_time=base + 3000)
        )

        assert [p.timestamp for p in response.data] == [base + 1000, base + 2000, base + 3000]
        assert [p.value for p in response.data] == [1.0, 2.0, 3.0]
        assert response.labels == {"metric_type": "error_rate"}

    async def test_range_with_aggregation(self, timeseries_service):
        """Test bucketed aggregation is applied by the store."""
        await timeseries_service.initialize()
        base = recent_ms()
        for offset, value in [(0, 1.0), (500, 3.0), (1000, 10.0), (1500, 20.0)]:
            await timeseries_service.add_data_point(catalog.ERROR_RATE, base + offset, value)

        response = await timeseries_service.query_range(
            TimeSeriesQuery(
                key=catalog.ERROR_RATE,
                start_time=base,
                end_time=base + 2000,
                aggregation="sum",
                bucket_duration=1000,
            )
        )

        assert [(p.timestamp, p.value) for p in response.data] == [(base, 4.0), (base + 1000, 30.0)]

    async def test_aggregation_without_bucket_returns_raw_points(self, timeseries_service):
        """Test aggregation is ignored when no bucket duration is given."""
        await timeseries_service.initialize()
        base = recent_ms()
        await timeseries_service.add_data_point(catalog.ERROR_RATE, base, 1.0)
        await timeseries_service.add_data_point(catalog.ERROR_RATE, base + 500, 2.0)

        response = await timeseries_service.query_range(
            TimeSeriesQuery(key=catalog.ERROR_RATE, end_time=base + 1000, aggregation="avg")
        )

        assert len(response.data) == 2

    async def test_multi_range(self, timeseries_service):
        """Test several series are returned keyed by series."""
        await timeseries_service.initialize()
        base = recent_ms()
        await timeseries_service.add_data_point(catalog.USERS_ACTIVE_5M, base, 3.0)
        await timeseries_service.add_data_point(catalog.USERS_ACTIVE_1H, base, 7.0)

        results = await timeseries_service.query_multi_range(
            [
                TimeSeriesQuery(key=catalog.USERS_ACTIVE_5M, end_time=base + 1000),
                TimeSeriesQuery(key=catalog.USERS_ACTIVE_1H, end_time=base + 1000),
            ]
        )

        assert set(results) == {catalog.USERS_ACTIVE_5M, catalog.USERS_ACTIVE_1H}
        assert results[catalog.USERS_ACTIVE_1H].data[0].value == 7.0

    async def test_multi_range_aborts_on_first_failure(self, timeseries_service, redis_client):
        """Test a failing query fails the whole batch and names its key."""
        await timeseries_service.initialize()
        await redis_client.set("not-a-series", "plain string")

        with pytest.raises(TimeSeriesError) as exc_info:
            await timeseries_service.query_multi_range(
                [
                    TimeSeriesQuery(key=catalog.ERROR_RATE, end_time=2000),
                    TimeSeriesQuery(key="not-a-series", end_time=2000),
                ]
            )

        assert exc_info.value.key == "not-a-series"


class TestLatest:
    """Tests for latest-value lookups."""

    async def test_latest_value(self, timeseries_service):
        """Test the newest sample is returned."""
        await timeseries_service.initialize()
        base = recent_ms()
        await timeseries_service.add_data_point(catalog.ERROR_RATE, base, 1.0)
        await timeseries_service.add_data_point(catalog.ERROR_RATE, base + 1000, 5.0)

        latest = await timeseries_service.get_latest_value(catalog.ERROR_RATE)

        assert latest.timestamp == base + 1000
        assert latest.value == 5.0

    async def test_missing_series(self, timeseries_service):
        """Test an unknown key raises SeriesNotFoundError."""
        with pytest.raises(SeriesNotFoundError):
            await timeseries_service.get_latest_value("metrics:does_not_exist")

    async def test_empty_series(self, timeseries_service):
        """Test a created but empty series raises SeriesNotFoundError."""
        await timeseries_service.initialize()

        with pytest.raises(SeriesNotFoundError):
            await timeseries_service.get_latest_value(catalog.ERROR_RATE)

    async def test_operations_are_counted(self, timeseries_service, registry):
        """Test operations are recorded in the Prometheus registry."""
        await timeseries_service.add_data_point("m", recent_ms(), 1.0)
        with pytest.raises(SeriesNotFoundError):
            await timeseries_service.get_latest_value("missing")

        assert registry.get_sample_value(
            "redis_timeseries_operations_total", {"operation": "add", "status": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "redis_timeseries_operations_total", {"operation": "get_latest", "status": "error"}
        ) == 1.0
