"""
Tests for windowed aggregation.
"""
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

import psycopg2

from weather_rollup.aggregator import GRANULARITIES, WindowAggregator
from weather_rollup.models import OperationStatus, Window, WindowKind
from weather_rollup.postgres_writer import PostgresWriter
from weather_rollup.windows import day_window, hour_window, month_window, week_window


def _aggregator(config):
    return WindowAggregator(PostgresWriter(config))


def test_every_kind_has_a_granularity():
    assert set(GRANULARITIES) == set(WindowKind)


def test_hourly_query_has_no_extremes(config):
    sql, params = _aggregator(config).build_query(hour_window(datetime(2024, 1, 7, 14, 3)))

    assert "AVG(temperature) AS avg_temperature" in sql
    assert "MIN(" not in sql
    assert "MAX(" not in sql
    assert "EXTRACT(HOUR FROM measured_at) = %s" in sql
    assert "HAVING COUNT(*) > 0" in sql
    assert params == (date(2024, 1, 7), 14)


def test_daily_query(config):
    sql, params = _aggregator(config).build_query(day_window(datetime(2024, 1, 7, 0, 5)))

    assert "MIN(pressure) AS min_pressure" in sql
    assert "MAX(humidity) AS max_humidity" in sql
    assert "measured_at::date = %s" in sql
    assert params == (date(2024, 1, 6),)


def test_weekly_and_monthly_queries_use_inclusive_range(config):
    aggregator = _aggregator(config)

    week_sql, week_params = aggregator.build_query(week_window(datetime(2024, 1, 7)))
    month_sql, month_params = aggregator.build_query(month_window(datetime(2024, 3, 1)))

    assert "BETWEEN %s AND %s" in week_sql
    assert week_params == (date(2023, 12, 25), date(2023, 12, 31))
    assert "BETWEEN %s AND %s" in month_sql
    assert month_params == (date(2024, 2, 1), date(2024, 2, 29))


def test_hourly_average_rounds_after_averaging(config, mock_db):
    """Stored 10.0 and 10.1 average to 10.05, which must be written as 10.1."""
    _, _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {
        "avg_temperature": Decimal("10.0500000000000000"),
        "avg_pressure": Decimal("1013.2500000000000000"),
        "avg_humidity": Decimal("64.0000000000000000"),
        "samples_count": 2,
    }
    aggregator = _aggregator(config)
    window = hour_window(datetime(2024, 1, 7, 14, 3))

    result = aggregator.aggregate(window)

    assert result.status is OperationStatus.SUCCESS
    assert result.samples_count == 2
    assert result.statistics == {
        "avg_temperature": Decimal("10.1"),
        "avg_pressure": Decimal("1013.3"),
        "avg_humidity": Decimal("64.0"),
    }
    upsert_sql, upsert_params = mock_cursor.execute.call_args_list[-1][0]
    assert "INSERT INTO weather_hourly" in upsert_sql
    assert upsert_params == (
        date(2024, 1, 7), 14, Decimal("10.1"), Decimal("1013.3"), Decimal("64.0"), 2
    )


def test_daily_aggregation_writes_all_statistics(config, mock_db):
    mock_connect, mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {
        "avg_temperature": Decimal("18.24"), "min_temperature": Decimal("12.0"), "max_temperature": Decimal("24.9"),
        "avg_pressure": Decimal("1012.45"), "min_pressure": Decimal("1009.1"), "max_pressure": Decimal("1015.0"),
        "avg_humidity": Decimal("61.349"), "min_humidity": Decimal("40.2"), "max_humidity": Decimal("88.0"),
        "samples_count": 288,
    }

    result = _aggregator(config).aggregate_previous_day(datetime(2024, 1, 7, 0, 5))

    assert result.status is OperationStatus.SUCCESS
    assert result.window == Window(WindowKind.DAY, date(2024, 1, 6), date(2024, 1, 6))
    assert result.statistics["avg_temperature"] == Decimal("18.2")
    assert result.statistics["avg_pressure"] == Decimal("1012.5")
    assert result.statistics["avg_humidity"] == Decimal("61.3")
    assert result.samples_count == 288
    # One connection serves both the query and the upsert
    mock_connect.assert_called_once()
    assert mock_cursor.execute.call_count == 2
    upsert_sql = mock_cursor.execute.call_args_list[1][0][0]
    assert "sea_temperature" not in upsert_sql
    mock_conn.close.assert_called_once()


def test_zero_samples_is_noop(config, mock_db):
    _, _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    result = _aggregator(config).aggregate_previous_week(datetime(2024, 1, 7))

    assert result.status is OperationStatus.NOOP
    assert result.ok
    assert result.samples_count == 0
    # Only the statistics query ran
    mock_cursor.execute.assert_called_once()


def test_query_failure_returns_context(config, mock_db):
    _, mock_conn, mock_cursor = mock_db
    mock_cursor.execute.side_effect = psycopg2.OperationalError("canceling statement due to timeout")

    result = _aggregator(config).aggregate_previous_month(datetime(2024, 3, 1, 0, 15))

    assert result.status is OperationStatus.FAILED
    assert result.operation == "monthly_aggregation"
    assert "timeout" in result.error
    ctx = result.context()
    assert ctx["window_kind"] == "month"
    assert ctx["year"] == "2024"
    assert ctx["month"] == "2"
    mock_conn.close.assert_called_once()


def test_connection_failure_returns_failed(config, mock_db):
    mock_connect, _, _ = mock_db
    mock_connect.side_effect = psycopg2.OperationalError("could not connect to server")

    result = _aggregator(config).aggregate_current_hour(datetime(2024, 1, 7, 9))

    assert result.status is OperationStatus.FAILED
    assert result.window.hour == 9
    assert "could not connect" in result.error


def test_upsert_failure_returns_failed(config, mock_db):
    _, _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {
        "avg_temperature": Decimal("1"), "avg_pressure": Decimal("2"), "avg_humidity": Decimal("3"),
        "samples_count": 1,
    }
    mock_cursor.execute.side_effect = [None, psycopg2.IntegrityError("duplicate key")]

    result = _aggregator(config).aggregate(hour_window(datetime(2024, 1, 7, 9)))

    assert result.status is OperationStatus.FAILED
    assert result.statistics == {}


def test_aggregate_kind_defaults_to_now(config):
    aggregator = _aggregator(config)
    fixed_now = datetime(2024, 1, 8, 0, 10)

    with patch("weather_rollup.aggregator.datetime") as mock_datetime, \
            patch.object(aggregator, "aggregate") as mock_aggregate:
        mock_datetime.now.return_value = fixed_now
        aggregator.aggregate_kind(WindowKind.WEEK)

    mock_aggregate.assert_called_once_with(
        Window(WindowKind.WEEK, date(2024, 1, 1), date(2024, 1, 7))
    )


def test_recomputing_a_window_writes_the_same_record(config, mock_db):
    _, _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = lambda: {
        "avg_temperature": Decimal("7.05"), "min_temperature": Decimal("4.2"), "max_temperature": Decimal("9.9"),
        "avg_pressure": Decimal("1010.5"), "min_pressure": Decimal("1009.9"), "max_pressure": Decimal("1011.1"),
        "avg_humidity": Decimal("70.0"), "min_humidity": Decimal("60.0"), "max_humidity": Decimal("80.0"),
        "samples_count": 2,
    }
    aggregator = _aggregator(config)
    window = day_window(datetime(1999, 3, 2, 0, 5))

    first = aggregator.aggregate(window)
    second = aggregator.aggregate(window)

    assert first.statistics == second.statistics
    assert first.samples_count == second.samples_count == 2
    upserts = [call[0] for call in mock_cursor.execute.call_args_list if "INSERT" in call[0][0]]
    assert len(upserts) == 2
    assert upserts[0] == upserts[1]
    assert "ON CONFLICT (date) DO UPDATE SET" in upserts[0][0]
    assert "sea_temperature" not in upserts[0][0]
