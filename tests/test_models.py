from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from weathertrack.db import Database, DatabaseError
from weathertrack.models import (
    Base,
    TestRecord,
    WeatherForecast,
    get_latest_forecast,
    save_forecast_to_db,
)
from weathertrack.nws import ForecastPeriod, ForecastResponse

LAT = 39.7456
LON = -97.0892


def _response(temperature=72, first_start="2024-10-01T06:00:00-05:00"):
    return ForecastResponse(
        periods=[
            ForecastPeriod(
                number=1,
                name="Today",
                start_time=first_start,
                end_time="2024-10-01T18:00:00-05:00",
                is_daytime=True,
                temperature=temperature,
                temperature_unit="F",
                wind_speed="5 mph",
                wind_direction="SW",
                icon="https://example.com/icon/day",
                short_forecast="Sunny",
                detailed_forecast="Clear skies.",
            ),
            ForecastPeriod(
                number=2,
                name="Tonight",
                start_time="2024-10-01T18:00:00-05:00",
                end_time="2024-10-02T06:00:00-05:00",
                is_daytime=False,
                temperature=55,
                temperature_unit="F",
                temperature_trend="falling",
                wind_speed="3 mph",
                wind_direction="S",
                short_forecast="Clear",
            ),
        ]
    )


@pytest.fixture
def db(tmp_path):
    return Database(url=f"sqlite:///{tmp_path / 'weather.db'}")


def _count(db, model=WeatherForecast):
    with db.session() as session:
        return session.scalar(select(func.count()).select_from(model))


def test_save_creates_records(db):
    now = datetime(2024, 10, 1, 5, 0, 0)
    summary = save_forecast_to_db(db, _response(), LAT, LON, False, now)
    assert (summary.saved, summary.updated) == (2, 0)
    assert str(summary) == "📊 Database summary: 2 new records saved, 0 existing records updated"

    records = get_latest_forecast(db, LAT, LON)
    assert [r.name for r in records] == ["Today", "Tonight"]
    assert [r.period_number for r in records] == [1, 2]
    assert records[0].temperature == 72
    assert records[0].short_forecast == "Sunny"
    assert records[1].temperature_trend == "falling"
    assert all(r.forecast_date == now for r in records)
    assert all(r.is_hourly is False for r in records)


def test_times_are_stored_as_local_wall_clock(db):
    save_forecast_to_db(db, _response(), LAT, LON, False, datetime(2024, 10, 1, 5, 0, 0))
    first = get_latest_forecast(db, LAT, LON)[0]
    expected = datetime(2024, 10, 1, 11, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert first.start_time == expected
    assert first.end_time - first.start_time == timedelta(hours=12)


def test_save_again_updates_and_keeps_creation_time(db):
    first_now = datetime(2024, 10, 1, 5, 0, 0)
    second_now = datetime(2024, 10, 1, 8, 0, 0)
    save_forecast_to_db(db, _response(), LAT, LON, False, first_now)
    created = [r.created_at for r in get_latest_forecast(db, LAT, LON)]

    summary = save_forecast_to_db(db, _response(temperature=80), LAT, LON, False, second_now)
    assert (summary.saved, summary.updated) == (0, 2)
    assert _count(db) == 2

    records = get_latest_forecast(db, LAT, LON)
    assert records[0].temperature == 80
    assert all(r.forecast_date == second_now for r in records)
    assert [r.created_at for r in records] == created


def test_latest_only_returns_most_recent_forecast(db):
    save_forecast_to_db(db, _response(), LAT, LON, False, datetime(2024, 10, 1, 5, 0, 0))
    later = ForecastResponse(periods=[_response(first_start="2024-10-01T07:00:00-05:00").periods[0]])
    summary = save_forecast_to_db(db, later, LAT, LON, False, datetime(2024, 10, 1, 9, 0, 0))
    assert (summary.saved, summary.updated) == (1, 0)
    records = get_latest_forecast(db, LAT, LON)
    assert len(records) == 1
    assert records[0].forecast_date == datetime(2024, 10, 1, 9, 0, 0)


def test_hourly_and_daily_are_kept_apart(db):
    now = datetime(2024, 10, 1, 5, 0, 0)
    save_forecast_to_db(db, _response(), LAT, LON, False, now)
    summary = save_forecast_to_db(db, _response(), LAT, LON, True, now)
    assert (summary.saved, summary.updated) == (2, 0)
    hourly = get_latest_forecast(db, LAT, LON, 0, True)
    assert len(hourly) == 2
    assert all(r.is_hourly for r in hourly)
    assert _count(db) == 4


def test_limit_caps_periods(db):
    save_forecast_to_db(db, _response(), LAT, LON, False, datetime(2024, 10, 1, 5, 0, 0))
    records = get_latest_forecast(db, LAT, LON, 1)
    assert [r.period_number for r in records] == [1]


def test_other_location_has_no_forecast(db):
    save_forecast_to_db(db, _response(), LAT, LON, False, datetime(2024, 10, 1, 5, 0, 0))
    assert get_latest_forecast(db, 10.0, 20.0) == []


def test_missing_table_raises(db):
    with pytest.raises(DatabaseError):
        get_latest_forecast(db, LAT, LON)


def test_bad_start_time_raises(db):
    response = _response(first_start="not-a-time")
    with pytest.raises(ValueError):
        save_forecast_to_db(db, response, LAT, LON)
    assert _count(db) == 0


def test_fractional_and_utc_times_parse(db):
    response = _response(first_start="2024-10-01T11:00:00.5Z")
    save_forecast_to_db(db, response, LAT, LON, False, datetime(2024, 10, 1, 5, 0, 0))
    first = get_latest_forecast(db, LAT, LON)[0]
    assert first.start_time.microsecond == 500000


def test_weather_forecast_create_then_save(db):
    Base.metadata.create_all(db.engine())
    record = WeatherForecast(
        latitude=LAT,
        longitude=LON,
        period_number=1,
        name="Today",
        start_time=datetime(2024, 10, 1, 6, 0),
        end_time=datetime(2024, 10, 1, 18, 0),
    )
    record.create(db)
    assert record.id >= 1
    assert record.created_at == record.updated_at

    record.name = "This Afternoon"
    record.save(db)
    assert _count(db) == 1
    with db.session() as session:
        assert session.get(WeatherForecast, record.id).name == "This Afternoon"


def test_test_record_create_save_delete(db):
    Base.metadata.create_all(db.engine())
    record = TestRecord(amount=12.34, date_time="2024-10-01 12:34:56")
    record.create(db)
    assert _count(db, TestRecord) == 1

    record.save(db)
    assert _count(db, TestRecord) == 1

    other = TestRecord(amount=12.34, date_time="2024-10-02 12:34:56")
    other.save(db)
    assert _count(db, TestRecord) == 2

    record.delete(db)
    with db.session() as session:
        remaining = list(session.scalars(select(TestRecord.date_time)))
    assert remaining == ["2024-10-02 12:34:56"]