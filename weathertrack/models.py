"""Stored forecast records and the queries over them."""

import re
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Double,
    Float,
    Integer,
    String,
    Table,
    Text,
    delete,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .db import Database, DatabaseError, register_validation
from .nws import ForecastResponse

_RFC3339 = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?(Z|[+-]\d{2}:\d{2})\Z"
)


class Base(DeclarativeBase):
    """Declarative base for all stored records."""


register_validation(Base)


def _local_naive(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def _parse_rfc3339(text: str) -> datetime:
    """Parse an RFC 3339 timestamp into a naive local datetime."""
    match = _RFC3339.match(text)
    if not match:
        raise ValueError(f'parsing time "{text}" as RFC3339: cannot parse')
    base, fraction, zone = match.groups()
    if zone == "Z":
        zone = "+00:00"
    try:
        moment = datetime.fromisoformat(base + zone)
    except ValueError as exc:
        raise ValueError(f'parsing time "{text}" as RFC3339: {exc}') from exc
    micro = int((fraction or "0").ljust(6, "0")[:6])
    return _local_naive(moment.replace(microsecond=micro))


class WeatherForecast(Base):
    """One stored forecast period for a location."""

    __tablename__ = "weather_forecasts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    latitude: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    longitude: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)

    period_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_daytime: Mapped[bool] = mapped_column(Boolean, default=False)

    temperature: Mapped[int] = mapped_column(Integer, default=0)
    temperature_unit: Mapped[str] = mapped_column(String(255), default="")
    temperature_trend: Mapped[str] = mapped_column(String(255), default="")
    wind_speed: Mapped[str] = mapped_column(String(255), default="")
    wind_direction: Mapped[str] = mapped_column(String(255), default="")
    icon: Mapped[str] = mapped_column(String(255), default="")
    short_forecast: Mapped[str] = mapped_column(String(255), default="")
    detailed_forecast: Mapped[str] = mapped_column(Text, default="")

    forecast_date: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    is_hourly: Mapped[bool] = mapped_column(Boolean, index=True, default=False)

    def create(self, db: Database) -> None:
        """Insert this record, stamping its creation and update times."""
        now = _now()
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = now
        with db.session() as session:
            session.add(self)

    def save(self, db: Database) -> None:
        """Update the stored row with this id, or insert it if there is none."""
        now = _now()
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now
        with db.session() as session:
            merged = session.merge(self)
            session.flush()
            self.id = merged.id


_test_table = Table(
    "test",
    Base.metadata,
    Column("amount", Float),
    Column("date_time", String(255)),
)


class TestRecord(Base):
    """A row of the ``test`` table, identified by its amount and time."""

    __test__ = False
    __table__ = _test_table
    __mapper_args__ = {"primary_key": [_test_table.c.amount, _test_table.c.date_time]}

    def create(self, db: Database) -> None:
        with db.session() as session:
            session.add(self)

    def save(self, db: Database) -> None:
        with db.session() as session:
            session.merge(self)

    def delete(self, db: Database) -> None:
        with db.session() as session:
            session.execute(
                delete(_test_table).where(
                    _test_table.c.amount == self.amount,
                    _test_table.c.date_time == self.date_time,
                )
            )


class _SaveSummary(NamedTuple):
    saved: int
    updated: int

    def __str__(self) -> str:
        return (
            f"📊 Database summary: {self.saved} new records saved, "
            f"{self.updated} existing records updated"
        )


def _ensure_table(db: Database) -> None:
    try:
        WeatherForecast.__table__.create(db.engine(), checkfirst=True)
    except SQLAlchemyError as exc:
        raise DatabaseError(str(exc)) from exc


def save_forecast_to_db(
    db: Database,
    forecast: ForecastResponse,
    lat: float,
    lon: float,
    is_hourly: bool = False,
    now: Optional[datetime] = None,
) -> _SaveSummary:
    """Store every period of ``forecast``, updating rows already present.

    A row matches on location, period number, start time and forecast type.
    Returns the counts of new and updated rows; ``str()`` of the result is
    the summary line.
    """
    _ensure_table(db)
    forecast_date = _local_naive(now).replace(microsecond=0) if now else _now()
    saved = updated = 0

    for period in forecast.periods:
        start_time = _parse_rfc3339(period.start_time)
        end_time = _parse_rfc3339(period.end_time)

        with db.session() as session:
            existing = session.scalars(
                select(WeatherForecast)
                .where(
                    WeatherForecast.latitude == lat,
                    WeatherForecast.longitude == lon,
                    WeatherForecast.period_number == period.number,
                    WeatherForecast.start_time == start_time,
                    WeatherForecast.is_hourly == is_hourly,
                )
                .order_by(WeatherForecast.id)
                .limit(1)
            ).first()

        record = WeatherForecast(
            latitude=lat,
            longitude=lon,
            period_number=period.number,
            name=period.name,
            start_time=start_time,
            end_time=end_time,
            is_daytime=period.is_daytime,
            temperature=period.temperature,
            temperature_unit=period.temperature_unit,
            temperature_trend=period.temperature_trend,
            wind_speed=period.wind_speed,
            wind_direction=period.wind_direction,
            icon=period.icon,
            short_forecast=period.short_forecast,
            detailed_forecast=period.detailed_forecast,
            forecast_date=forecast_date,
            is_hourly=is_hourly,
        )

        if existing is None:
            record.create(db)
            saved += 1
        else:
            record.id = existing.id
            record.created_at = existing.created_at
            record.save(db)
            updated += 1

    return _SaveSummary(saved, updated)


def get_latest_forecast(
    db: Database,
    lat: float,
    lon: float,
    limit: int = 0,
    is_hourly: bool = False,
) -> list[WeatherForecast]:
    """Return the periods of the most recently saved forecast, by period number.

    ``limit`` above zero caps the number of periods. An empty list means no
    forecast of that type was saved for the location.
    """
    with db.session() as session:
        latest = session.scalar(
            select(func.max(WeatherForecast.forecast_date)).where(
                WeatherForecast.latitude == lat,
                WeatherForecast.longitude == lon,
                WeatherForecast.is_hourly == is_hourly,
            )
        )
        if latest is None:
            return []
        query = (
            select(WeatherForecast)
            .where(
                WeatherForecast.latitude == lat,
                WeatherForecast.longitude == lon,
                WeatherForecast.forecast_date == latest,
                WeatherForecast.is_hourly == is_hourly,
            )
            .order_by(WeatherForecast.period_number.asc())
        )
        if limit > 0:
            query = query.limit(limit)
        return list(session.scalars(query))