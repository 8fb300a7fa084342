"""Command line interface: fetch, store and review weather forecasts."""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Sequence, TextIO

from .config import Config, ConfigError, find_config_file, load_config
from .db import Database, DatabaseError, get_db
from .models import TestRecord, WeatherForecast, get_latest_forecast, save_forecast_to_db
from .nws import ForecastResponse, WeatherAPIError, WeatherClient

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_FORECAST_LONG = """Get weather forecast from the National Weather Service (api.weather.gov) for specified coordinates.

Note: The NWS API returns forecast "periods" rather than full days.
Each day typically has 2 periods: daytime and nighttime.
So requesting 6 periods gives you approximately 3 full days of forecast.

Use --hourly flag to get hourly forecasts (up to 156 hours / 6.5 days)."""

_MISSING_COORDINATES = (
    "latitude and longitude must be provided. Use --lat and --lon flags or set them in config file"
)


class CommandError(Exception):
    """Raised when a command cannot complete."""


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="config file (default is ./.weather.yml or $HOME/.weather.yml)",
    )
    common.add_argument("--verbose", action="store_true", default=argparse.SUPPRESS, help="verbose output")
    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``weather`` command and its subcommands."""
    common = _common_options()
    parser = argparse.ArgumentParser(prog="weather", description="weather tracker", parents=[common])
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    forecast = commands.add_parser(
        "forecast",
        parents=[common],
        help="Get weather forecast for a location",
        description=_FORECAST_LONG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    forecast.add_argument("-a", "--lat", type=float, default=None, help="Latitude for weather forecast")
    forecast.add_argument("-o", "--lon", type=float, default=None, help="Longitude for weather forecast")
    forecast.add_argument(
        "-p",
        "--periods",
        type=int,
        default=None,
        help="Number of forecast periods to show (each day has day/night periods)",
    )
    forecast.add_argument(
        "-s", "--save", action="store_true", default=None, help="Save forecast data to database"
    )
    forecast.add_argument(
        "-H",
        "--hourly",
        action="store_true",
        default=None,
        help="Get hourly forecast (up to 156 hours) instead of daily periods",
    )
    forecast.add_argument("-d", "--days", type=int, default=None, help=argparse.SUPPRESS)

    history = commands.add_parser(
        "history",
        parents=[common],
        help="Get historical weather forecast data from database",
        description="Retrieve previously saved weather forecast data from the database "
        "for specified coordinates",
    )
    history.add_argument("-a", "--lat", type=float, default=None, help="Latitude for weather history")
    history.add_argument("-o", "--lon", type=float, default=None, help="Longitude for weather history")
    history.add_argument(
        "-p", "--periods", type=int, default=None, help="Number of historical forecast periods to show"
    )
    history.add_argument(
        "-H",
        "--hourly",
        action="store_true",
        default=None,
        help="Get hourly historical forecast instead of daily periods",
    )

    commands.add_parser("test", parents=[common], help="Run a test command")
    return parser


def _bind(config: Config, args: argparse.Namespace, bindings: dict[str, tuple[str, Any]]) -> None:
    """Make flags given on the command line win, and flag defaults sit lowest."""
    for attr, (key, default) in bindings.items():
        config.set_default(key, default)
        value = getattr(args, attr, None)
        if value is not None:
            config.set(key, value)


def _check_coordinates(lat: float, lon: float) -> None:
    if lat == 0.0 and lon == 0.0:
        raise CommandError(_MISSING_COORDINATES)
    if lat < -90 or lat > 90:
        raise CommandError("latitude must be between -90 and 90 degrees")
    if lon < -180 or lon > 180:
        raise CommandError("longitude must be between -180 and 180 degrees")


def _clock(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    suffix = "PM" if moment.hour >= 12 else "AM"
    return f"{_MONTHS[moment.month - 1]} {moment.day} {hour}:{moment.minute:02d} {suffix}"


def format_history(forecasts: Iterable[WeatherForecast], forecast_type: str) -> str:
    """Render stored forecast periods, headed by when they were saved."""
    records = list(forecasts)
    if not records:
        return ""
    saved = records[0].forecast_date
    saved_text = saved.strftime("%Y-%m-%d %H:%M:%S") if saved is not None else ""
    lines = [
        f"Historical Weather Forecast ({forecast_type}, saved: {saved_text}):\n",
        "=========================================================\n\n",
    ]
    for record in records:
        lines.append(f"📅 {record.name}\n")
        lines.append(f"🌡️  Temperature: {record.temperature}°{record.temperature_unit}")
        if record.temperature_trend:
            lines.append(f" ({record.temperature_trend})")
        lines.append("\n")
        lines.append(f"💨 Wind: {record.wind_speed} {record.wind_direction}\n")
        lines.append(f"☁️  Conditions: {record.short_forecast}\n")
        if record.detailed_forecast:
            lines.append(f"📝 Details: {record.detailed_forecast}\n")
        lines.append(f"⏰ Period: {_clock(record.start_time)} to {_clock(record.end_time)}\n")
        lines.append("\n")
    return "".join(lines)


def run_forecast(
    config: Config,
    out: TextIO | None = None,
    client: WeatherClient | None = None,
    db: Database | None = None,
) -> ForecastResponse:
    """Fetch a forecast for the configured location, optionally store it, and print it."""
    out = sys.stdout if out is None else out
    lat = config.get_float("forecast.latitude")
    lon = config.get_float("forecast.longitude")
    periods = config.get_int("forecast.periods")
    save = config.get_bool("forecast.save")
    hourly = config.get_bool("forecast.hourly")

    if periods == 0:
        periods = config.get_int("forecast.days")
    if periods == 0:
        periods = 24 if hourly else 7

    _check_coordinates(lat, lon)

    forecast_type = "hourly periods" if hourly else "daily periods"
    out.write(f"Getting weather forecast for coordinates: {lat:.4f}, {lon:.4f}\n")
    out.write(f"Showing {periods} {forecast_type}\n\n")

    if client is None:
        client = WeatherClient()
    try:
        if hourly:
            forecast = client.get_hourly_forecast_by_coordinates(lat, lon)
        else:
            forecast = client.get_forecast_by_coordinates(lat, lon)
    except WeatherAPIError as exc:
        raise CommandError(f"failed to get weather forecast: {exc}") from exc

    if save:
        out.write("Saving forecast data to database...\n")
        try:
            summary = save_forecast_to_db(db if db is not None else get_db(config), forecast, lat, lon, hourly)
        except (DatabaseError, ValueError) as exc:
            raise CommandError(f"failed to save forecast to database: {exc}") from exc
        out.write(f"{summary}\n")
        out.write("✅ Forecast data saved successfully!\n\n")

    out.write(forecast.format_forecast(periods))
    return forecast


def run_history(
    config: Config,
    out: TextIO | None = None,
    db: Database | None = None,
) -> list[WeatherForecast]:
    """Print the most recently stored forecast for the configured location."""
    out = sys.stdout if out is None else out
    lat = config.get_float("history.latitude")
    lon = config.get_float("history.longitude")
    periods = config.get_int("history.periods")
    hourly = config.get_bool("history.hourly")

    if lat == 0.0 and lon == 0.0:
        lat = config.get_float("forecast.latitude")
        lon = config.get_float("forecast.longitude")

    if periods == 0:
        periods = 24 if hourly else 7

    _check_coordinates(lat, lon)

    forecast_type = "hourly" if hourly else "daily"
    out.write(f"Getting historical weather forecast for coordinates: {lat:.4f}, {lon:.4f}\n")
    out.write(f"Showing {periods} historical {forecast_type} forecast periods\n\n")

    try:
        forecasts = get_latest_forecast(db if db is not None else get_db(config), lat, lon, periods, hourly)
    except DatabaseError as exc:
        raise CommandError(f"failed to get historical forecast: {exc}") from exc

    if not forecasts:
        out.write(f"No historical {forecast_type} forecast data found for coordinates {lat:.4f}, {lon:.4f}\n")
        out.write("Use 'weather forecast --save' to save forecast data to the database first.\n")
        return []

    out.write(format_history(forecasts, forecast_type))
    return forecasts


def run_test(db: Database | None = None) -> TestRecord:
    """Insert a fixed sample row into the ``test`` table."""
    record = TestRecord(amount=12.34, date_time="2024-10-01 12:34:56")
    try:
        record.create(db if db is not None else get_db())
    except DatabaseError as exc:
        raise CommandError(f"Error creating Test record: {exc}") from exc
    return record


def _init_config(config_file: str | None) -> Config:
    path = find_config_file(config_file)
    if path is None:
        print("No config file found")
        return Config()
    config = load_config(path)
    print("Using config file:", Path(path))
    return config


def main(argv: Sequence[str] | None = None) -> int:
    """Run the ``weather`` command; return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _init_config(getattr(args, "config", None) or None)
    except ConfigError as exc:
        print(f"Error processing config template: {exc}")
        return 1

    try:
        if args.command == "forecast":
            days = args.days
            if days is not None:
                print(
                    "Flag --days has been deprecated, use --periods instead. "
                    "Each day typically has 2 periods (day/night)",
                    file=sys.stderr,
                )
            _bind(
                config,
                args,
                {
                    "lat": ("forecast.latitude", 0.0),
                    "lon": ("forecast.longitude", 0.0),
                    "periods": ("forecast.periods", days if days is not None else 7),
                    "save": ("forecast.save", False),
                    "hourly": ("forecast.hourly", False),
                },
            )
            run_forecast(config)
        elif args.command == "history":
            _bind(
                config,
                args,
                {
                    "lat": ("history.latitude", 0.0),
                    "lon": ("history.longitude", 0.0),
                    "periods": ("history.periods", 7),
                    "hourly": ("history.hourly", False),
                },
            )
            run_history(config)
        elif args.command == "test":
            run_test(get_db(config))
        else:
            parser.print_help(sys.stdout)
    except CommandError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print(exc)
        return 1
    return 0