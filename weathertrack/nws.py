"""Client and data types for the National Weather Service forecast API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, TypeVar

import requests

DEFAULT_BASE_URL = "https://api.weather.gov"
USER_AGENT = "weather-app/1.0 (your-email@example.com)"

T = TypeVar("T")


class WeatherAPIError(Exception):
    """Raised when the weather service cannot be reached or answers badly."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    elif not isinstance(value, kind):
        raise ValueError(f"field {key!r} must be {kind.__name__}, got {value!r}")
    return value


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{what} must be an object")
    return value


@dataclass
class PointsProperties:
    """Grid location and forecast links for a point."""

    grid_id: str = ""
    grid_x: int = 0
    grid_y: int = 0
    forecast: str = ""
    forecast_hourly: str = ""
    forecast_grid_data: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PointsProperties":
        """Build from the ``properties`` object of a points response."""
        data = _mapping(data, "properties")
        return cls(
            grid_id=_field(data, "gridId", str, ""),
            grid_x=_field(data, "gridX", int, 0),
            grid_y=_field(data, "gridY", int, 0),
            forecast=_field(data, "forecast", str, ""),
            forecast_hourly=_field(data, "forecastHourly", str, ""),
            forecast_grid_data=_field(data, "forecastGridData", str, ""),
        )


@dataclass
class ForecastPeriod:
    """One forecast period (a day/night half or an hour)."""

    number: int = 0
    name: str = ""
    start_time: str = ""
    end_time: str = ""
    is_daytime: bool = False
    temperature: int = 0
    temperature_unit: str = ""
    temperature_trend: str = ""
    wind_speed: str = ""
    wind_direction: str = ""
    icon: str = ""
    short_forecast: str = ""
    detailed_forecast: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastPeriod":
        data = _mapping(data, "period")
        return cls(
            number=_field(data, "number", int, 0),
            name=_field(data, "name", str, ""),
            start_time=_field(data, "startTime", str, ""),
            end_time=_field(data, "endTime", str, ""),
            is_daytime=_field(data, "isDaytime", bool, False),
            temperature=_field(data, "temperature", int, 0),
            temperature_unit=_field(data, "temperatureUnit", str, ""),
            temperature_trend=_field(data, "temperatureTrend", str, ""),
            wind_speed=_field(data, "windSpeed", str, ""),
            wind_direction=_field(data, "windDirection", str, ""),
            icon=_field(data, "icon", str, ""),
            short_forecast=_field(data, "shortForecast", str, ""),
            detailed_forecast=_field(data, "detailedForecast", str, ""),
        )


@dataclass
class ForecastResponse:
    """A forecast: an ordered list of periods."""

    periods: list[ForecastPeriod] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastResponse":
        """Build from a whole forecast response document."""
        properties = _mapping(_mapping(data, "response").get("properties"), "properties")
        raw_periods = properties.get("periods")
        if raw_periods is None:
            raw_periods = []
        if not isinstance(raw_periods, list):
            raise ValueError("periods must be a list")
        return cls(periods=[ForecastPeriod.from_dict(item) for item in raw_periods])

    def format_forecast(self, periods: int = 0) -> str:
        """Render the first ``periods`` periods; all of them if out of range."""
        if periods <= 0 or periods > len(self.periods):
            periods = len(self.periods)
        lines = ["Weather Forecast:\n", "==================\n\n"]
        for period in self.periods[:periods]:
            lines.append(f"📅 {period.name}\n")
            lines.append(f"🌡️  Temperature: {period.temperature}°{period.temperature_unit}")
            if period.temperature_trend:
                lines.append(f" ({period.temperature_trend})")
            lines.append("\n")
            lines.append(f"💨 Wind: {period.wind_speed} {period.wind_direction}\n")
            lines.append(f"☁️  Conditions: {period.short_forecast}\n")
            if period.detailed_forecast:
                lines.append(f"📝 Details: {period.detailed_forecast}\n")
            lines.append("\n")
        return "".join(lines)


def _decode(payload: Any, parser: Callable[[Any], T], label: str) -> T:
    try:
        return parser(payload)
    except (ValueError, TypeError) as exc:
        raise WeatherAPIError(f"failed to decode {label} response: {exc}") from exc


class WeatherClient:
    """Fetches forecasts for coordinates from the weather service."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def _fetch(self, url: str, fetch_label: str, error_label: str, decode_label: str) -> Any:
        try:
            response = self.session.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise WeatherAPIError(f"failed to get {fetch_label} data: {exc}") from exc
        with response:
            if response.status_code != 200:
                raise WeatherAPIError(
                    f"{error_label} API error: {response.status_code} {response.reason} - {response.text}",
                    status_code=response.status_code,
                )
            try:
                return response.json()
            except ValueError as exc:
                raise WeatherAPIError(f"failed to decode {decode_label} response: {exc}") from exc

    def get_points(self, lat: float, lon: float) -> PointsProperties:
        """Look up the grid point and forecast links for coordinates."""
        url = f"{self.base_url}/points/{lat:.4f},{lon:.4f}"
        payload = self._fetch(url, "points", "NWS", "points")
        return _decode(
            payload,
            lambda data: PointsProperties.from_dict(_mapping(data, "response").get("properties")),
            "points",
        )

    def _forecast(self, url: str) -> ForecastResponse:
        payload = self._fetch(url, "forecast", "forecast", "forecast")
        return _decode(payload, ForecastResponse.from_dict, "forecast")

    def get_forecast_by_coordinates(self, lat: float, lon: float) -> ForecastResponse:
        """Return the day/night period forecast for coordinates."""
        return self._forecast(self.get_points(lat, lon).forecast)

    def get_hourly_forecast_by_coordinates(self, lat: float, lon: float) -> ForecastResponse:
        """Return the hourly forecast (up to about 156 hours) for coordinates."""
        return self._forecast(self.get_points(lat, lon).forecast_hourly)