# weathertrack

A small command-line weather tracker. It asks the National Weather Service
API for the forecast at a latitude and longitude, prints it, and can store
every forecast period in a database so that earlier forecasts can be looked
at again later.

## Installation

```
pip install .
```

This installs the `weather` command.

The database settings (`db.*`, see below) describe a MySQL server reached
through SQLAlchemy's `mysql+pymysql` driver. That driver is not installed
with the package; install it yourself if you want to store forecasts:

```
pip install pymysql
```

## Usage

Show the next seven forecast periods (each day usually has a daytime and a
night-time period):

```
weather forecast --lat 39.7456 --lon -97.0892
```

Options of `weather forecast`:

| Option | Meaning |
| --- | --- |
| `-a`, `--lat` | latitude, between -90 and 90 |
| `-o`, `--lon` | longitude, between -180 and 180 |
| `-p`, `--periods` | number of periods to show (default 7; 24 for hourly when unset) |
| `-H`, `--hourly` | hourly forecast, up to 156 hours, instead of day/night periods |
| `-s`, `--save` | store the forecast in the database |
| `-d`, `--days` | deprecated alias of `--periods`; prints a warning |

Latitude and longitude both zero counts as "not given" and is an error.

With `--save`, the `weather_forecasts` table is created if it is missing.
A period already stored for the same location, period number, start time
and forecast type is updated instead of added, and a summary line reports
how many records were new and how many were updated:

```
weather forecast --lat 39.7456 --lon -97.0892 --hourly --save
```

Show the most recently saved forecast for a location, ordered by period
number:

```
weather history --lat 39.7456 --lon -97.0892 --periods 4
weather history --hourly
```

`weather history` takes `-a/--lat`, `-o/--lon`, `-p/--periods` and
`-H/--hourly`. When it gets no coordinates, it falls back to
`forecast.latitude` and `forecast.longitude` from the configuration.

`weather test` inserts one fixed sample row (amount `12.34`, time
`2024-10-01 12:34:56`) into an existing `test` table, to check that the
database can be written to.

Global options are `--config PATH` to choose a configuration file and
`--verbose`, which is accepted but changes nothing. Running `weather` with
no command prints the help. Errors are reported and the exit status is 1.

## Configuration

Without `--config`, the command looks for `.weather.yml` or `.weather.yaml`
in the current directory and then in your home directory. Files ending in
`.yml`, `.yaml` or `.json` are accepted. The file is rendered as a template
before it is read, so values can come from the environment with
`{{ env "NAME" }}` or `{{ envDefault "NAME" "fallback" }}`:

```yaml
forecast:
  latitude: 39.7456
  longitude: -97.0892
  periods: 6
  hourly: false
  save: true

history:
  periods: 6

db:
  host: {{ envDefault "WEATHER_DB_HOST" "localhost" }}
  port: 3306
  user: {{ env "WEATHER_DB_USER" }}
  pass: {{ env "WEATHER_DB_PASS" }}
  name: weather
  connect_timeout: 90
  maxidleconnections: 2
  maxopenconnections: 12
```

Keys are case-insensitive. Options given on the command line take
precedence over values from the file. If `forecast.periods` is 0, the
older key `forecast.days` is used. The `db` values shown above for port,
timeout and pool sizes are also the defaults.

## Library use

```python
from weathertrack.nws import WeatherClient

client = WeatherClient()
forecast = client.get_forecast_by_coordinates(39.7456, -97.0892)
print(forecast.format_forecast(4))
```

`WeatherClient` also has `get_hourly_forecast_by_coordinates` and
`get_points`; failures raise `WeatherAPIError`.

Stored forecasts are handled through `weathertrack.models`
(`save_forecast_to_db`, `get_latest_forecast`, `WeatherForecast`) with a
`weathertrack.db.Database`. A `Database` can be given an explicit
SQLAlchemy URL instead of the `db.*` settings, for example an SQLite file:

```python
from weathertrack.db import Database
from weathertrack.models import get_latest_forecast, save_forecast_to_db

db = Database(url="sqlite:///weather.db")
summary = save_forecast_to_db(db, forecast, 39.7456, -97.0892)
print(summary)
for record in get_latest_forecast(db, 39.7456, -97.0892, limit=4):
    print(record.name, record.temperature)
```

## Running the tests

```
pip install ".[test]"
pytest
```