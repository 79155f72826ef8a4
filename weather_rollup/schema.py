"""PostgreSQL schema for raw readings and summary tables."""

_METRIC_COLUMNS_FULL = """
    avg_temperature NUMERIC(5, 1),
    min_temperature NUMERIC(5, 1),
    max_temperature NUMERIC(5, 1),
    avg_pressure NUMERIC(6, 1),
    min_pressure NUMERIC(6, 1),
    max_pressure NUMERIC(6, 1),
    avg_humidity NUMERIC(5, 1),
    min_humidity NUMERIC(5, 1),
    max_humidity NUMERIC(5, 1),
"""

TABLES = [
    """
    CREATE TABLE IF NOT EXISTS weather (
        id SERIAL PRIMARY KEY,
        measured_at TIMESTAMP NOT NULL,
        temperature NUMERIC(5, 1) NOT NULL,
        pressure NUMERIC(6, 1) NOT NULL,
        humidity NUMERIC(5, 1) NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS weather_hourly (
        date DATE NOT NULL,
        hour SMALLINT NOT NULL,
        avg_temperature NUMERIC(5, 1),
        avg_pressure NUMERIC(6, 1),
        avg_humidity NUMERIC(5, 1),
        samples_count INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (date, hour)
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS weather_daily (
        date DATE NOT NULL,
        {_METRIC_COLUMNS_FULL}
        samples_count INTEGER NOT NULL DEFAULT 0,
        sea_temperature NUMERIC(5, 1),
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (date)
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS weather_weekly (
        year SMALLINT NOT NULL,
        week SMALLINT NOT NULL,
        week_start DATE NOT NULL,
        week_end DATE NOT NULL,
        {_METRIC_COLUMNS_FULL}
        samples_count INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (year, week)
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS weather_monthly (
        year SMALLINT NOT NULL,
        month SMALLINT NOT NULL,
        {_METRIC_COLUMNS_FULL}
        samples_count INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (year, month)
    );
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_weather_measured_at ON weather(measured_at);",
]
