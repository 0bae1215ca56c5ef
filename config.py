import json
import os
from functools import lru_cache
from pathlib import Path

DEFAULT_SESSION_TTL_HOURS = 30 * 24


class Settings:
    def __init__(
        self,
        database_url: str,
        env: str,
        session_secret: str,
        session_cookie_name: str,
        session_ttl_hours: int,
        cors_origins: list[str],
    ) -> None:
        self.database_url = database_url
        self.env = env
        self.session_secret = session_secret
        self.session_cookie_name = session_cookie_name
        self.session_ttl_hours = session_ttl_hours
        self.cors_origins = cors_origins

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_hours * 3600

    @property
    def is_production(self) -> bool:
        return self.env == "PROD"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _parse_ttl_hours(raw: str) -> int:
    try:
        hours = int(raw)
    except ValueError:
        return DEFAULT_SESSION_TTL_HOURS
    if hours <= 0:
        return DEFAULT_SESSION_TTL_HOURS
    return hours


def parse_origins(raw: str) -> list[str]:
    try:
        origins = json.loads(raw)
    except ValueError:
        origins = None
    if isinstance(origins, list) and origins:
        return [str(origin) for origin in origins]

    cleaned = raw.strip()
    if not cleaned:
        return ["*"]
    return [part.strip() for part in cleaned.split(",") if part.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expenses.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    env = os.getenv("EXPENSES_ENV", "DEV").upper()
    session_secret = os.getenv(
        "EXPENSES_SESSION_SECRET",
        "3c1f0b9e2d7a4e58b6f1a0c9d8e7f6a5b4c3d2e1f0a9b8c7d6e5f4a3b2c1d0e9",
    )
    session_cookie_name = os.getenv("EXPENSES_SESSION_COOKIE_NAME", "sessionID")
    session_ttl_hours = _parse_ttl_hours(
        os.getenv("EXPENSES_SESSION_TTL_HOURS", str(DEFAULT_SESSION_TTL_HOURS))
    )
    cors_origins = parse_origins(os.getenv("EXPENSES_CORS_ORIGINS", '["*"]'))
    return Settings(
        database_url=database_url,
        env=env,
        session_secret=session_secret,
        session_cookie_name=session_cookie_name,
        session_ttl_hours=session_ttl_hours,
        cors_origins=cors_origins,
    )
