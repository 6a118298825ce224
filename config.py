import os
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


ENVIRONMENTS = ("development", "production", "test")


class ConfigError(RuntimeError):
    pass


class Settings:
    def __init__(
        self,
        database_url: str,
        env: str,
        port: int,
        timezone: str,
        frontend_url: Optional[str],
        gemini_api_key: Optional[str],
        gemini_model: str,
        google_client_id: Optional[str],
        google_client_secret: Optional[str],
        google_redirect_uri: Optional[str],
        session_days: int,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.env = env
        self.port = port
        self.timezone = timezone
        self.frontend_url = frontend_url
        self.gemini_api_key = gemini_api_key
        self.gemini_model = gemini_model
        self.google_client_id = google_client_id
        self.google_client_secret = google_client_secret
        self.google_redirect_uri = google_redirect_uri
        self.session_days = session_days
        self.scheduler_enabled = scheduler_enabled

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def google_calendar_enabled(self) -> bool:
        return bool(
            self.google_client_id
            and self.google_client_secret
            and self.google_redirect_uri
        )


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    errors: list[str] = []

    database_url = os.getenv("FINANCEIRO_DATABASE_URL", "").strip()
    if not database_url:
        errors.append("FINANCEIRO_DATABASE_URL is required")

    env = os.getenv("FINANCEIRO_ENV", "development").strip().lower()
    if env not in ENVIRONMENTS:
        errors.append(f"FINANCEIRO_ENV must be one of {', '.join(ENVIRONMENTS)}")

    port_raw = os.getenv("FINANCEIRO_PORT", "3333")
    try:
        port = int(port_raw)
    except ValueError:
        errors.append("FINANCEIRO_PORT must be an integer")
        port = 3333

    session_days_raw = os.getenv("FINANCEIRO_SESSION_DAYS", "30")
    try:
        session_days = int(session_days_raw)
        if session_days < 1:
            raise ValueError(session_days_raw)
    except ValueError:
        errors.append("FINANCEIRO_SESSION_DAYS must be a positive integer")
        session_days = 30

    frontend_url = _optional("FINANCEIRO_FRONTEND_URL")
    if frontend_url and not frontend_url.startswith(("http://", "https://")):
        errors.append("FINANCEIRO_FRONTEND_URL must be an http(s) URL")

    timezone = os.getenv("FINANCEIRO_TIMEZONE", "America/Sao_Paulo").strip()
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        errors.append("FINANCEIRO_TIMEZONE must be an IANA time zone name")

    if errors:
        raise ConfigError("Invalid environment configuration: " + "; ".join(errors))

    return Settings(
        database_url=database_url,
        env=env,
        port=port,
        timezone=timezone,
        frontend_url=frontend_url,
        gemini_api_key=_optional("FINANCEIRO_GEMINI_API_KEY"),
        gemini_model=os.getenv("FINANCEIRO_GEMINI_MODEL", "gemini-2.0-flash"),
        google_client_id=_optional("FINANCEIRO_GOOGLE_CLIENT_ID"),
        google_client_secret=_optional("FINANCEIRO_GOOGLE_CLIENT_SECRET"),
        google_redirect_uri=_optional("FINANCEIRO_GOOGLE_REDIRECT_URI"),
        session_days=session_days,
        scheduler_enabled=_as_bool(os.getenv("FINANCEIRO_SCHEDULER_ENABLED", "true")),
    )
