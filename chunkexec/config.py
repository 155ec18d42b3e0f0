from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    instance_url: str
    api_version: str
    session_id: str
    request_timeout_seconds: float
    chunk_size: int
    dry_run: bool
    smtp_host: str
    smtp_port: int
    notify_from: str
    notify_to: str
    schedule_hour_utc: int
    schedule_minute_utc: int


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "chunkexec"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./chunkexec.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        instance_url=os.getenv("INSTANCE_URL", "https://login.salesforce.com"),
        api_version=os.getenv("API_VERSION", "59.0"),
        session_id=os.getenv("SESSION_ID", ""),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120")),
        chunk_size=int(os.getenv("CHUNK_SIZE", "200")),
        dry_run=_env_flag("DRY_RUN"),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=int(os.getenv("SMTP_PORT", "25")),
        notify_from=os.getenv("NOTIFY_FROM", ""),
        notify_to=os.getenv("NOTIFY_TO", ""),
        schedule_hour_utc=int(os.getenv("SCHEDULE_HOUR_UTC", "2")),
        schedule_minute_utc=int(os.getenv("SCHEDULE_MINUTE_UTC", "0")),
    )
