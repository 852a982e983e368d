import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/matter_coordination"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Celery / notification hook
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    notification_webhook_url: str = os.getenv("NOTIFICATION_WEBHOOK_URL", "")
    notification_timeout_seconds: float = float(
        os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10")
    )

    # Meeting negotiation
    meeting_session_minutes: int = int(os.getenv("MEETING_SESSION_MINUTES", "60"))
    allow_placeholder_video_link: bool = _env_bool(
        "ALLOW_PLACEHOLDER_VIDEO_LINK", "false"
    )
    placeholder_video_link: str = os.getenv(
        "PLACEHOLDER_VIDEO_LINK", "https://zoom.us/j/placeholder"
    )

    # Task materialization
    legacy_title_dedup: bool = _env_bool("LEGACY_TITLE_DEDUP", "false")

    # Concurrency
    conflict_retry_attempts: int = int(os.getenv("CONFLICT_RETRY_ATTEMPTS", "3"))
    conflict_retry_max_wait: float = float(os.getenv("CONFLICT_RETRY_MAX_WAIT", "0.5"))

    # Configuration catalog
    pipeline_cache_ttl_seconds: float = float(
        os.getenv("PIPELINE_CACHE_TTL_SECONDS", "60")
    )

    # Authorization hook: "open" or "assignment"
    authz_mode: str = os.getenv("AUTHZ_MODE", "open").strip().lower()


settings = Settings()
