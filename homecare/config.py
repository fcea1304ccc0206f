from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./homecare.db"
    DB_POOL_SIZE: int = 5

    # Upstream care platform API
    CARE_API_BASE_URL: str = ""
    CARE_API_TOKEN: str = ""
    CARE_API_TIMEOUT_SECONDS: int = 15

    # Tours
    DEFAULT_TRAVEL_MINUTES: int = 15
    VALIDATION_DEBOUNCE_MS: int = 500
    DEFAULT_TOUR_START: str = "08:00"
    DEFAULT_TOUR_END: str = "17:00"

    # Care plans
    DURATION_TOLERANCE_MINUTES: int = 5

    # Medication schedules
    DEFAULT_DOSE_UNIT: str = "unit(s)"
    PART_OF_DAY_TIMES: dict[str, str] = {
        "morning": "08:00",
        "noon": "12:00",
        "evening": "18:00",
        "night": "21:00",
    }

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    AUDIT_EXPORT_PATH: str | None = None

    # Environment
    ENVIRONMENT: str = "dev"


@lru_cache
def get_settings() -> Settings:
    return Settings()
