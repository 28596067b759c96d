from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Approval service (queue source, decision executor, history source)
    APPROVALS_API_BASE_URL: str = "http://localhost:8080/api"
    APPROVALS_API_TIMEOUT_SECONDS: float = 30.0

    # Urgency thresholds (days waiting, inclusive lower bounds)
    URGENCY_MEDIUM_DAYS: int = 1
    URGENCY_HIGH_DAYS: int = 3
    URGENCY_CRITICAL_DAYS: int = 7

    # Budget compliance (utilization = (spent + candidate) / budget)
    BUDGET_WARNING_UTILIZATION: float = 0.9
    BUDGET_EXCEEDED_UTILIZATION: float = 1.0

    # Bulk operations
    BULK_MAX_SELECTION: int = 50
    BULK_PROGRESS_STEP: int = 10
    BULK_PROGRESS_CEILING: int = 90
    BULK_PROGRESS_INTERVAL_SECONDS: float = 0.2

    # Queue paging and sorting
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    DEFAULT_SORT_FIELD: str = "submissionDate"
    DEFAULT_SORT_DIRECTION: str = "desc"

    # Decision inputs
    MAX_COMMENT_LENGTH: int = 1000
    REJECTION_REASON_MIN_LENGTH: int = 10

    # Urgent approvals polling
    URGENT_POLL_INTERVAL_SECONDS: float = 60.0
    URGENT_POLL_PAGE_SIZE: int = 20

    # Review sessions (keyed by X-Reviewer-Id)
    SESSION_MAX_COUNT: int = 500
    SESSION_IDLE_TTL_SECONDS: float = 3600.0

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
