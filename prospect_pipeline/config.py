from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    PROSPECT_DB_URL: str = "sqlite+aiosqlite:///./prospects.db"
    LOG_LEVEL: str = "INFO"

    # --- Pipeline worker ---
    PIPELINE_BATCH_SIZE: int = 50
    QUARANTINE_REPROCESS_LIMIT: int = 10

    # --- Enrichment scheduler ---
    ENRICHMENT_BATCH_LIMIT: int = 100  # bounds run time of one scheduled pass
    ENRICHMENT_STALE_AFTER_DAYS: int = 7
    ENRICHMENT_FRESH_HOURS: int = 24
    ENRICHMENT_RATE_LIMIT_DELAY_S: float = 2.0  # be polite to the provider
    ENRICHMENT_REQUIRED_SOURCES: list[str] = ["brightdata"]
    ENRICHMENT_PERSON_SOURCE: str = "brightdata"
    ENRICHMENT_COMPANY_SOURCE: str = "company"

    # --- Enrichment provider (BrightData-style person/company API) ---
    ENRICHMENT_API_KEY: str | None = None
    ENRICHMENT_BASE_URL: str = "https://api.brightdata.com/v1"

    # --- Outbound HTTP ---
    HTTP_TIMEOUT_S: float = 30.0
    HTTP_MAX_ATTEMPTS: int = 3
    HTTP_BACKOFF_BASE_S: float = 1.0

    # --- Scheduler tuning ---
    SCHED_PIPELINE_INTERVAL_MINUTES: int = 5
    SCHED_QUARANTINE_INTERVAL_MINUTES: int = 15
    SCHED_ENRICHMENT_INTERVAL_MINUTES: int = 1440  # daily


settings = Settings()
