from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./feedback_hub.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///./test.db"
    # Creates missing tables on startup; turn off when Alembic owns the schema.
    AUTO_CREATE_TABLES: bool = True

    ANTHROPIC_API_KEY: str = ""
    LLM_MODEL: str = "claude-sonnet-4-20250514"
    LLM_TIMEOUT_SECONDS: float = 60.0

    AGGREGATION_INTERVAL_SECONDS: int = 86400
    AGGREGATION_DEFAULT_DAYS: int = 7
    SCHEDULER_ENABLED: bool = True

    UNPROCESSED_FETCH_LIMIT: int = 100
    PIPELINE_MAX_ATTEMPTS: int = 3

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:5173"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _fix_database_url(self):
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if self.DATABASE_URL.startswith("postgresql://"):
            self.DATABASE_URL = self.DATABASE_URL.replace(
                "postgresql://", "postgresql+asyncpg://", 1,
            )
        return self


settings = Settings()
