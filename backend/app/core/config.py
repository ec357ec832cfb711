from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    OPENAI_API_KEY: str
    OPENAI_MODEL: str = "gpt-4o-mini"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSION: int = 1536
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"

    DATABASE_URL: str = "sqlite+aiosqlite:///./martin.db"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    API_VERSION: str = "v1"
    FRONTEND_URL: str = "http://localhost:8081"

    JWT_SECRET: str = "CHANGE_THIS_MARTIN_SECRET"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    PINECONE_API_KEY: str | None = None
    PINECONE_INDEX: str = "martin-memory"
    PINECONE_CLOUD: str = "aws"
    PINECONE_REGION: str = "us-east-1"

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None

    # Scheduling
    TIMEZONE: str = "UTC"
    WORKING_HOURS_START: int = 9
    WORKING_HOURS_END: int = 17
    SLOT_STEP_MINUTES: int = 30
    MAX_SLOT_SUGGESTIONS: int = 5

    # Retention sweep
    RETENTION_DAYS: int = 30
    RETENTION_SWEEP_HOUR: int = 3

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

@lru_cache
def get_settings():
    return Settings()
