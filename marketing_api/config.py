from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./marketing.db"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Segmentation
    CONTACT_PAGE_SIZE: int = 500
    MEMBER_BATCH_SIZE: int = 25
    SEGMENT_EVALUATION_TIMEOUT_SECONDS: float | None = 120
    PREVIEW_SAMPLE_SIZE: int = 20

    @field_validator('CONTACT_PAGE_SIZE')
    @classmethod
    def check_page_size(cls, v: int) -> int:
        if not 1 <= v <= 1000:
            raise ValueError("CONTACT_PAGE_SIZE must be between 1 and 1000")
        return v

    @field_validator('MEMBER_BATCH_SIZE')
    @classmethod
    def check_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MEMBER_BATCH_SIZE must be positive")
        return v

    @field_validator('SEGMENT_EVALUATION_TIMEOUT_SECONDS')
    @classmethod
    def zero_disables_timeout(cls, v: float | None) -> float | None:
        """A timeout of 0 turns the limit off."""
        if v is not None and v <= 0:
            return None
        return v

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    DOCS_ENABLED: bool = True
    SQL_ECHO: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        """SQL echo only outside production."""
        return self.SQL_ECHO and not self.is_production

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
