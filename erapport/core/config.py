# erapport/core/config.py - Centralized settings management using Pydantic
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from typing import Annotated, List, Optional
import secrets

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
]


class Settings(BaseSettings):
    """Application settings with validation and type safety"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Environment
    ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    DEBUG: bool = Field(default=False, description="Debug mode")
    API_TITLE: str = Field(default="eRapport API", description="API title")
    API_VERSION: str = Field(default="1.0.0", description="API version")

    # Database Configuration
    # An URL without host/user lets libpq resolve PGHOST, PGUSER, PGDATABASE, ...
    DATABASE_URL: str = Field(default="postgresql+psycopg2://", description="Database connection URL")
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL queries")
    DATABASE_POOL_SIZE: int = Field(default=5, ge=1, le=100, description="Connection pool size")
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0, le=100, description="Max overflow connections")
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, le=300, description="Pool timeout in seconds")
    DATABASE_POOL_RECYCLE: int = Field(default=3600, ge=300, description="Pool recycle time in seconds")

    # Token Configuration
    TOKEN_SECRET: str = Field(default_factory=lambda: secrets.token_urlsafe(48), description="Token signing secret")
    TOKEN_ALGORITHM: str = Field(default="HS256", description="Token signing algorithm")
    TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7, ge=1, description="Access token expiry")
    TOKEN_ISSUER: str = Field(default="erapport", description="Token issuer")
    PASSWORD_HASH_ROUNDS: int = Field(default=120000, ge=1000, description="PBKDF2 rounds")

    # CORS Configuration
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default=DEFAULT_CORS_ORIGINS, description="CORS allowed origins")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="detailed", description="Log format: simple, detailed")
    LOG_FILE_PATH: Optional[str] = Field(default=None, description="Log file path")
    LOG_MAX_SIZE: int = Field(default=10485760, description="Max log file size in bytes (10MB)")
    LOG_BACKUP_COUNT: int = Field(default=5, description="Number of log backup files")

    # Evaluation defaults
    EVALUATION_TYPES: Annotated[List[str], NoDecode] = Field(default=["E1", "E2", "E3"], description="Known evaluation types")
    DEFAULT_SCHOOL_YEARS: Annotated[List[str], NoDecode] = Field(
        default=["2024-2025", "2025-2026"],
        description="School year labels seeded on an empty database",
    )
    DEFAULT_MODULE_TITLE: str = Field(
        default="123 - Activer les services d'un serveur",
        description="Title of the built-in default module",
    )

    @field_validator("ENV")
    @classmethod
    def validate_environment(cls, v):
        allowed_envs = ["dev", "development", "test", "staging", "prod", "production"]
        if v.lower() not in allowed_envs:
            raise ValueError(f"ENV must be one of: {allowed_envs}")
        return v.lower()

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        allowed_prefixes = (
            "postgresql://",
            "postgresql+psycopg2://",
            "postgresql+psycopg://",
            "sqlite://",
        )
        if not v.startswith(allowed_prefixes):
            raise ValueError("DATABASE_URL must be a postgresql or sqlite connection string")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("CORS_ORIGINS", "EVALUATION_TYPES", "DEFAULT_SCHOOL_YEARS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v, info):
        if isinstance(v, str):
            # Handle comma-separated string
            values = [item.strip() for item in v.split(",") if item.strip()]
            if not values and info.field_name == "CORS_ORIGINS":
                return list(DEFAULT_CORS_ORIGINS)
            return values
        return v

    @field_validator("EVALUATION_TYPES")
    @classmethod
    def validate_evaluation_types(cls, v):
        if not v:
            raise ValueError("EVALUATION_TYPES must not be empty")
        return [item.upper() for item in v]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENV in ["dev", "development"]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENV in ["prod", "production"]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def get_cors_config(self) -> dict:
        """Get CORS configuration for FastAPI"""
        return {
            "allow_origins": self.CORS_ORIGINS,
            "allow_credentials": True,
            "allow_methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "Accept", "Origin"],
        }

    def safe_database_url(self) -> str:
        """Database URL without credentials, for logs"""
        if "@" in self.DATABASE_URL:
            return self.DATABASE_URL.split("@")[-1]
        return self.DATABASE_URL


# Create settings instance with validation
try:
    settings = Settings()
except Exception as e:
    print(f"Configuration error: {e}")
    print("Please check your .env file and environment variables")
    raise

# Export settings
__all__ = ["settings", "Settings"]
