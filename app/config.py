from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application Config
    PROJECT_NAME: str = Field(default="BloodLink API", env="PROJECT_NAME")
    PROJECT_DESCRIPTION: str = Field(
        default="Blood donation coordination service", env="PROJECT_DESCRIPTION"
    )
    VERSION: str = Field(default="1.0.0", env="VERSION")
    API_PREFIX: str = Field(default="/api", env="API_PREFIX")
    DOCS_URL: str = Field(default="/docs", env="DOCS_URL")

    # Environment
    ENVIRONMENT: str = Field(default="development", env="ENVIRONMENT")
    DEBUG: bool = Field(default=True, env="DEBUG")

    # Database
    DATABASE_URL: str = Field(default="", env="DATABASE_URL")
    DATABASE_POOL_SIZE: int = Field(default=5, env="DATABASE_POOL_SIZE")
    DATABASE_MAX_OVERFLOW: int = Field(default=10, env="DATABASE_MAX_OVERFLOW")

    # Development database fallback
    DEV_DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./db.sqlite3", env="DEV_DATABASE_URL"
    )

    # Security
    SECRET_KEY: str = Field(default="dev-secret-key", env="SECRET_KEY")
    ALGORITHM: str = Field(default="HS256", env="ALGORITHM")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=180, env="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # CORS Configuration
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost",
        ]
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=True, env="LOG_TO_FILE")

    # Matching
    DEFAULT_SEARCH_RADIUS_KM: float = Field(default=10.0, env="DEFAULT_SEARCH_RADIUS_KM")
    MAX_SEARCH_RADIUS_KM: float = Field(default=500.0, env="MAX_SEARCH_RADIUS_KM")
    NEARBY_RESULT_LIMIT: int = Field(default=20, env="NEARBY_RESULT_LIMIT")

    # Background jobs
    ENABLE_SCHEDULER: bool = Field(default=True, env="ENABLE_SCHEDULER")
    BADGE_REFRESH_MINUTES: int = Field(default=30, env="BADGE_REFRESH_MINUTES")

    # Admin panel
    ENABLE_ADMIN_PANEL: bool = Field(default=True, env="ENABLE_ADMIN_PANEL")
    ADMIN_PATH: str = Field(default="/admin", env="ADMIN_PATH")

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def model_post_init(self, __context) -> None:
        """Post-initialization validation and setup"""
        # Handle CORS origins from comma-separated string
        if isinstance(self.BACKEND_CORS_ORIGINS, str):
            self.BACKEND_CORS_ORIGINS = [
                origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",")
            ]

        if self.ENVIRONMENT.lower() == "production":
            if not self.DATABASE_URL:
                raise ValueError("DATABASE_URL must be set in production!")
            if not self.SECRET_KEY or self.SECRET_KEY == "dev-secret-key":
                raise ValueError(
                    "SECRET_KEY must be set to a secure value in production!"
                )
        else:
            # In development, use DATABASE_URL if provided, otherwise fall back to DEV_DATABASE_URL
            if not self.DATABASE_URL:
                self.DATABASE_URL = self.DEV_DATABASE_URL


# Instantiate settings
settings = Settings()
