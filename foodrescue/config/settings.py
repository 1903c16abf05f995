from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Database
    database_url: str = "duckdb://./data/foodrescue.duckdb"

    # JWT
    jwt_secret_key: Optional[str] = None
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 7 days

    # None: demo mode whenever no signing secret is configured
    demo_mode: Optional[bool] = None

    # API
    api_title: str = "Food Rescue Platform API"
    api_version: str = "1.0.0"
    api_prefix: str = ""
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Business rules
    cancellation_cutoff_hours: int = 24

    # Security
    bcrypt_rounds: int = 12

    log_level: str = "INFO"
    debug: bool = False

    @property
    def is_demo(self) -> bool:
        if self.demo_mode is not None:
            return self.demo_mode
        return not self.jwt_secret_key


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
