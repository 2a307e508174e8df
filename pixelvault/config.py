#config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)
    # Application Settings
    APP_NAME: str = "PixelVault"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./pixelvault.db")

    # Security Settings
    SECRET_KEY: str = Field(default="change-me-in-production-pixelvault-jwt-key", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60

    # CORS Settings (comma-separated)
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Upload Settings
    UPLOAD_DIR: str = "uploads"
    IMAGE_SUBDIR: str = "images"
    MAX_FILE_SIZE: int = 100 * 1024 * 1024  # 100MB
    MAX_FILES_PER_BATCH: int = 50
    ALLOWED_MIME_PREFIX: str = "image/"
    INGEST_TIMEOUT_SECONDS: float = 120.0

    # Storage quota
    DEFAULT_MAX_STORAGE: int = 10 * 1024 * 1024 * 1024  # 10GB

    # Listing
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("MAX_FILE_SIZE", "MAX_FILES_PER_BATCH", "DEFAULT_MAX_STORAGE", "MAX_PAGE_SIZE", "INGEST_TIMEOUT_SECONDS")
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("ALLOWED_MIME_PREFIX")
    @classmethod
    def normalize_mime_prefix(cls, v: str) -> str:
        # Matched against lower-cased content types
        return v.strip().lower()

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def image_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, self.IMAGE_SUBDIR)


@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # CORS_ORIGINS is accepted as an alias for ALLOWED_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()
