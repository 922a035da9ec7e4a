"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), LOG_LEVEL (INFO), JWT_SECRET_KEY,
        JWT_ALGORITHM (HS256), OCR_BACKEND (tesseract), OCR_LANGUAGE (eng),
        TESSERACT_CMD, PDF_RENDER_SCALE (2.0), UPLOAD_DIR (uploads),
        UPLOAD_BASE_URL (/files), MAX_UPLOAD_BYTES (20 MiB)
    """

    PROJECT_NAME: str = "CaseNote"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str

    # Logging
    LOG_LEVEL: str = "INFO"

    # Auth context (tokens are issued elsewhere, we only verify them)
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"

    # OCR
    OCR_BACKEND: str = "tesseract"  # "tesseract" | "mock"
    OCR_LANGUAGE: str = "eng"
    TESSERACT_CMD: str | None = None
    PDF_RENDER_SCALE: float = 2.0

    # Uploads
    UPLOAD_DIR: str = "uploads"
    UPLOAD_BASE_URL: str = "/files"
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()  # type: ignore[call-arg]
