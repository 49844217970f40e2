from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    store_backend: str = "postgres"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "filesense"
    db_username: str = "filesense"
    db_password: str = "secret"

    files_root: str = "/app/files"
    session_poll_interval_seconds: int = 5

    max_files_per_batch: int = 20
    max_file_size_bytes: int = 50 * 1024 * 1024
    allowed_mime_types: list[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/pdf",
    ]

    guest_file_limit: int = 5
    free_monthly_limit: int = 20

    pdf_engine: str = "pdfplumber"
    ocr_engine: str = "tesseract"
    tesseract_lang: str = "eng"

    naming_provider: str = "openai"
    naming_api_key: str = ""
    naming_model_name: str = "gpt-3.5-turbo"
    naming_base_url: str | None = None
    naming_timeout_seconds: int = 30
    naming_temperature: float = 0.1
    naming_max_tokens: int = 50
    naming_fallback_enabled: bool = True
