from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: str = "sqlite:///./data/unidrive.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Folder handles are encrypted with a key derived from this secret
    SECRET_KEY: str = "change-me-unidrive-development-secret"

    # Storage settings
    STORAGE_BACKEND: str = "local"  # local | webdav | s3 | telegram
    STORAGE_BASE_PATH: str = "data/storage"
    STORAGE_TIMEOUT_SECONDS: float = 60.0
    STREAM_CHUNK_SIZE: int = 64 * 1024

    # WebDAV (path-addressed)
    WEBDAV_URL: str = ""
    WEBDAV_USERNAME: str = ""
    WEBDAV_PASSWORD: str = ""

    # S3 (object-addressed)
    S3_BUCKET: str = ""
    S3_REGION: str = "auto"
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None

    # Telegram (message-addressed)
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"

    # Upload settings
    UPLOAD_CONCURRENCY: int = 10
    MAX_FILENAME_BYTES: int = 255
    DEFAULT_MAX_STORAGE_BYTES: int = 1024 * 1024 * 1024  # 1 GiB, 0 = unlimited

    # Trash settings
    TRASH_RETENTION_DAYS: int = 30
    TRASH_SWEEP_INTERVAL_SECONDS: int = 24 * 60 * 60
    TRASH_SWEEP_ENABLED: bool = True

    # Folder locks
    FOLDER_PASSWORD_MIN_LENGTH: int = 4

    # "env_file": read overrides from .env
    # "extra": "ignore" unknown variables instead of failing
    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
