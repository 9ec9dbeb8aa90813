"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_ALLOWED_EXTENSIONS = frozenset(
    {
        ".jpeg",
        ".jpg",
        ".png",
        ".gif",
        ".pdf",
        ".doc",
        ".docx",
        ".txt",
        ".zip",
        ".rar",
        ".mp3",
        ".mp4",
        ".avi",
    }
)

# Reserved names inside the upload root (dot-prefixed, never treated as content)
METADATA_DB_NAME = ".metadata.db"
PROTECTED_DIRS_NAME = ".protected_dirs.json"


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Storage
    uploads_dir: str = "./uploads"
    database_url: str | None = None  # Defaults to SQLite inside the upload root
    protected_dirs_file: str | None = None  # Defaults to a dot-file inside the upload root

    # Upload limits
    max_file_size: int = 50 * 1024 * 1024
    max_files_per_upload: int = 5
    allowed_extensions: frozenset[str] = DEFAULT_ALLOWED_EXTENSIONS
    upload_rate_limit: int = 10
    upload_rate_window_seconds: int = 15 * 60

    # FTP mirror (disabled when ftp_host is empty)
    ftp_host: str = ""
    ftp_port: int = 21
    ftp_user: str = "anonymous"
    ftp_password: str = ""
    ftp_remote_dir: str = "/"
    ftp_timeout_seconds: int = 30

    # App
    host: str = "0.0.0.0"  # nosec B104
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"
    quiet_loggers: list[str] = ["aiosqlite", "multipart", "python_multipart"]
    allowed_origins: list[str] = ["http://localhost:3000"]

    @property
    def upload_root(self) -> Path:
        return Path(self.uploads_dir).expanduser().resolve()

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.upload_root / METADATA_DB_NAME}"

    @property
    def protected_dirs_path(self) -> Path:
        if self.protected_dirs_file:
            return Path(self.protected_dirs_file).expanduser().resolve()
        return self.upload_root / PROTECTED_DIRS_NAME

    @property
    def mirror_enabled(self) -> bool:
        return bool(self.ftp_host)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
