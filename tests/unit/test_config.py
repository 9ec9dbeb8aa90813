from pathlib import Path

import pytest

from filevault.config.settings import DEFAULT_ALLOWED_EXTENSIONS, Settings


@pytest.mark.unit
class TestSettings:
    def test_default_settings(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        settings = Settings(_env_file=None)
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.port == 3000
        assert settings.max_file_size == 50 * 1024 * 1024
        assert settings.max_files_per_upload == 5
        assert settings.allowed_extensions == DEFAULT_ALLOWED_EXTENSIONS
        assert settings.upload_root == tmp_path.resolve() / "uploads"

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "files"))
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("MAX_FILES_PER_UPLOAD", "3")
        settings = Settings(_env_file=None)
        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.max_files_per_upload == 3
        assert settings.upload_root == (tmp_path / "files").resolve()

    def test_database_defaults_inside_upload_root(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, uploads_dir=str(tmp_path))
        assert settings.resolved_database_url == (
            f"sqlite+aiosqlite:///{tmp_path.resolve() / '.metadata.db'}"
        )
        assert settings.protected_dirs_path == tmp_path.resolve() / ".protected_dirs.json"

    def test_explicit_database_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://user:pass@db:5432/files")
        settings = Settings(_env_file=None)
        assert settings.resolved_database_url == "postgresql+asyncpg://user:pass@db:5432/files"

    def test_mirror_disabled_without_host(self) -> None:
        assert Settings(_env_file=None).mirror_enabled is False
        assert Settings(_env_file=None, ftp_host="ftp.example.com").mirror_enabled is True
