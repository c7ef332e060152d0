"""
Tests for application settings.
"""

import pytest

from contactbook.config import Settings, get_settings


class TestSettings:
    def test_declared_defaults(self) -> None:
        # Environment variables may override runtime values; check the declared defaults.
        fields = Settings.model_fields
        assert fields["database_url"].default == "sqlite+aiosqlite:///./data/contacts.db"
        assert fields["default_page_limit"].default == 100
        assert fields["seed_data"].default is True
        assert fields["upload_dir"].default == "uploads"

    def test_cors_origins_list(self) -> None:
        settings = Settings(cors_origins="http://a.example, http://b.example ,")

        assert settings.cors_origins_list == ["http://a.example", "http://b.example"]

    def test_log_level_is_normalized(self) -> None:
        settings = Settings(log_level=" debug ")

        assert settings.log_level == "DEBUG"

    def test_is_production(self) -> None:
        assert Settings(app_env="prod").is_production is True
        assert Settings(app_env="dev").is_production is False

    def test_invalid_env_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(app_env="staging")

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEFAULT_PAGE_LIMIT", "25")
        monkeypatch.setenv("SEED_DATA", "false")

        settings = get_settings()

        assert settings.default_page_limit == 25
        assert settings.seed_data is False
