"""Unit tests for Config and the configuration singleton.

Tests cover:
- Database location per environment
- UNIT_CATALOG_ENV selecting the environment
- Singleton behavior of get_config()
"""

import logging
from pathlib import Path

import pytest

from src.utils.config import Config, get_config, get_database_url, reset_config
from src.utils.constants import DATABASE_FILENAME


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point the user's home directory at a temporary folder."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    monkeypatch.setattr("os.path.expanduser", lambda _: str(tmp_path))
    return tmp_path


class TestConfig:
    """Tests for Config paths."""

    def setup_method(self):
        """Reset config singleton before each test."""
        reset_config()

    def teardown_method(self):
        """Clean up after each test."""
        reset_config()

    def test_production_uses_documents_folder(self, fake_home):
        """Production databases live in Documents/UnitCatalog."""
        config = Config("production")

        assert config.is_production
        assert config.database_path == fake_home / "Documents" / "UnitCatalog" / DATABASE_FILENAME
        assert config.database_path.parent.is_dir()
        assert not config.database_exists()

    def test_database_url(self, fake_home):
        """The URL is a SQLite URL with forward slashes."""
        config = Config("production")
        assert config.database_url.startswith("sqlite:///")
        assert "\\" not in config.database_url
        assert config.database_url.endswith(DATABASE_FILENAME)

    def test_environment_variable(self, fake_home, monkeypatch):
        """UNIT_CATALOG_ENV selects the environment of the singleton."""
        monkeypatch.setenv("UNIT_CATALOG_ENV", "production")
        assert get_config().environment == "production"
        assert get_database_url() == get_config().database_url

    def test_singleton_ignores_new_environment(self, fake_home, caplog):
        """A second call with another environment returns the first instance."""
        first = get_config("production")
        with caplog.at_level(logging.WARNING):
            second = get_config("development")

        assert second is first
        assert "singleton already exists" in caplog.text
