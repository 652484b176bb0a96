"""Tests for saved user defaults."""

import json

import pytest

from qlprint import settings as settings_module
from qlprint.settings import (
    Settings,
    clear_settings,
    has_saved_settings,
    load_settings,
    save_settings,
)


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    """Point the default settings location at a temp directory."""
    path = tmp_path / "config" / "settings.json"
    monkeypatch.setattr(settings_module, "SETTINGS_FILE", path)
    return path


class TestLoadSettings:
    """Test reading defaults."""

    def test_missing_file_gives_defaults(self, settings_file):
        assert load_settings() == Settings("/dev/usb/lp0", 5.0, 128)

    def test_reads_saved_values(self, settings_file):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(json.dumps(
            {"device": "/dev/usb/lp1", "timeout": 12, "threshold": 90}
        ))

        loaded = load_settings()

        assert loaded.device == "/dev/usb/lp1"
        assert loaded.timeout == 12.0
        assert isinstance(loaded.timeout, float)
        assert loaded.threshold == 90

    def test_partial_file_keeps_other_defaults(self, settings_file):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(json.dumps({"device": "/dev/ttyUSB0", "colour": "red"}))

        loaded = load_settings()

        assert loaded.device == "/dev/ttyUSB0"
        assert loaded.threshold == 128

    @pytest.mark.parametrize("content", [
        "not json",
        "[1, 2, 3]",
        '{"threshold": "dark"}',
        '{"threshold": 999}',
    ])
    def test_invalid_file_gives_defaults(self, settings_file, content):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(content)

        assert load_settings() == Settings()

    def test_explicit_path(self, tmp_path, settings_file):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"timeout": 1.5}))

        assert load_settings(path).timeout == 1.5


class TestSaveSettings:
    """Test writing and clearing defaults."""

    def test_save_creates_directory(self, settings_file):
        path = save_settings(Settings(device="/dev/usb/lp2"))

        assert path == settings_file
        assert json.loads(settings_file.read_text()) == {
            "device": "/dev/usb/lp2",
            "timeout": 5.0,
            "threshold": 128,
        }
        assert has_saved_settings()

    def test_save_then_load(self, settings_file):
        save_settings(Settings("/dev/ttyUSB1", 8.0, 60))
        assert load_settings() == Settings("/dev/ttyUSB1", 8.0, 60)

    def test_clear(self, settings_file):
        save_settings(Settings())

        assert clear_settings() is True
        assert not settings_file.exists()
        assert has_saved_settings() is False

    def test_clear_without_file(self, settings_file):
        assert clear_settings() is False
