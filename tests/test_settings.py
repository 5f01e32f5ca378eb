"""Tests for settings persistence."""

import json

from dialogue_prompts.settings import SETTINGS_ENV, Settings, default_settings_path, load_settings, save_settings


class TestSettings:
    """Test loading, saving and sanitizing settings."""

    def test_defaults_when_missing(self, tmp_path):
        settings = load_settings(tmp_path / "nope.json")

        assert settings == Settings()
        assert settings.enable_prompts is True
        assert settings.advanced_json is False

    def test_round_trip(self, tmp_path):
        path = tmp_path / "settings.json"
        save_settings(Settings(enable_prompts=False, advanced_json=True, log_level="debug"), path)

        loaded = load_settings(path)
        assert loaded.enable_prompts is False
        assert loaded.advanced_json is True
        assert loaded.log_level == "DEBUG"
        assert json.loads(path.read_text())["enable_prompts"] is False

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{broken")

        assert load_settings(path) == Settings()

    def test_string_booleans_and_bad_level(self):
        settings = Settings.from_dict({"enable_prompts": "off", "advanced_json": "yes", "log_level": "LOUD"})

        assert settings.enable_prompts is False
        assert settings.advanced_json is True
        assert settings.log_level == "WARNING"

    def test_env_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv(SETTINGS_ENV, str(tmp_path / "env.json"))

        assert default_settings_path() == tmp_path / "env.json"
