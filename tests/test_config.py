"""Tests for configuration loading."""

import pytest
from pathlib import Path

from palace.config import (
    Limits,
    RepositoryConfiguration,
    load_settings,
    read_repository_config,
    write_repository_config,
)
from palace.storage import InMemoryStorage

ENV_KEYS = ["PALACE_DATA_DIR", "PALACE_LOG_LEVEL", "PALACE_MAX_RESULTS"]


class TestSettings:
    def test_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        for key in ENV_KEYS:
            monkeypatch.delenv(key, raising=False)

        settings = load_settings()
        assert settings.data_dir == ".palace"
        assert settings.log_level == "INFO"
        assert settings.max_results == 50

    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PALACE_DATA_DIR", ".notes")
        monkeypatch.setenv("PALACE_MAX_RESULTS", "5")

        settings = load_settings()
        assert settings.data_dir == ".notes"
        assert settings.max_results == 5

    def test_toml_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for key in ENV_KEYS:
            monkeypatch.delenv(key, raising=False)

        toml_path = tmp_path / "palace.toml"
        toml_path.write_text("""
data_dir = ".kb"
log_level = "DEBUG"
max_results = 10
""")
        settings = load_settings(toml_path)
        assert settings.data_dir == ".kb"
        assert settings.log_level == "DEBUG"
        assert settings.max_results == 10

    def test_toml_in_cwd(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for key in ENV_KEYS:
            monkeypatch.delenv(key, raising=False)
        (tmp_path / "palace.toml").write_text('log_level = "WARNING"\n')

        assert load_settings().log_level == "WARNING"

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PALACE_LOG_LEVEL", "ERROR")

        toml_path = tmp_path / "palace.toml"
        toml_path.write_text('log_level = "DEBUG"\n')
        settings = load_settings(toml_path)
        assert settings.log_level == "ERROR"  # env wins


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage({"/repo/.git/HEAD": ""})


class TestRepositoryConfiguration:
    def test_defaults_written_on_first_read(self, storage: InMemoryStorage):
        config = read_repository_config(storage, "/repo")
        assert config == RepositoryConfiguration()
        assert config.limits.note_max_length == 500
        assert config.limits.max_tags_per_note == 3
        assert config.limits.max_anchors_per_note == 5
        assert config.limits.tag_description_max_length == 500
        assert config.tags.enforce_allowed_tags is False
        text = storage.files["/repo/.palace/config.toml"]
        assert "[limits]" in text
        assert "note_max_length = 500" in text

    def test_partial_document_merged_over_defaults(self, storage: InMemoryStorage):
        storage.write_file("/repo/.palace/config.toml", "[limits]\nmax_tags_per_note = 8\n")
        config = read_repository_config(storage, "/repo")
        assert config.limits.max_tags_per_note == 8
        assert config.limits.note_max_length == 500
        assert config.tags.enforce_allowed_tags is False

    def test_external_edits_visible(self, storage: InMemoryStorage):
        read_repository_config(storage, "/repo")
        storage.write_file("/repo/.palace/config.toml", "[tags]\nenforce_allowed_tags = true\n")
        assert read_repository_config(storage, "/repo").tags.enforce_allowed_tags is True

    def test_unreadable_falls_back_to_defaults(self, storage: InMemoryStorage):
        storage.write_file("/repo/.palace/config.toml", "[limits\nbroken")
        assert read_repository_config(storage, "/repo") == RepositoryConfiguration()

    def test_round_trip(self, storage: InMemoryStorage):
        config = RepositoryConfiguration(limits=Limits(note_max_length=1000))
        config.tags.enforce_allowed_tags = True
        write_repository_config(storage, "/repo", config, ".kb")
        assert "/repo/.kb/config.toml" in storage.files
        assert read_repository_config(storage, "/repo", ".kb") == config
