"""Tests for reader configuration."""

from pathlib import Path

import pytest

from rebook.config import ReaderConfig


class TestReaderConfig:
    def test_defaults(self):
        config = ReaderConfig(data_dir="/tmp/rebook-test")
        assert config.word_limit == 250
        assert config.lookahead_pages == 3
        assert config.chunk_size == 2
        assert config.library_path == Path("/tmp/rebook-test/library.json")
        assert config.positions_path == Path("/tmp/rebook-test/positions.json")

    @pytest.mark.parametrize("field, value", [
        ("word_limit", 0),
        ("lookahead_pages", 0),
        ("chunk_size", 0),
    ])
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            ReaderConfig(**{field: value})

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("REBOOK_WORD_LIMIT", "120")
        monkeypatch.setenv("REBOOK_LOOKAHEAD_PAGES", "5")
        monkeypatch.setenv("REBOOK_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("REBOOK_PROVIDER", "external")
        monkeypatch.setenv("REBOOK_EXTERNAL_TTS_URL", "http://tts.local")
        monkeypatch.setenv("REBOOK_EXTERNAL_TTS_API_KEY", "secret")

        config = ReaderConfig.from_env(dotenv=False)

        assert config.word_limit == 120
        assert config.lookahead_pages == 5
        assert config.data_dir == tmp_path
        assert config.provider_options() == {"base_url": "http://tts.local", "api_key": "secret"}

    def test_from_env_ignores_bad_integers(self, monkeypatch):
        monkeypatch.setenv("REBOOK_WORD_LIMIT", "many")
        assert ReaderConfig.from_env(dotenv=False).word_limit == 250

    def test_local_providers_take_no_options(self):
        assert ReaderConfig(provider="edge").provider_options() == {}
