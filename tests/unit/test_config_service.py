"""Unit tests for ConfigService."""

from pathlib import Path

import pytest
import yaml

from sourcefetch.app_utils.config_schema import SourceFetchConfig
from sourcefetch.services.config_service import ConfigService


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file path."""
    return tmp_path / "config.yaml"


@pytest.fixture
def config_service(temp_config_file: Path) -> ConfigService:
    """Create a ConfigService instance with a temp file."""
    return ConfigService(temp_config_file)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("SOURCEFETCH_STT_URL", raising=False)
    monkeypatch.delenv("SOURCEFETCH_STT_API_KEY", raising=False)


class TestConfigServiceLoad:
    """Tests for ConfigService.load()."""

    def test_load_creates_default_when_missing(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        """Load creates default config when file doesn't exist."""
        config = config_service.load()

        assert config.retry.max_attempts == 2
        assert config.chains.video == [
            "captions",
            "audio-transcription",
            "metadata-placeholder",
        ]
        assert config.speech_to_text.base_url is None

        # File should be created
        assert temp_config_file.exists()

    def test_load_existing_config(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        """Load reads existing config correctly."""
        existing_config = {
            "retry": {"max_attempts": 3, "base_delay": 0.5},
            "chains": {"webpage": ["basic-scrape"]},
            "strategies": {"basic-scrape": {"timeout": 12}},
            "web": {"max_depth": 1},
        }
        temp_config_file.write_text(yaml.safe_dump(existing_config))

        config = config_service.load()

        assert config.retry.max_attempts == 3
        assert config.retry.base_delay == 0.5
        assert config.chains.webpage == ["basic-scrape"]
        assert config.strategy("basic-scrape").timeout == 12
        assert config.web.max_depth == 1
        # Default values for missing fields
        assert config.web.max_pages == 10
        assert config.documents.csv_preview_rows == 20

    def test_load_ignores_unknown_keys(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        temp_config_file.write_text(
            yaml.safe_dump({"retry": {"max_attempts": 4, "jitter": True}, "extra": 1})
        )

        assert config_service.load().retry.max_attempts == 4

    def test_load_corrupt_yaml_uses_defaults(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        temp_config_file.write_text("retry: [unclosed")

        config = config_service.load()

        assert config.retry.max_attempts == 2

    def test_load_invalid_values_raise(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        temp_config_file.write_text(yaml.safe_dump({"retry": {"max_attempts": 50}}))

        with pytest.raises(ValueError, match="max_attempts"):
            config_service.load()

    def test_environment_overrides_speech_to_text(
        self, config_service: ConfigService, monkeypatch
    ):
        monkeypatch.setenv("SOURCEFETCH_STT_URL", "https://stt.test")
        monkeypatch.setenv("SOURCEFETCH_STT_API_KEY", "secret")

        config = config_service.load()

        assert config.speech_to_text.base_url == "https://stt.test"
        assert config.speech_to_text.api_key == "secret"


class TestConfigServiceSave:
    """Tests for ConfigService.save()."""

    def test_save_round_trips(self, config_service: ConfigService):
        config = SourceFetchConfig.create_default()
        config.web.max_pages = 3

        config_service.save(config)

        assert config_service.load().web.max_pages == 3

    def test_save_creates_directory(self, tmp_path: Path):
        service = ConfigService(tmp_path / "nested" / "dir" / "config.yaml")
        service.save(SourceFetchConfig.create_default())

        assert (tmp_path / "nested" / "dir" / "config.yaml").exists()

    def test_environment_secret_not_written(
        self, config_service: ConfigService, temp_config_file: Path, monkeypatch
    ):
        monkeypatch.setenv("SOURCEFETCH_STT_API_KEY", "secret")

        config_service.save(config_service.load())

        data = yaml.safe_load(temp_config_file.read_text())
        assert data["speech_to_text"]["api_key"] is None

    def test_environment_url_not_written_over_file_value(
        self, config_service: ConfigService, temp_config_file: Path, monkeypatch
    ):
        temp_config_file.write_text(
            yaml.safe_dump({"speech_to_text": {"base_url": "https://file.test"}})
        )
        monkeypatch.setenv("SOURCEFETCH_STT_URL", "https://env.test")

        config = config_service.load()
        config.web.max_pages = 4
        config_service.save(config)

        data = yaml.safe_load(temp_config_file.read_text())
        assert data["speech_to_text"]["base_url"] == "https://file.test"
        assert data["web"]["max_pages"] == 4


class TestConfigServiceUpdate:
    """Tests for ConfigService.update()."""

    def test_update_sections(self, config_service: ConfigService):
        config = config_service.update(
            retry_max_attempts=4,
            web_max_depth=1,
            chains_video=["captions"],
            captions_languages=["de", "en"],
        )

        assert config.retry.max_attempts == 4
        assert config.web.max_depth == 1
        assert config.chains.video == ["captions"]
        assert config_service.load().captions.languages == ["de", "en"]

    def test_update_strategy_override(self, config_service: ConfigService):
        config = config_service.update(
            strategy_basic_scrape_timeout=20, strategy_captions_max_attempts=3
        )

        assert config.strategy("basic-scrape").timeout == 20
        assert config.strategy("captions").max_attempts == 3
        assert config.strategy("comprehensive-scrape").timeout is None

    def test_update_rejects_invalid_value(self, config_service: ConfigService):
        with pytest.raises(ValueError):
            config_service.update(retry_max_attempts=0)

    def test_unknown_keys_ignored(self, config_service: ConfigService, caplog):
        config = config_service.update(bogus_key=1, retry_nonexistent=2)

        assert config.retry.max_attempts == 2
        assert "Unknown config key ignored: 'bogus_key'" in caplog.text
        assert "retry_nonexistent" in caplog.text

    def test_update_keeps_environment_out_of_file(
        self, config_service: ConfigService, temp_config_file: Path, monkeypatch
    ):
        monkeypatch.setenv("SOURCEFETCH_STT_URL", "https://env.test")
        monkeypatch.setenv("SOURCEFETCH_STT_API_KEY", "secret")

        config = config_service.update(web_max_depth=1)

        data = yaml.safe_load(temp_config_file.read_text())
        assert data["speech_to_text"]["base_url"] is None
        assert data["speech_to_text"]["api_key"] is None
        assert data["web"]["max_depth"] == 1
        assert config.speech_to_text.base_url == "https://env.test"
