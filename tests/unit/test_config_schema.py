"""Unit tests for the configuration schema."""

import pytest

from sourcefetch.app_utils.config_schema import (
    RetryConfig,
    SourceFetchConfig,
    SpeechToTextConfig,
    StrategyConfig,
    ValidatorConfig,
    WebConfig,
)


@pytest.mark.unit
class TestDefaults:
    def test_create_default(self):
        config = SourceFetchConfig.create_default()

        assert config.retry.base_delay == 1.0
        assert config.retry.max_delay == 10.0
        assert config.validator.min_content_chars == 10
        assert config.chains.as_mapping() == {
            "video": ["captions", "audio-transcription", "metadata-placeholder"],
            "webpage": ["comprehensive-scrape", "basic-scrape"],
            "document": ["format-parser"],
        }
        assert config.captions.languages == ["en"]
        assert config.speech_to_text.max_duration_seconds == 600
        assert config.strategies == {}

    def test_chains_are_independent_copies(self):
        a = SourceFetchConfig.create_default()
        b = SourceFetchConfig.create_default()
        a.chains.video.append("custom")
        assert "custom" not in b.chains.video

    def test_strategy_without_override(self):
        override = SourceFetchConfig.create_default().strategy("captions")
        assert override == StrategyConfig()


@pytest.mark.unit
class TestValidation:
    @pytest.mark.parametrize(
        "factory",
        [
            lambda: RetryConfig(max_attempts=0),
            lambda: RetryConfig(max_attempts=11),
            lambda: RetryConfig(base_delay=-1),
            lambda: RetryConfig(base_delay=5.0, max_delay=1.0),
            lambda: ValidatorConfig(min_content_chars=0),
            lambda: ValidatorConfig(min_content_chars=100, max_body_chars=50),
            lambda: ValidatorConfig(max_non_text_ratio=0),
            lambda: StrategyConfig(timeout=0),
            lambda: StrategyConfig(max_attempts=20),
            lambda: SpeechToTextConfig(max_duration_seconds=0),
            lambda: WebConfig(max_depth=-1),
            lambda: WebConfig(max_pages=0),
        ],
    )
    def test_invalid_values_rejected(self, factory):
        with pytest.raises(ValueError):
            factory()


@pytest.mark.unit
class TestSerialization:
    def test_round_trip(self):
        config = SourceFetchConfig.create_default()
        config.strategies["basic-scrape"] = StrategyConfig(timeout=20)
        config.speech_to_text.base_url = "https://stt.test"

        restored = SourceFetchConfig.from_dict(config.to_dict())

        assert restored == config

    def test_unset_overrides_omitted(self):
        config = SourceFetchConfig.create_default()
        config.strategies["captions"] = StrategyConfig(max_attempts=3)

        assert config.to_dict()["strategies"] == {"captions": {"max_attempts": 3}}

    def test_from_partial_dict(self):
        config = SourceFetchConfig.from_dict(
            {"web": {"max_depth": 0}, "strategies": {"captions": None}}
        )

        assert config.web.max_depth == 0
        assert config.web.max_pages == 10
        assert config.strategy("captions") == StrategyConfig()
