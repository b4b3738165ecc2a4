"""Configuration service: YAML persistence of SourceFetchConfig.

This service provides a class-based interface with configurable paths.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from sourcefetch.app_utils.config_schema import SourceFetchConfig, StrategyConfig
from sourcefetch.app_utils.paths import get_config_file

logger = logging.getLogger(__name__)

STT_URL_ENV = "SOURCEFETCH_STT_URL"
STT_API_KEY_ENV = "SOURCEFETCH_STT_API_KEY"


class ConfigService:
    """Service for managing source-fetch configuration."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize config service.

        Args:
            config_file: Path to config file. Defaults to ~/.sourcefetch/config.yaml
        """
        self.config_file = Path(config_file) if config_file else get_config_file()
        self.config_dir = self.config_file.parent

    def load(self) -> SourceFetchConfig:
        """Load configuration from YAML file.

        Creates default config if file doesn't exist. Speech-to-text
        settings from the environment override the file and are never
        written back.

        Returns:
            SourceFetchConfig instance.

        Raises:
            ValueError: If the file holds invalid values.
        """
        return self._apply_env(self._read())

    def _read(self) -> SourceFetchConfig:
        """Config as stored in the file, without environment overrides."""
        if not self.config_file.exists():
            config = SourceFetchConfig.create_default()
            self._write(config.to_dict())
            return config
        try:
            with open(self.config_file, "r") as f:
                data = yaml.safe_load(f) or {}
            return SourceFetchConfig.from_dict(data)
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Could not read {self.config_file}, using defaults: {e}")
            return SourceFetchConfig.create_default()

    @staticmethod
    def _apply_env(config: SourceFetchConfig) -> SourceFetchConfig:
        url = os.environ.get(STT_URL_ENV)
        if url:
            config.speech_to_text.base_url = url
        api_key = os.environ.get(STT_API_KEY_ENV)
        if api_key:
            config.speech_to_text.api_key = api_key
        return config

    def _write(self, data: dict) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def save(self, config: SourceFetchConfig) -> None:
        """Save configuration to YAML file.

        Speech-to-text values that came from the environment are not
        written; the file keeps its own.

        Args:
            config: SourceFetchConfig to save.
        """
        data = config.to_dict()
        stt = data["speech_to_text"]
        env_values = {
            "base_url": os.environ.get(STT_URL_ENV),
            "api_key": os.environ.get(STT_API_KEY_ENV),
        }
        if any(env_values.values()):
            stored = self._read().speech_to_text
            for field_name, env_value in env_values.items():
                if env_value and stt[field_name] == env_value:
                    stt[field_name] = getattr(stored, field_name)

        self._write(data)

    def update(self, **kwargs: Any) -> SourceFetchConfig:
        """Update specific config values.

        Supports nested updates using prefixed keys:
        - retry_*: Updates retry config
        - validator_*: Updates validator config
        - chains_*: Updates strategy chains (chains_video=[...])
        - captions_*: Updates caption settings
        - speech_to_text_*: Updates speech-to-text settings
        - web_*: Updates webpage crawl settings
        - documents_*: Updates document settings
        - strategy_<id>_<field>: Per-strategy override, with '-' in ids
          written as '_' (strategy_basic_scrape_timeout=20)

        Args:
            **kwargs: Config values to update.

        Returns:
            Updated SourceFetchConfig.

        Examples:
            service.update(retry_max_attempts=3)
            service.update(web_max_depth=1)
        """
        config = self._read()

        sections = {
            "retry_": config.retry,
            "validator_": config.validator,
            "chains_": config.chains,
            "captions_": config.captions,
            "speech_to_text_": config.speech_to_text,
            "web_": config.web,
            "documents_": config.documents,
        }

        for key, value in kwargs.items():
            if key.startswith("strategy_"):
                if not self._update_strategy(config, key[len("strategy_") :], value):
                    logger.warning("Unknown config key ignored: '%s'", key)
                continue

            updated = False
            for prefix, section in sections.items():
                if key.startswith(prefix):
                    attr_name = key.replace(prefix, "", 1)
                    if hasattr(section, attr_name):
                        setattr(section, attr_name, value)
                        updated = True
                    else:
                        logger.warning(
                            "Config key '%s' matched prefix '%s' but attribute "
                            "'%s' not found on %s",
                            key,
                            prefix,
                            attr_name,
                            type(section).__name__,
                        )
                    break
            if not updated:
                logger.warning("Unknown config key ignored: '%s'", key)

        # Re-run validation on the edited sections
        config = SourceFetchConfig.from_dict(config.to_dict())
        self._write(config.to_dict())
        return self._apply_env(config)

    @staticmethod
    def _update_strategy(config: SourceFetchConfig, rest: str, value: Any) -> bool:
        for field_name in ("max_attempts", "base_delay", "timeout"):
            suffix = "_" + field_name
            if rest.endswith(suffix) and len(rest) > len(suffix):
                strategy_id = rest[: -len(suffix)].replace("_", "-")
                override = config.strategies.setdefault(strategy_id, StrategyConfig())
                setattr(override, field_name, value)
                return True
        return False
