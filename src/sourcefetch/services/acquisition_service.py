"""Acquisition service - the caller-facing entry point of the pipeline.

Builds the strategy registry and chains from configuration, owns the
session-scoped result store, and exposes acquire/status/invalidate.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from sourcefetch.app_utils.config_schema import SourceFetchConfig
from sourcefetch.core.cancellation import CancellationToken
from sourcefetch.core.errors import PipelineConfigError
from sourcefetch.core.orchestrator import (
    AcquisitionOrchestrator,
    AcquisitionResult,
    ChainStep,
)
from sourcefetch.core.result_store import ResultStore, StoreEntry
from sourcefetch.core.retry import RetryController
from sourcefetch.core.source import SourceDescriptor, SourceKind
from sourcefetch.core.validator import ContentValidator
from sourcefetch.services.config_service import ConfigService
from sourcefetch.strategies import (
    AudioTranscriptionStrategy,
    BasicScrapeStrategy,
    CaptionsStrategy,
    ComprehensiveScrapeStrategy,
    ExtractionStrategy,
    FormatParserStrategy,
    MetadataPlaceholderStrategy,
    StrategyRegistry,
)

logger = logging.getLogger(__name__)


def build_default_registry(config: SourceFetchConfig) -> StrategyRegistry:
    """Registry holding every built-in strategy, configured from ``config``."""
    registry = StrategyRegistry()
    stt = config.speech_to_text
    registry.register(
        CaptionsStrategy(
            languages=config.captions.languages,
            max_transcript_chars=config.captions.max_transcript_chars,
        )
    )
    registry.register(
        AudioTranscriptionStrategy(
            base_url=stt.base_url,
            api_key=stt.api_key,
            model=stt.model,
            language=stt.language,
            max_duration_seconds=stt.max_duration_seconds,
        )
    )
    registry.register(MetadataPlaceholderStrategy())
    registry.register(
        ComprehensiveScrapeStrategy(
            max_depth=config.web.max_depth,
            max_pages=config.web.max_pages,
            request_delay=config.web.request_delay,
            max_page_chars=config.web.max_page_chars,
        )
    )
    registry.register(BasicScrapeStrategy())
    registry.register(
        FormatParserStrategy(
            max_file_bytes=config.documents.max_file_bytes,
            csv_preview_rows=config.documents.csv_preview_rows,
        )
    )
    return registry


def build_chains(
    config: SourceFetchConfig, registry: StrategyRegistry
) -> Dict[SourceKind, List[ChainStep]]:
    """Resolve configured strategy ids into chain steps.

    Raises:
        PipelineConfigError: A chain names a strategy that is not registered.
    """
    chains: Dict[SourceKind, List[ChainStep]] = {}
    for kind_name, strategy_ids in config.chains.as_mapping().items():
        steps = []
        for strategy_id in strategy_ids:
            strategy = registry.get(strategy_id)
            if strategy is None:
                raise PipelineConfigError(
                    f"Unknown strategy '{strategy_id}' in {kind_name} chain; "
                    f"registered: {', '.join(registry.list_strategies())}"
                )
            override = config.strategy(strategy_id)
            steps.append(
                ChainStep(
                    strategy=strategy,
                    timeout=override.timeout,
                    max_attempts=override.max_attempts or config.retry.max_attempts,
                    base_delay=(
                        override.base_delay
                        if override.base_delay is not None
                        else config.retry.base_delay
                    ),
                )
            )
        chains[SourceKind(kind_name)] = steps
    return chains


class AcquisitionService:
    """Session-scoped facade over the acquisition pipeline.

    Use as an async context manager so the result store is cleared when the
    session ends:

        async with AcquisitionService() as service:
            result = await service.acquire(
                SourceDescriptor.create("webpage", "example.com")
            )
    """

    def __init__(
        self,
        config: Optional[SourceFetchConfig] = None,
        registry: Optional[StrategyRegistry] = None,
        retry: Optional[RetryController] = None,
    ):
        self.config = config or SourceFetchConfig.create_default()
        self.registry = registry or build_default_registry(self.config)
        self.store = ResultStore()
        self._retry = retry or RetryController(max_delay=self.config.retry.max_delay)
        self.orchestrator = self._build_orchestrator()

    @classmethod
    def from_config_file(
        cls, config_file: Optional[Union[str, Path]] = None
    ) -> "AcquisitionService":
        return cls(config=ConfigService(config_file).load())

    def _build_orchestrator(self) -> AcquisitionOrchestrator:
        validator_cfg = self.config.validator
        return AcquisitionOrchestrator(
            chains=build_chains(self.config, self.registry),
            validator=ContentValidator(
                min_content_chars=validator_cfg.min_content_chars,
                max_body_chars=validator_cfg.max_body_chars,
                max_non_text_ratio=validator_cfg.max_non_text_ratio,
                base64_run_chars=validator_cfg.base64_run_chars,
            ),
            store=self.store,
            retry=self._retry,
        )

    def register_strategy(self, strategy: ExtractionStrategy) -> None:
        """Register (or replace) a strategy and rebuild the chains.

        A new strategy only runs once a chain names it; replacing a built-in
        takes effect immediately.
        """
        self.registry.register(strategy)
        self.orchestrator = self._build_orchestrator()

    async def acquire(
        self,
        descriptor: SourceDescriptor,
        cancel: Optional[CancellationToken] = None,
    ) -> AcquisitionResult:
        """Acquire content for a source; see AcquisitionOrchestrator.acquire."""
        return await self.orchestrator.acquire(descriptor, cancel)

    def status(
        self, kind: Union[SourceKind, str], reference: str
    ) -> Optional[StoreEntry]:
        """Current store entry for a source, without triggering extraction."""
        descriptor = SourceDescriptor.create(kind, reference)
        return self.store.get(descriptor.key)

    def invalidate(self, kind: Union[SourceKind, str], reference: str) -> bool:
        descriptor = SourceDescriptor.create(kind, reference)
        return self.store.invalidate(descriptor.key)

    def close(self) -> None:
        """End the session and drop all stored results."""
        self.store.clear()
        logger.debug("Acquisition session closed")

    async def __aenter__(self) -> "AcquisitionService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
