"""Extraction strategy contract and registry.

This module provides a pluggable architecture for obtaining content. Each
strategy is one concrete way to get text for one source kind; the
orchestrator chains them and the registry resolves configured strategy ids
to instances.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sourcefetch.core.constants import DEFAULT_STRATEGY_TIMEOUTS
from sourcefetch.core.source import Confidence, RawResult, SourceKind

logger = logging.getLogger(__name__)


class ExtractionStrategy(ABC):
    """Base class for extraction strategies."""

    kind: SourceKind
    confidence: Confidence = Confidence.PRIMARY

    @property
    @abstractmethod
    def strategy_id(self) -> str:
        """Stable identifier used in chains and reports (e.g. 'captions')."""
        pass

    @property
    def default_timeout(self) -> Optional[float]:
        """Per-attempt budget used when the configuration sets none."""
        return DEFAULT_STRATEGY_TIMEOUTS.get(self.strategy_id)

    @abstractmethod
    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        """
        Obtain raw content for a source.

        Args:
            reference: Canonical source reference (video id, URL, file path)
            hints: Advisory hints from the SourceDescriptor
            budget: Seconds this attempt may take

        Returns:
            RawResult with this strategy's id and confidence

        Raises:
            SourceUnavailableError: The source has no content for this strategy
            ExtractionError: The call failed (network, configuration, ...)
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.strategy_id!r})"


class StrategyRegistry:
    """Registry mapping strategy ids to instances."""

    def __init__(self):
        self._strategies: Dict[str, ExtractionStrategy] = {}

    def register(self, strategy: ExtractionStrategy) -> None:
        """
        Register a strategy, replacing any previous one with the same id.

        Args:
            strategy: ExtractionStrategy instance to register
        """
        if strategy.strategy_id in self._strategies:
            logger.info(f"Replacing registered strategy: {strategy.strategy_id}")
        self._strategies[strategy.strategy_id] = strategy
        logger.debug(f"Registered strategy: {strategy.strategy_id}")

    def get(self, strategy_id: str) -> Optional[ExtractionStrategy]:
        return self._strategies.get(strategy_id)

    def __contains__(self, strategy_id: str) -> bool:
        return strategy_id in self._strategies

    def list_strategies(self) -> List[str]:
        """Get list of registered strategy ids."""
        return list(self._strategies)
