"""Built-in extraction strategies."""

from sourcefetch.strategies.base import ExtractionStrategy, StrategyRegistry
from sourcefetch.strategies.captions import CaptionsStrategy
from sourcefetch.strategies.document import FormatParserStrategy
from sourcefetch.strategies.placeholder import MetadataPlaceholderStrategy
from sourcefetch.strategies.transcription import AudioTranscriptionStrategy
from sourcefetch.strategies.webpage import BasicScrapeStrategy, ComprehensiveScrapeStrategy

__all__ = [
    "ExtractionStrategy",
    "StrategyRegistry",
    "CaptionsStrategy",
    "AudioTranscriptionStrategy",
    "MetadataPlaceholderStrategy",
    "ComprehensiveScrapeStrategy",
    "BasicScrapeStrategy",
    "FormatParserStrategy",
]
