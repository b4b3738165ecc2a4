"""Unit tests for AcquisitionService and chain construction."""

import pytest
import yaml

from sourcefetch.app_utils.config_schema import SourceFetchConfig, StrategyConfig
from sourcefetch.core.errors import PipelineConfigError
from sourcefetch.core.result_store import AcquisitionStatus
from sourcefetch.core.source import Confidence, SourceDescriptor, SourceKind
from sourcefetch.services.acquisition_service import (
    AcquisitionService,
    build_chains,
    build_default_registry,
)
from sourcefetch.strategies import StrategyRegistry

VIDEO_ID = "dQw4w9WgXcQ"


@pytest.fixture
def config():
    config = SourceFetchConfig.create_default()
    config.chains.video = ["captions", "metadata-placeholder"]
    config.chains.webpage = ["basic-scrape"]
    config.chains.document = ["format-parser"]
    return config


@pytest.fixture
def scripted_registry(make_strategy, long_text):
    registry = StrategyRegistry()
    registry.register(make_strategy("captions", [long_text]))
    registry.register(
        make_strategy(
            "metadata-placeholder", ["placeholder text"], confidence=Confidence.DEGRADED
        )
    )
    registry.register(make_strategy("basic-scrape", [long_text], kind=SourceKind.WEBPAGE))
    registry.register(
        make_strategy("format-parser", [long_text], kind=SourceKind.DOCUMENT)
    )
    return registry


@pytest.fixture
def service(config, scripted_registry, retry_controller):
    return AcquisitionService(
        config=config, registry=scripted_registry, retry=retry_controller
    )


@pytest.mark.unit
class TestChainConstruction:
    def test_default_registry_has_builtins(self):
        registry = build_default_registry(SourceFetchConfig.create_default())

        assert sorted(registry.list_strategies()) == [
            "audio-transcription",
            "basic-scrape",
            "captions",
            "comprehensive-scrape",
            "format-parser",
            "metadata-placeholder",
        ]

    def test_default_service_builds(self):
        service = AcquisitionService()
        steps = service.orchestrator.chain_for(SourceKind.VIDEO)

        assert [s.strategy_id for s in steps] == [
            "captions",
            "audio-transcription",
            "metadata-placeholder",
        ]
        assert [s.timeout for s in steps] == [30.0, 60.0, 15.0]

    def test_overrides_applied(self):
        config = SourceFetchConfig.create_default()
        config.retry.max_attempts = 3
        config.strategies["basic-scrape"] = StrategyConfig(
            timeout=20, max_attempts=1, base_delay=0
        )

        chains = build_chains(config, build_default_registry(config))
        comprehensive, basic = chains[SourceKind.WEBPAGE]

        assert (comprehensive.timeout, comprehensive.max_attempts) == (None, 3)
        assert (basic.timeout, basic.max_attempts, basic.base_delay) == (20, 1, 0)

    def test_unknown_strategy_id(self):
        config = SourceFetchConfig.create_default()
        config.chains.document = ["ocr"]

        with pytest.raises(PipelineConfigError, match="ocr"):
            build_chains(config, build_default_registry(config))


@pytest.mark.unit
class TestAcquisitionService:
    @pytest.mark.asyncio
    async def test_acquire_and_status(self, service, long_text):
        result = await service.acquire(
            SourceDescriptor.create("video", f"https://youtu.be/{VIDEO_ID}")
        )

        assert result.document.body == long_text
        entry = service.status("video", VIDEO_ID)
        assert entry.status == AcquisitionStatus.SUCCEEDED
        assert entry.document.strategy_used == "captions"

    @pytest.mark.asyncio
    async def test_opaque_video_id_status_and_invalidate(self, service):
        assert service.status("video", "abc123") is None

        await service.acquire(SourceDescriptor.create("video", "abc123"))

        assert service.status("video", "abc123").status == AcquisitionStatus.SUCCEEDED
        assert service.invalidate("video", "abc123") is True

    def test_status_unknown_source(self, service):
        assert service.status("webpage", "https://example.com") is None

    @pytest.mark.asyncio
    async def test_invalidate(self, service):
        await service.acquire(SourceDescriptor.create("document", "/tmp/brief.pdf"))

        assert service.invalidate("document", "/tmp/brief.pdf") is True
        assert service.status("document", "/tmp/brief.pdf") is None
        assert service.invalidate("document", "/tmp/brief.pdf") is False

    @pytest.mark.asyncio
    async def test_context_manager_clears_store(self, service):
        async with service:
            await service.acquire(SourceDescriptor.create("webpage", "example.com"))
            assert service.store.keys()

        assert service.store.keys() == []

    @pytest.mark.asyncio
    async def test_register_strategy_replaces_builtin(
        self, service, make_strategy
    ):
        replacement = make_strategy("captions", ["Replacement transcript text here."])
        service.register_strategy(replacement)

        result = await service.acquire(SourceDescriptor.create("video", VIDEO_ID))

        assert result.document.body == "Replacement transcript text here."
        assert replacement.calls == 1

    def test_from_config_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SOURCEFETCH_STT_URL", raising=False)
        monkeypatch.delenv("SOURCEFETCH_STT_API_KEY", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({"chains": {"webpage": ["basic-scrape"]}}))

        service = AcquisitionService.from_config_file(config_file)

        steps = service.orchestrator.chain_for(SourceKind.WEBPAGE)
        assert [s.strategy_id for s in steps] == ["basic-scrape"]
