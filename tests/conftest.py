"""Shared pytest fixtures and service doubles for pipeline tests."""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from config import Settings
from models.schemas import MediaDescriptor, MediaKind, MediaProvider, ScriptResult
from pipeline.errors import RenderingFailed
from pipeline.media_sources import MediaSource
from pipeline.orchestrator import PipelineOrchestrator
from services.project_store import ProjectStore


PHOTOSYNTHESIS_SCRIPT = (
    "Photosynthesis is how plants turn sunlight, water and carbon dioxide "
    "into sugar and oxygen. Every leaf is a tiny solar factory."
)


def make_descriptor(
    provider: MediaProvider,
    provider_id: str,
    kind: MediaKind = MediaKind.IMAGE
) -> MediaDescriptor:
    return MediaDescriptor(
        kind=kind,
        provider=provider,
        provider_id=provider_id,
        url=f"https://{provider.value}.example.com/{provider_id}",
        thumbnail_url=f"https://{provider.value}.example.com/{provider_id}/thumb"
    )


class FakeScriptWriter:
    def __init__(self, content: str = PHOTOSYNTHESIS_SCRIPT, keywords: Optional[List[str]] = None, error=None):
        self.content = content
        self.keywords = keywords if keywords is not None else ["photosynthesis", "plants"]
        self.error = error
        self.calls = []

    async def generate(self, topic, duration_preference=None):
        self.calls.append((topic, duration_preference))
        if self.error:
            raise self.error
        return ScriptResult(content=self.content, keywords=self.keywords, estimated_duration_seconds=12)


class FakeNarrator:
    def __init__(self, audio_url: str = "https://media.example.com/outputs/audio/tts_test.mp3", error=None, delay: float = 0):
        self.audio_url = audio_url
        self.error = error
        self.delay = delay
        self.calls = []

    async def narrate(self, script, voice_id=None):
        self.calls.append((script, voice_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.audio_url


class FakeMediaSource(MediaSource):
    """Returns canned results per (keyword, kind)."""

    def __init__(self, provider: MediaProvider, kinds, results: Dict[Tuple[str, MediaKind], List[MediaDescriptor]] = None,
                 error: Exception = None, delay: float = 0):
        super().__init__(Settings(media_results_per_call=5))
        self.provider = provider
        self.kinds = frozenset(kinds)
        self.results = results or {}
        self.error = error
        self.delay = delay
        self.calls = []

    def is_configured(self) -> bool:
        return True

    async def _search(self, client, keyword, kind):
        raise NotImplementedError

    async def search(self, keyword, kind):
        self.calls.append((keyword, kind))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.results.get((keyword, kind), []))


class FakeRenderer:
    def __init__(self, video_url: str = "https://cdn.example.com/final.mp4", error=None):
        self.video_url = video_url
        self.error = error
        self.calls = []

    async def render(self, audio_url, media, transition_style, background_music):
        self.calls.append((audio_url, [m.id for m in media], transition_style, background_music))
        if self.error:
            raise self.error
        return self.video_url


def photosynthesis_sources() -> List[FakeMediaSource]:
    """Pexels images and Giphy loops for two keywords, with overlaps."""
    pexels = FakeMediaSource(
        MediaProvider.PEXELS,
        {MediaKind.IMAGE, MediaKind.VIDEO},
        {
            ("photosynthesis", MediaKind.IMAGE): [
                make_descriptor(MediaProvider.PEXELS, "101"),
                make_descriptor(MediaProvider.PEXELS, "102"),
            ],
            ("plants", MediaKind.IMAGE): [
                make_descriptor(MediaProvider.PEXELS, "102"),
                make_descriptor(MediaProvider.PEXELS, "103"),
            ],
            ("photosynthesis", MediaKind.VIDEO): [
                make_descriptor(MediaProvider.PEXELS, "900", MediaKind.VIDEO),
            ],
        }
    )
    giphy = FakeMediaSource(
        MediaProvider.GIPHY,
        {MediaKind.ANIMATED_LOOP},
        {
            ("photosynthesis", MediaKind.ANIMATED_LOOP): [
                make_descriptor(MediaProvider.GIPHY, "g1", MediaKind.ANIMATED_LOOP),
            ],
            ("plants", MediaKind.ANIMATED_LOOP): [
                make_descriptor(MediaProvider.GIPHY, "g1", MediaKind.ANIMATED_LOOP),
                make_descriptor(MediaProvider.GIPHY, "g2", MediaKind.ANIMATED_LOOP),
            ],
        }
    )
    return [pexels, giphy]


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        openai_api_key="test-openai",
        elevenlabs_api_key="test-elevenlabs",
        pexels_api_key="test-pexels",
        giphy_api_key="test-giphy",
        render_api_url="https://render.example.com",
        render_poll_interval_seconds=0,
        render_max_polls=5,
        search_timeout_seconds=1.0,
        output_dir=str(tmp_path / "outputs"),
        public_base_url="https://media.example.com"
    )


@pytest.fixture
def store() -> ProjectStore:
    return ProjectStore()


@pytest.fixture
def orchestrator(store, test_settings) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        store=store,
        settings=test_settings,
        script_generator=FakeScriptWriter(),
        narrator=FakeNarrator(),
        media_sources=photosynthesis_sources(),
        renderer=FakeRenderer()
    )
