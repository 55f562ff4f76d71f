"""
Tests for the external service adapters, using httpx.MockTransport.
"""

import json
from pathlib import Path

import httpx
import pytest

from config import Settings
from models.schemas import DurationPreference, MediaCandidate, MediaKind, MediaProvider, TransitionStyle
from pipeline.errors import (
    EmptyInput,
    InsufficientMedia,
    InvalidTopic,
    RenderingFailed,
    UpstreamRejected,
    UpstreamUnavailable,
)
from pipeline.media_sources import GiphySource, PexelsSource
from pipeline.narrator import Narrator
from pipeline.script_generator import ScriptGenerator, estimate_duration, extract_keywords
from pipeline.video_renderer import VideoRenderer


def openai_reply(payload) -> httpx.Response:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def make_candidate(media_id: str, kind: MediaKind = MediaKind.IMAGE) -> MediaCandidate:
    return MediaCandidate(
        id=media_id,
        project_id="prj_1",
        kind=kind,
        provider=MediaProvider.PEXELS,
        provider_id=media_id,
        url=f"https://example.com/{media_id}",
        keyword="plants"
    )


class TestKeywordHelpers:
    """Test keyword extraction and duration estimates."""

    def test_extract_keywords_drops_stop_words(self):
        assert extract_keywords("The History of Technology") == [
            "history", "technology", "innovation", "digital"
        ]

    def test_extract_keywords_caps_topic_words(self):
        keywords = extract_keywords("alpha bravo charlie delta echo foxtrot golf")
        assert keywords == ["alpha", "bravo", "charlie", "delta", "echo"]

    def test_extract_keywords_deduplicates(self):
        assert extract_keywords("plants plants and more plants") == ["plants", "more"]

    def test_estimate_duration(self):
        assert estimate_duration(" ".join(["word"] * 75)) == 30


class TestScriptGenerator:
    """Test the OpenAI script writer adapter."""

    def setup_method(self):
        self.requests = []
        self.settings = Settings(openai_api_key="test-key")

    def _generator(self, reply) -> ScriptGenerator:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return reply

        return ScriptGenerator(self.settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_generate_script(self):
        generator = self._generator(openai_reply({
            "script": "Photosynthesis turns light into sugar. Plants do it every day.",
            "keywords": ["Photosynthesis", "plants", "plants"]
        }))

        result = await generator.generate("Photosynthesis", DurationPreference.SHORT)

        assert result.content.startswith("Photosynthesis turns light")
        assert result.keywords == ["photosynthesis", "plants"]
        assert result.estimated_duration_seconds == estimate_duration(result.content)

        body = json.loads(self.requests[0].content)
        assert body["model"] == "gpt-4o-mini"
        assert "75 words" in body["messages"][0]["content"]
        assert self.requests[0].headers["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_missing_keywords_fall_back_to_topic(self):
        generator = self._generator(openai_reply({"script": "All about volcanoes and lava."}))

        result = await generator.generate("Volcanoes and lava")

        assert result.keywords == ["volcanoes", "lava"]

    @pytest.mark.asyncio
    async def test_blank_topic(self):
        generator = self._generator(openai_reply({"script": "x"}))

        with pytest.raises(InvalidTopic):
            await generator.generate("   ")
        assert self.requests == []

    @pytest.mark.asyncio
    async def test_model_declines_topic(self):
        generator = self._generator(openai_reply({"error": "not an educational topic"}))

        with pytest.raises(InvalidTopic):
            await generator.generate("asdf qwerty")

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        generator = self._generator(httpx.Response(503, text="overloaded"))

        with pytest.raises(UpstreamUnavailable):
            await generator.generate("Photosynthesis")

    @pytest.mark.asyncio
    async def test_unparseable_content(self):
        generator = self._generator(openai_reply("not json at all"))

        with pytest.raises(UpstreamUnavailable):
            await generator.generate("Photosynthesis")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        generator = ScriptGenerator(Settings(openai_api_key=""))

        with pytest.raises(UpstreamUnavailable):
            await generator.generate("Photosynthesis")


class TestNarrator:
    """Test the ElevenLabs narrator adapter."""

    def setup_method(self):
        self.requests = []

    def _narrator(self, tmp_path, reply) -> Narrator:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return reply

        settings = Settings(
            elevenlabs_api_key="test-key",
            output_dir=str(tmp_path),
            public_base_url="https://media.example.com/"
        )
        return Narrator(settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_narrate_stores_audio(self, tmp_path):
        narrator = self._narrator(tmp_path, httpx.Response(200, content=b"ID3fake-mp3"))

        audio_url = await narrator.narrate("Plants make sugar from light.")

        assert audio_url.startswith("https://media.example.com/outputs/audio/tts_")
        stored = Path(tmp_path) / "audio" / Path(audio_url).name
        assert stored.read_bytes() == b"ID3fake-mp3"
        assert self.requests[0].url.path.endswith("/text-to-speech/pNInz6obpgDQGcFmaJgB")
        assert self.requests[0].headers["xi-api-key"] == "test-key"

    @pytest.mark.asyncio
    async def test_narrate_uses_voice_preference(self, tmp_path):
        narrator = self._narrator(tmp_path, httpx.Response(200, content=b"audio"))

        await narrator.narrate("Hello there.", voice_id="voice-42")

        assert self.requests[0].url.path.endswith("/text-to-speech/voice-42")

    @pytest.mark.asyncio
    async def test_blank_script(self, tmp_path):
        narrator = self._narrator(tmp_path, httpx.Response(200, content=b"audio"))

        with pytest.raises(EmptyInput):
            await narrator.narrate("  \n ")
        assert self.requests == []

    @pytest.mark.asyncio
    async def test_rejected_voice(self, tmp_path):
        narrator = self._narrator(tmp_path, httpx.Response(400, text="voice_not_found"))

        with pytest.raises(UpstreamRejected) as exc_info:
            await narrator.narrate("Hello there.", voice_id="bogus")
        assert exc_info.value.upstream_status == 400

    @pytest.mark.asyncio
    async def test_server_error(self, tmp_path):
        narrator = self._narrator(tmp_path, httpx.Response(503, text="busy"))

        with pytest.raises(UpstreamUnavailable):
            await narrator.narrate("Hello there.")


class TestMediaSources:
    """Test Pexels and Giphy search adapters."""

    def setup_method(self):
        self.requests = []
        self.settings = Settings(pexels_api_key="pexels-key", giphy_api_key="giphy-key", media_results_per_call=5)

    def _transport(self, reply):
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return reply

        return httpx.MockTransport(handler)

    @pytest.mark.asyncio
    async def test_pexels_images(self):
        source = PexelsSource(self.settings, transport=self._transport(httpx.Response(200, json={
            "photos": [
                {"id": 11, "src": {"large2x": "https://p/11-2x.jpg", "medium": "https://p/11-m.jpg"}},
                {"id": 12, "src": {}},
            ]
        })))

        results = await source.search("plants", MediaKind.IMAGE)

        assert len(results) == 1
        assert results[0].provider_id == "11"
        assert results[0].url == "https://p/11-2x.jpg"
        assert results[0].thumbnail_url == "https://p/11-m.jpg"
        assert self.requests[0].url.path == "/v1/search"
        assert self.requests[0].url.params["per_page"] == "5"
        assert self.requests[0].headers["Authorization"] == "pexels-key"

    @pytest.mark.asyncio
    async def test_pexels_videos_prefer_hd(self):
        source = PexelsSource(self.settings, transport=self._transport(httpx.Response(200, json={
            "videos": [{
                "id": 7,
                "image": "https://p/7.jpg",
                "video_files": [
                    {"quality": "sd", "height": 360, "link": "https://p/7-sd.mp4"},
                    {"quality": "hd", "height": 720, "link": "https://p/7-hd.mp4"},
                ]
            }]
        })))

        [result] = await source.search("plants", MediaKind.VIDEO)

        assert result.kind == MediaKind.VIDEO
        assert result.url == "https://p/7-hd.mp4"
        assert self.requests[0].url.path == "/videos/search"

    @pytest.mark.asyncio
    async def test_giphy_gifs(self):
        source = GiphySource(self.settings, transport=self._transport(httpx.Response(200, json={
            "data": [{
                "id": "abc",
                "images": {"original": {"url": "https://g/abc.gif"}, "downsized": {"url": "https://g/abc-s.gif"}}
            }]
        })))

        [result] = await source.search("plants", MediaKind.ANIMATED_LOOP)

        assert result.provider == MediaProvider.GIPHY
        assert result.provider_id == "abc"
        assert result.thumbnail_url == "https://g/abc-s.gif"
        assert self.requests[0].url.params["rating"] == "g"

    @pytest.mark.asyncio
    async def test_provider_failure_degrades_to_empty(self):
        source = PexelsSource(self.settings, transport=self._transport(httpx.Response(500, text="down")))

        assert await source.search("plants", MediaKind.IMAGE) == []

    @pytest.mark.asyncio
    async def test_results_are_bounded(self):
        photos = [{"id": i, "src": {"large2x": f"https://p/{i}.jpg"}} for i in range(1, 9)]
        source = PexelsSource(self.settings, transport=self._transport(httpx.Response(200, json={"photos": photos})))

        results = await source.search("plants", MediaKind.IMAGE)

        assert len(results) == 5

    @pytest.mark.asyncio
    async def test_unsupported_kind(self):
        source = GiphySource(self.settings, transport=self._transport(httpx.Response(200, json={"data": []})))

        assert await source.search("plants", MediaKind.IMAGE) == []
        assert self.requests == []

    @pytest.mark.asyncio
    async def test_unconfigured_source(self):
        source = GiphySource(Settings(giphy_api_key=""))

        assert await source.search("plants", MediaKind.ANIMATED_LOOP) == []


class TestVideoRenderer:
    """Test the render service adapter."""

    def setup_method(self):
        self.requests = []
        self.settings = Settings(
            render_api_url="https://render.example.com",
            render_poll_interval_seconds=0,
            render_max_polls=3
        )

    def _renderer(self, replies) -> VideoRenderer:
        replies = list(replies)

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return replies.pop(0)

        return VideoRenderer(self.settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_render_success(self):
        renderer = self._renderer([
            httpx.Response(200, json={"id": "r1"}),
            httpx.Response(200, json={"state": "processing"}),
            httpx.Response(200, json={"state": "success", "video_url": "https://cdn/r1.mp4"}),
        ])

        media = [make_candidate("b"), make_candidate("a", MediaKind.VIDEO)]
        video_url = await renderer.render("https://media.example.com/outputs/audio/x.mp3", media, TransitionStyle.SLIDE, True)

        assert video_url == "https://cdn/r1.mp4"
        body = json.loads(self.requests[0].content)
        assert [clip["url"] for clip in body["clips"]] == ["https://example.com/b", "https://example.com/a"]
        assert body["transition"] == "slide"
        assert body["background_music"] is True
        assert self.requests[1].url.path == "/renders/r1"

    @pytest.mark.asyncio
    async def test_render_failed_state(self):
        renderer = self._renderer([
            httpx.Response(200, json={"id": "r1"}),
            httpx.Response(200, json={"state": "failed", "error": "codec exploded"}),
        ])

        with pytest.raises(RenderingFailed, match="codec exploded"):
            await renderer.render("/a.mp3", [make_candidate("a")])

    @pytest.mark.asyncio
    async def test_render_rejected(self):
        renderer = self._renderer([httpx.Response(422, text="bad clip")])

        with pytest.raises(RenderingFailed):
            await renderer.render("/a.mp3", [make_candidate("a")])

    @pytest.mark.asyncio
    async def test_empty_media(self):
        renderer = self._renderer([])

        with pytest.raises(InsufficientMedia):
            await renderer.render("/a.mp3", [])

    @pytest.mark.asyncio
    async def test_unconfigured_service(self):
        renderer = VideoRenderer(Settings(render_api_url=""))

        with pytest.raises(RenderingFailed):
            await renderer.render("/a.mp3", [make_candidate("a")])

    @pytest.mark.asyncio
    async def test_poll_server_error_fails_render(self):
        renderer = self._renderer([
            httpx.Response(200, json={"id": "r1"}),
            httpx.Response(500, text="internal error"),
            httpx.Response(200, json={"state": "success", "video_url": "https://cdn/r1.mp4"}),
        ])

        with pytest.raises(UpstreamUnavailable):
            await renderer.render("/a.mp3", [make_candidate("a")])
        assert len(self.requests) == 2

    @pytest.mark.asyncio
    async def test_poll_client_error_fails_render(self):
        renderer = self._renderer([
            httpx.Response(200, json={"id": "r1"}),
            httpx.Response(403, text="forbidden"),
        ])

        with pytest.raises(RenderingFailed):
            await renderer.render("/a.mp3", [make_candidate("a")])

    @pytest.mark.asyncio
    async def test_poll_network_error_fails_render(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if request.method == "POST":
                return httpx.Response(200, json={"id": "r1"})
            raise httpx.ConnectError("connection refused", request=request)

        renderer = VideoRenderer(self.settings, transport=httpx.MockTransport(handler))

        with pytest.raises(UpstreamUnavailable):
            await renderer.render("/a.mp3", [make_candidate("a")])
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_poll_not_found_while_starting(self):
        renderer = self._renderer([
            httpx.Response(200, json={"id": "r1"}),
            httpx.Response(404, text="unknown render"),
            httpx.Response(200, json={"state": "success", "video_url": "https://cdn/r1.mp4"}),
        ])

        assert await renderer.render("/a.mp3", [make_candidate("a")]) == "https://cdn/r1.mp4"

    @pytest.mark.asyncio
    async def test_polling_gives_up(self):
        renderer = self._renderer([
            httpx.Response(200, json={"id": "r1"}),
            httpx.Response(200, json={"state": "queued"}),
            httpx.Response(200, json={"state": "queued"}),
            httpx.Response(200, json={"state": "queued"}),
        ])

        with pytest.raises(UpstreamUnavailable):
            await renderer.render("/a.mp3", [make_candidate("a")])
