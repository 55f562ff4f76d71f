"""
Media sources for stock images, video clips and looping GIFs.

Pexels serves images and videos, Giphy serves animated loops. A search never
raises for a provider problem: it logs and returns an empty list so one
failing provider only costs its own results.
"""

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, List, Optional

import httpx

from config import Settings, get_settings
from models.schemas import MediaDescriptor, MediaKind, MediaProvider

logger = logging.getLogger(__name__)


class MediaSource(ABC):
    """Abstract base class for media search providers."""

    provider: MediaProvider
    kinds: FrozenSet[MediaKind] = frozenset()

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.max_results = self.settings.media_results_per_call
        self.transport = transport

    def supports(self, kind: MediaKind) -> bool:
        return kind in self.kinds

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if this source has its API key."""

    @abstractmethod
    async def _search(self, client: httpx.AsyncClient, keyword: str, kind: MediaKind) -> List[MediaDescriptor]:
        """Provider-specific request and parsing."""

    async def search(self, keyword: str, kind: MediaKind) -> List[MediaDescriptor]:
        """
        Search for media of one kind matching a keyword.

        Returns at most ``media_results_per_call`` descriptors; an empty list
        when nothing matched, the kind is unsupported, or the provider failed.
        """
        name = self.provider.value
        if not keyword.strip() or not self.supports(kind):
            return []

        if not self.is_configured():
            logger.warning(f"[{name}] Skipping search - no API key configured")
            return []

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                results = await self._search(client, keyword.strip(), kind)
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"[{name}] {kind.value} search for '{keyword}' returned {e.response.status_code}"
            )
            return []
        except httpx.RequestError as e:
            logger.warning(f"[{name}] Network error searching '{keyword}': {e}")
            return []
        except ValueError as e:
            logger.warning(f"[{name}] Unreadable response for '{keyword}': {e}")
            return []

        logger.info(f"[{name}] Found {len(results)} {kind.value} results for '{keyword}'")
        return results[:self.max_results]


class PexelsSource(MediaSource):
    """Pexels stock photos and videos."""

    provider = MediaProvider.PEXELS
    kinds = frozenset({MediaKind.IMAGE, MediaKind.VIDEO})

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(settings, transport)
        self.api_key = self.settings.pexels_api_key
        self.base_url = self.settings.pexels_base_url

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _search(self, client: httpx.AsyncClient, keyword: str, kind: MediaKind) -> List[MediaDescriptor]:
        path = "/v1/search" if kind == MediaKind.IMAGE else "/videos/search"
        response = await client.get(
            f"{self.base_url}{path}",
            headers={"Authorization": self.api_key},
            params={"query": keyword, "per_page": self.max_results, "page": 1}
        )
        response.raise_for_status()
        data = response.json()

        if kind == MediaKind.IMAGE:
            parsed = [self._parse_photo(photo) for photo in data.get("photos") or []]
        else:
            parsed = [self._parse_video(video) for video in data.get("videos") or []]
        return [item for item in parsed if item]

    def _parse_photo(self, photo: dict) -> Optional[MediaDescriptor]:
        photo_id = photo.get("id")
        src = photo.get("src") or {}
        url = src.get("large2x") or src.get("large") or src.get("original")
        if not photo_id or not url:
            return None

        return MediaDescriptor(
            kind=MediaKind.IMAGE,
            provider=self.provider,
            provider_id=str(photo_id),
            url=url,
            thumbnail_url=src.get("medium") or src.get("small")
        )

    def _parse_video(self, video: dict) -> Optional[MediaDescriptor]:
        video_id = video.get("id")
        video_files = video.get("video_files") or []
        if not video_id or not video_files:
            return None

        # Prefer HD, then the tallest file
        best_file = sorted(
            video_files,
            key=lambda f: (f.get("quality") == "hd", f.get("height") or 0),
            reverse=True
        )[0]
        if not best_file.get("link"):
            return None

        return MediaDescriptor(
            kind=MediaKind.VIDEO,
            provider=self.provider,
            provider_id=str(video_id),
            url=best_file["link"],
            thumbnail_url=video.get("image")
        )


class GiphySource(MediaSource):
    """Giphy looping GIFs."""

    provider = MediaProvider.GIPHY
    kinds = frozenset({MediaKind.ANIMATED_LOOP})

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(settings, transport)
        self.api_key = self.settings.giphy_api_key
        self.base_url = self.settings.giphy_base_url

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _search(self, client: httpx.AsyncClient, keyword: str, kind: MediaKind) -> List[MediaDescriptor]:
        response = await client.get(
            f"{self.base_url}/gifs/search",
            params={
                "api_key": self.api_key,
                "q": keyword,
                "limit": self.max_results,
                "rating": "g"
            }
        )
        response.raise_for_status()
        data = response.json()

        parsed = [self._parse_gif(gif) for gif in data.get("data") or []]
        return [item for item in parsed if item]

    def _parse_gif(self, gif: dict) -> Optional[MediaDescriptor]:
        images = gif.get("images") or {}
        original = (images.get("original") or {}).get("url")
        if not gif.get("id") or not original:
            return None

        return MediaDescriptor(
            kind=MediaKind.ANIMATED_LOOP,
            provider=self.provider,
            provider_id=str(gif["id"]),
            url=original,
            thumbnail_url=(images.get("downsized") or {}).get("url")
        )
