"""
Video Renderer client for the remote render service.
Submits the narration and the ordered media timeline, then polls until the
final video is ready.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from config import Settings, get_settings
from models.schemas import MediaCandidate, TransitionStyle
from .errors import InsufficientMedia, RenderingFailed, UpstreamUnavailable

logger = logging.getLogger(__name__)


class VideoRenderer:
    """
    Renders the final video on the render service.

    Protocol: ``POST /renders`` creates a task and returns its id;
    ``GET /renders/{id}`` reports ``state`` until it is ``success`` (with a
    ``video_url``) or ``failed``. A 404 while polling means the task is not
    registered yet and is polled again; any other failed poll ends the render.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.render_api_url.rstrip("/")
        self.api_key = self.settings.render_api_key
        self.poll_interval = self.settings.render_poll_interval_seconds
        self.max_polls = self.settings.render_max_polls
        self.transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "User-Agent": "TopicVideo-Pipeline/1.0"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def render(
        self,
        audio_url: Optional[str],
        media: Sequence[MediaCandidate],
        transition_style: TransitionStyle = TransitionStyle.FADE,
        background_music: bool = False
    ) -> str:
        """
        Render the final video.

        Args:
            audio_url: Narration track
            media: Selected media in timeline order
            transition_style: fade, slide or cut
            background_music: Mix a background track under the narration

        Returns:
            URL of the rendered video

        Raises:
            InsufficientMedia: If no media is given
            RenderingFailed: If the service rejects or fails the render
        """
        if not media:
            raise InsufficientMedia("No media to assemble")

        if not self.base_url:
            raise RenderingFailed("Render service not configured (RENDER_API_URL)")

        logger.info(
            f"Rendering {len(media)} clips with {transition_style.value} transitions"
            f"{' and background music' if background_music else ''}"
        )

        render_id = await self._create_task(audio_url, media, transition_style, background_music)
        video_url = await self._poll_for_result(render_id)

        logger.info(f"Render {render_id} complete: {video_url}")
        return video_url

    async def _create_task(
        self,
        audio_url: Optional[str],
        media: Sequence[MediaCandidate],
        transition_style: TransitionStyle,
        background_music: bool
    ) -> str:
        """Create a render task and return its id."""
        clips: List[dict] = [
            {"url": m.url, "kind": m.kind.value, "keyword": m.keyword}
            for m in media
        ]

        try:
            timeout = httpx.Timeout(connect=30.0, read=90.0, write=30.0, pool=30.0)
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/renders",
                    headers=self._headers(),
                    json={
                        "audio_url": audio_url,
                        "clips": clips,
                        "transition": transition_style.value,
                        "background_music": background_music
                    }
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Render API error: {e.response.status_code} - {e.response.text}")
            raise RenderingFailed(f"Render request rejected: {e.response.status_code} - {e.response.text}")
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"Render service unreachable: {e}")

        render_id = data.get("id") or data.get("render_id") or (data.get("data") or {}).get("id")
        if not render_id:
            raise RenderingFailed(f"No render id in response: {data}")

        logger.info(f"Render task created: {render_id}")
        return str(render_id)

    async def _poll_for_result(self, render_id: str) -> str:
        """Poll for task completion and return the video URL."""
        timeout = httpx.Timeout(connect=30.0, read=90.0, write=30.0, pool=30.0)
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            for attempt in range(self.max_polls):
                try:
                    response = await client.get(
                        f"{self.base_url}/renders/{render_id}",
                        headers=self._headers()
                    )
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPStatusError as e:
                    status = e.response.status_code
                    if status == 404:
                        # Task may still be initializing
                        logger.debug(f"Render {render_id} not found yet, polling again...")
                        await asyncio.sleep(self.poll_interval)
                        continue
                    logger.error(f"HTTP error polling render {render_id}: {status} - {e.response.text}")
                    if status >= 500:
                        raise UpstreamUnavailable(f"Render service error while polling: {status}")
                    raise RenderingFailed(f"Render status request rejected: {status} - {e.response.text}")
                except httpx.RequestError as e:
                    logger.error(f"Network error polling render {render_id}: {e}")
                    raise UpstreamUnavailable(f"Render service unreachable: {e}")

                state = (data.get("state") or data.get("status") or "").lower()

                if state == "success":
                    video_url = data.get("video_url") or data.get("url")
                    if not video_url:
                        raise RenderingFailed(f"No video URL in completed render: {data}")
                    return video_url

                if state in ("failed", "error"):
                    raise RenderingFailed(f"Rendering failed: {data.get('error') or 'Unknown error'}")

                logger.debug(f"Render {render_id} state: {state or 'unknown'}, attempt {attempt + 1}/{self.max_polls}")
                await asyncio.sleep(self.poll_interval)

        raise UpstreamUnavailable(
            f"Rendering timed out after {self.max_polls * self.poll_interval:.0f} seconds"
        )
