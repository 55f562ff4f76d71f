"""
Narrator using the ElevenLabs text-to-speech API.
Turns a script into an MP3 served from the outputs directory.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

import httpx

from config import Settings, get_settings
from .errors import EmptyInput, UpstreamRejected, UpstreamUnavailable

logger = logging.getLogger(__name__)


class Narrator:
    """Synthesizes narration audio with ElevenLabs."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.api_key = self.settings.elevenlabs_api_key
        self.base_url = self.settings.elevenlabs_base_url
        self.audio_dir = Path(self.settings.output_dir) / "audio"
        self.public_base_url = self.settings.public_base_url.rstrip("/")
        self.transport = transport

    async def narrate(self, script: str, voice_id: Optional[str] = None) -> str:
        """
        Convert a script to speech.

        Args:
            script: Narration text
            voice_id: ElevenLabs voice id, the configured default when not given

        Returns:
            Public URL of the stored MP3 (e.g. http://host/outputs/audio/tts_x.mp3)

        Raises:
            EmptyInput: If the script is blank
            UpstreamRejected: If ElevenLabs refuses the request (4xx)
            UpstreamUnavailable: On 5xx, network errors or a missing API key
        """
        if not script or not script.strip():
            raise EmptyInput("Script content is required")

        if not self.api_key:
            raise UpstreamUnavailable("ELEVENLABS_API_KEY not configured")

        selected_voice = voice_id or self.settings.default_voice_id
        logger.info(f"Narrating {len(script.split())} words with voice {selected_voice}")

        try:
            async with httpx.AsyncClient(timeout=120.0, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/text-to-speech/{selected_voice}",
                    headers={
                        "Accept": "audio/mpeg",
                        "Content-Type": "application/json",
                        "xi-api-key": self.api_key
                    },
                    json={
                        "text": script.strip(),
                        "model_id": self.settings.elevenlabs_model_id,
                        "voice_settings": {
                            "stability": 0.5,
                            "similarity_boost": 0.5,
                            "style": 0.0,
                            "use_speaker_boost": True
                        }
                    }
                )
                response.raise_for_status()
                audio = response.content

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"ElevenLabs API error: {status} - {e.response.text}")
            if 400 <= status < 500:
                raise UpstreamRejected(
                    f"ElevenLabs API error: {status} - {e.response.text}",
                    upstream_status=status
                )
            raise UpstreamUnavailable(f"ElevenLabs API error: {status}")
        except httpx.RequestError as e:
            logger.error(f"ElevenLabs network error: {e}")
            raise UpstreamUnavailable(f"TTS request failed: {e}")

        if not audio:
            raise UpstreamUnavailable("ElevenLabs returned no audio")

        self.audio_dir.mkdir(parents=True, exist_ok=True)
        filename = f"tts_{uuid.uuid4().hex[:12]}.mp3"
        (self.audio_dir / filename).write_bytes(audio)

        # The render service fetches the track from another host
        audio_url = f"{self.public_base_url}/outputs/audio/{filename}"
        logger.info(f"Narration stored: {audio_url} ({len(audio)} bytes)")
        return audio_url
