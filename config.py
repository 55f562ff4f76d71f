"""
Configuration module for the Topic-to-Video Pipeline.
Loads environment variables and provides typed configuration.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    openai_api_key: str = ""
    elevenlabs_api_key: str = ""
    pexels_api_key: str = ""
    giphy_api_key: str = ""
    render_api_key: Optional[str] = None

    # Application Settings
    app_name: str = "Topic-to-Video Pipeline"
    app_version: str = "1.0.0"
    debug: bool = False

    # Script writer (OpenAI)
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    # Narrator (ElevenLabs)
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_model_id: str = "eleven_monolingual_v1"
    default_voice_id: str = "pNInz6obpgDQGcFmaJgB"

    # Media search
    pexels_base_url: str = "https://api.pexels.com"
    giphy_base_url: str = "https://api.giphy.com/v1"
    media_results_per_call: int = 5

    # Renderer
    render_api_url: str = ""
    render_poll_interval_seconds: float = 5.0
    render_max_polls: int = 120

    # Timeouts (no automatic retries)
    script_timeout_seconds: float = 60.0
    tts_timeout_seconds: float = 120.0
    search_timeout_seconds: float = 20.0
    render_timeout_seconds: float = 900.0

    # Storage
    output_dir: str = "./outputs"
    # Public address of this service, used for URLs that remote services fetch
    public_base_url: str = "http://localhost:8000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function to get settings
settings = get_settings()
