"""
Script Generator using OpenAI chat completions.
Writes a narration script and search keywords for an educational topic.
"""

import json
import logging
import re
from typing import List, Optional

import httpx

from config import Settings, get_settings
from models.schemas import DurationPreference, ScriptResult
from .errors import InvalidTopic, UpstreamUnavailable

logger = logging.getLogger(__name__)

# Average narration speaking rate
WORDS_PER_SECOND = 2.5

MAX_TOPIC_KEYWORDS = 5

STOP_WORDS = {
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "a", "an"
}

RELATED_TERMS = [
    (("technology", "tech"), ["innovation", "digital"]),
    (("health", "fitness"), ["wellness", "lifestyle"]),
    (("business", "marketing"), ["strategy", "growth"]),
]


def extract_keywords(topic: str) -> List[str]:
    """Pull search keywords out of the topic itself."""
    lowered = topic.lower()
    words = [
        word for word in re.split(r"[\s,.\-]+", lowered)
        if len(word) > 2 and word not in STOP_WORDS
    ][:MAX_TOPIC_KEYWORDS]

    for triggers, terms in RELATED_TERMS:
        if any(trigger in lowered for trigger in triggers):
            words.extend(terms)

    return list(dict.fromkeys(words))


def estimate_duration(script: str) -> int:
    """Narration length in seconds for a script."""
    return round(len(script.split()) / WORDS_PER_SECOND)


class ScriptGenerator:
    """
    Writes narration scripts using an OpenAI chat model.
    Produces JSON output with the script text and media search keywords.
    """

    def _get_system_prompt(self, target_seconds: int) -> str:
        """Generate the system prompt for the requested length."""
        target_words = int(target_seconds * WORDS_PER_SECOND)
        return f"""You are an expert educational video script writer.

Write a narration script of about {target_words} words ({target_seconds} seconds spoken) that:
- Opens with a one-sentence hook
- Explains the topic clearly for a general audience
- Ends with a short recap

Also list 2-5 short search keywords (one or two words each) for finding stock
images and clips that illustrate the script.

Output ONLY valid JSON in this exact format:
{{
  "script": "The full narration text",
  "keywords": ["keyword one", "keyword two"]
}}

If the topic is not something you can explain in an educational video, output:
{{"error": "short reason"}}"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.api_key = self.settings.openai_api_key
        self.base_url = f"{self.settings.openai_base_url}/chat/completions"
        self.transport = transport

    async def generate(
        self,
        topic: str,
        duration_preference: Optional[DurationPreference] = None
    ) -> ScriptResult:
        """
        Generate a narration script for a topic.

        Args:
            topic: Educational topic to explain
            duration_preference: Target length, medium when not given

        Returns:
            ScriptResult with script text, keywords and estimated duration

        Raises:
            InvalidTopic: If the topic is blank or the model declines it
            UpstreamUnavailable: If the API call fails or the response is unusable
        """
        if not topic or not topic.strip():
            raise InvalidTopic("Topic is required")

        target_seconds = (duration_preference or DurationPreference.MEDIUM).target_seconds

        user_prompt = f"""Write the narration script for an educational video about:

"{topic.strip()}"

Output ONLY valid JSON, no markdown, no code blocks."""

        if not self.api_key:
            raise UpstreamUnavailable("OPENAI_API_KEY not configured")

        logger.info(f"Generating script for topic: {topic[:50]}...")

        try:
            async with httpx.AsyncClient(timeout=60.0, transport=self.transport) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "model": self.settings.openai_model,
                        "messages": [
                            {"role": "system", "content": self._get_system_prompt(target_seconds)},
                            {"role": "user", "content": user_prompt}
                        ],
                        "temperature": 0.7,
                        "max_tokens": 2000,
                        "response_format": {"type": "json_object"}
                    }
                )

                response.raise_for_status()
                data = response.json()

                content = data["choices"][0]["message"]["content"]
                script_data = json.loads(content)

        except httpx.HTTPStatusError as e:
            logger.error(f"OpenAI API error: {e.response.status_code} - {e.response.text}")
            raise UpstreamUnavailable(f"Script generation failed: {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error(f"OpenAI network error: {e}")
            raise UpstreamUnavailable(f"Script generation failed: {e}")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse script JSON: {e}")
            raise UpstreamUnavailable("Failed to parse script response")
        except (KeyError, IndexError) as e:
            logger.error(f"Missing key in script response: {e}")
            raise UpstreamUnavailable(f"Invalid script response: missing {e}")

        if not isinstance(script_data, dict):
            raise UpstreamUnavailable("Invalid script response: expected a JSON object")

        if script_data.get("error"):
            raise InvalidTopic(f"Topic rejected: {script_data['error']}")

        script = (script_data.get("script") or "").strip()
        if not script:
            raise InvalidTopic(f"No script could be written for topic: {topic}")

        keywords = [
            str(k).strip().lower() for k in script_data.get("keywords") or []
            if str(k).strip()
        ]
        if not keywords:
            keywords = extract_keywords(topic)

        result = ScriptResult(
            content=script,
            keywords=list(dict.fromkeys(keywords)),
            estimated_duration_seconds=estimate_duration(script)
        )

        logger.info(
            f"Generated script: {len(script.split())} words, "
            f"~{result.estimated_duration_seconds}s, keywords={result.keywords}"
        )
        return result
