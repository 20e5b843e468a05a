"""HTTP client for the song recommendation (chat completions) API."""

import json
import logging
from typing import Any

import httpx

from mushee.config.settings import RecommendationSettings
from mushee.domain.entities import SongReference
from mushee.domain.exceptions import ConfigurationError, ExternalServiceError
from mushee.domain.ports import IRecommendationClient

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a music recommendation expert. Based on the following songs in a user's music library, suggest {count} similar classical pieces they might enjoy. Focus on musical style, composer, era, and mood similarities.

User's Library:
{songs}

Please respond with exactly {count} song recommendations in the following JSON format:
[
  {{
    "song_details": {{
      "title": "Song Title",
      "composer": "Composer Name"
    }}
  }}
]

Requirements:
- Suggest real, existing classical music pieces
- Ensure variety in composers and styles
- Focus on pieces that would complement the user's existing collection
- Only return the JSON array, no additional text"""


class RecommendationClient(IRecommendationClient):
    """Client for an OpenAI-compatible chat completions endpoint (OpenRouter by default).

    Hey future me - this client does NOT enforce the 3 second deadline. The application layer
    wraps suggest() with retry_with_timeout, which abandons slow attempts. The httpx timeout
    below is only the outer bound for how long an abandoned request may keep a socket open.
    Every failure mode (HTTP status, transport error, bad JSON, wrong shape) comes out as
    ExternalServiceError so the caller has exactly one thing to catch.
    """

    # Upper bound for abandoned requests, well above the per-attempt deadline
    HTTP_TIMEOUT_SECONDS = 15.0

    def __init__(self, settings: RecommendationSettings) -> None:
        self.settings = settings
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.HTTP_TIMEOUT_SECONDS)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RecommendationClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def build_prompt(self, songs: list[SongReference], count: int) -> str:
        """Render the prompt listing the user's songs."""
        songs_text = "\n".join(f'- "{s.title}" by {s.composer}' for s in songs)
        return PROMPT_TEMPLATE.format(count=count, songs=songs_text)

    async def suggest(self, songs: list[SongReference], count: int) -> list[SongReference]:
        """Ask the API for `count` songs similar to the given ones."""
        if not self.settings.is_configured:
            raise ConfigurationError("Recommendation API key is not configured")

        client = await self._get_client()
        payload = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": self.build_prompt(songs, count)}],
            "temperature": 0.7,
            "max_tokens": 500,
        }
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "X-Title": "MuShee Music Library",
        }

        try:
            response = await client.post(self.settings.api_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Recommendation API returned %s", e.response.status_code
            )
            raise ExternalServiceError(
                f"Recommendation API error: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Recommendation API request failed: %s", e)
            raise ExternalServiceError(f"Recommendation API request failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError("Recommendation API returned invalid JSON") from e

        return self.parse_suggestions(data, count)

    def parse_suggestions(self, data: Any, count: int) -> list[SongReference]:
        """Validate the chat completion and turn its content into SongReferences."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError("Invalid recommendation response format") from e
        if not isinstance(content, str) or not content.strip():
            raise ExternalServiceError("Recommendation response has no content")

        try:
            items = json.loads(_strip_code_fence(content))
        except ValueError as e:
            logger.warning("Failed to parse recommendation content as JSON: %.200s", content)
            raise ExternalServiceError("Recommendation response is not valid JSON") from e

        if not isinstance(items, list) or len(items) != count:
            raise ExternalServiceError(
                f"Expected {count} suggestions, got "
                f"{len(items) if isinstance(items, list) else type(items).__name__}"
            )

        suggestions: list[SongReference] = []
        for item in items:
            details = item.get("song_details", item) if isinstance(item, dict) else None
            if not isinstance(details, dict):
                raise ExternalServiceError("Suggestion is not an object")
            title = details.get("title")
            composer = details.get("composer")
            if not isinstance(title, str) or not isinstance(composer, str):
                raise ExternalServiceError("Suggestion is missing title or composer")
            try:
                suggestions.append(SongReference(title=title.strip(), composer=composer.strip()))
            except ValueError as e:
                raise ExternalServiceError(f"Invalid suggestion: {e}") from e
        return suggestions


# Models love wrapping JSON in ```json fences even when told not to
def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
