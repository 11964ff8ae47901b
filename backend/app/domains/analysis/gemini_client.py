"""
Gemini generative model client.

Sends binary report parts plus an instruction to the Gemini
``generateContent`` REST endpoint and returns the model's raw text.
The caller owns interpretation of that text.

API Documentation: https://ai.google.dev/api/generate-content
"""
import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ContentPart:
    """One binary input for the model."""
    data: bytes
    mime_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "inlineData": {
                "mimeType": self.mime_type,
                "data": base64.b64encode(self.data).decode("ascii"),
            }
        }


class GeminiAPIError(Exception):
    """Raised when the Gemini API returns an error, no text, or is unreachable."""
    pass


class GeminiClient:
    """
    Client for the Gemini generateContent API.

    Usage:
        with GeminiClient() as client:
            text = client.generate([ContentPart(pdf_bytes, "application/pdf")], "Summarize.")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.AI_REQUEST_TIMEOUT
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "GeminiClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def build_request(self, parts: list[ContentPart], instruction: str) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [part.to_dict() for part in parts] + [{"text": instruction}],
                }
            ]
        }

    def generate(self, parts: list[ContentPart], instruction: str) -> str:
        """
        Run the model over the given parts.

        Args:
            parts: Binary inputs, one per document
            instruction: Prompt appended after the documents

        Returns:
            Concatenated text of the first candidate

        Raises:
            GeminiAPIError: If the request fails or the response has no text
        """
        if not self.api_key:
            raise GeminiAPIError("GEMINI_API_KEY is not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            response = self._get_client().post(
                url,
                params={"key": self.api_key},
                json=self.build_request(parts, instruction),
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gemini API HTTP error: {e.response.status_code}")
            raise GeminiAPIError(f"Gemini API returned status {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Gemini API request error: {e}")
            raise GeminiAPIError(f"Failed to connect to Gemini API: {e}") from e
        except ValueError as e:
            raise GeminiAPIError(f"Gemini API returned invalid JSON: {e}") from e

        return self._extract_text(data)

    def _extract_text(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise GeminiAPIError(f"Gemini API returned no candidates (blockReason={block_reason})")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text:
            raise GeminiAPIError("Gemini API returned an empty response")
        return text
