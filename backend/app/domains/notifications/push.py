"""
Expo push notification client.

Sends messages to the Expo push service in batches. The service accepts at
most 100 messages per request, and rejects the whole batch if any token is
malformed, so tokens are filtered before sending.

API Documentation: https://docs.expo.dev/push-notifications/sending-notifications/
"""
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

PUSH_TOKEN_PATTERN = re.compile(r"^Expo(nent)?PushToken\[[^\[\]\s]+\]$")


class PushDeliveryError(Exception):
    """Raised when the push provider rejects a batch or is unreachable."""
    pass


@dataclass
class PushMessage:
    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "sound": "default",
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "priority": "high",
        }


def is_valid_push_token(token: str | None) -> bool:
    return isinstance(token, str) and bool(PUSH_TOKEN_PATTERN.match(token.strip()))


def chunked(items: list, size: int) -> Iterator[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ExpoPushClient:
    """
    Client for the Expo push API.

    Usage:
        with ExpoPushClient() as client:
            client.send_to_tokens(tokens, "Title", "Body", {"caseId": "..."})
    """

    def __init__(
        self,
        url: str | None = None,
        batch_size: int | None = None,
        timeout: float | None = None,
    ):
        self.url = url or settings.EXPO_PUSH_URL
        self.batch_size = batch_size or settings.PUSH_BATCH_SIZE
        self.timeout = timeout or settings.PUSH_REQUEST_TIMEOUT
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers={
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip, deflate",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ExpoPushClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def build_messages(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> list[PushMessage]:
        """Build one message per distinct, well-formed token."""
        valid_tokens = []
        for token in tokens:
            if not is_valid_push_token(token):
                logger.warning(f"Skipping malformed push token: {str(token)[:24]!r}")
                continue
            token = token.strip()
            if token not in valid_tokens:
                valid_tokens.append(token)
        return [PushMessage(to=token, title=title, body=body, data=data or {}) for token in valid_tokens]

    def send_batch(self, messages: list[PushMessage]) -> dict[str, Any]:
        """
        Post one batch of messages.

        Raises:
            PushDeliveryError: If the request fails or is rejected
        """
        try:
            response = self._get_client().post(self.url, json=[m.to_dict() for m in messages])
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise PushDeliveryError(f"Push provider returned status {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise PushDeliveryError(f"Failed to connect to push provider: {e}") from e

    def send_to_tokens(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        """
        Send a notification to every valid token, batch by batch.

        A failed batch is logged and does not stop the remaining batches.

        Returns:
            Number of messages in batches the provider accepted
        """
        messages = self.build_messages(tokens, title, body, data)
        if not messages:
            logger.info("No valid push tokens to notify")
            return 0

        delivered = 0
        for batch in chunked(messages, self.batch_size):
            try:
                result = self.send_batch(batch)
            except PushDeliveryError as e:
                logger.error(f"Push batch of {len(batch)} failed: {e}")
                continue
            errors = [t for t in result.get("data", []) if isinstance(t, dict) and t.get("status") == "error"]
            if errors:
                logger.warning(f"Push provider reported {len(errors)} ticket errors: {errors[:3]}")
            delivered += len(batch)
        return delivered
