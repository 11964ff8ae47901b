"""Tests for the Expo push client."""
import json

import httpx
import pytest

from app.domains.notifications.push import ExpoPushClient, PushDeliveryError, is_valid_push_token


def token(n: int) -> str:
    return f"ExponentPushToken[device-{n:04d}]"


def make_client(handler, batch_size: int = 100) -> ExpoPushClient:
    client = ExpoPushClient(url="https://push.example/send", batch_size=batch_size, timeout=1.0)
    client._client = httpx.Client(transport=httpx.MockTransport(handler))
    return client


class TestPushTokenValidation:
    @pytest.mark.parametrize(
        "value",
        ["ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]", "ExpoPushToken[abc-123]", "  ExpoPushToken[abc]  "],
    )
    def test_valid_tokens(self, value):
        assert is_valid_push_token(value) is True

    @pytest.mark.parametrize(
        "value",
        [None, "", "not-a-token", "ExponentPushToken[]", "ExponentPushToken[abc", "fcm:abcdef", 12345],
    )
    def test_invalid_tokens(self, value):
        assert is_valid_push_token(value) is False


class TestExpoPushClient:
    """Tests for ExpoPushClient."""

    def test_filters_malformed_and_duplicate_tokens(self):
        client = ExpoPushClient()

        messages = client.build_messages([token(1), "garbage", token(1), "", token(2)], "Title", "Body")

        assert [m.to for m in messages] == [token(1), token(2)]

    def test_batches_messages_by_provider_limit(self):
        batches = []

        def handler(request):
            batch = json.loads(request.content)
            batches.append(batch)
            return httpx.Response(200, json={"data": [{"status": "ok"} for _ in batch]})

        with make_client(handler) as client:
            delivered = client.send_to_tokens([token(n) for n in range(250)], "New Case", "Body", {"caseId": "c1"})

        assert delivered == 250
        assert [len(b) for b in batches] == [100, 100, 50]
        first = batches[0][0]
        assert first["to"] == token(0)
        assert first["title"] == "New Case"
        assert first["data"] == {"caseId": "c1"}
        assert first["priority"] == "high"

    def test_failed_batch_does_not_stop_remaining_batches(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(500, json={"errors": [{"message": "boom"}]})
            return httpx.Response(200, json={"data": []})

        with make_client(handler, batch_size=2) as client:
            delivered = client.send_to_tokens([token(n) for n in range(4)], "T", "B")

        assert len(calls) == 2
        assert delivered == 2

    def test_no_valid_tokens_sends_nothing(self):
        def handler(request):
            raise AssertionError("no request expected")

        with make_client(handler) as client:
            assert client.send_to_tokens(["bad", None], "T", "B") == 0

    def test_send_batch_raises_on_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        with make_client(handler) as client:
            messages = client.build_messages([token(1)], "T", "B")
            with pytest.raises(PushDeliveryError):
                client.send_batch(messages)
