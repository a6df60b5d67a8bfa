"""Tests for the OpenAI text service retry policy."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import openai
import pytest

from gifview.ai import AITextService
from gifview.errors import ConfigurationError

COMPLETION = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "created": 0,
    "model": "gpt-4o-mini",
    "choices": [
        {"index": 0, "message": {"role": "assistant", "content": "Brand: Apple"}, "finish_reason": "stop"}
    ],
    "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
}


def _service(*statuses: int) -> tuple[AITextService, list[httpx.Request]]:
    """Service whose API answers with *statuses* in turn, then 200s."""
    requests: list[httpx.Request] = []
    pending = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status = pending.pop(0) if pending else 200
        if status != 200:
            return httpx.Response(status, json={"error": {"message": f"status {status}", "type": "error"}})
        return httpx.Response(200, json=COMPLETION)

    client = openai.OpenAI(
        api_key="sk-test",
        max_retries=0,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    return AITextService(client=client), requests


class TestAITextService:
    def test_generate(self):
        service, requests = _service()

        result = service.generate("Describe this", model="gpt-4o-mini", temperature=0.3)

        assert result.text == "Brand: Apple"
        assert result.total_tokens == 15
        assert len(requests) == 1

    @pytest.mark.parametrize("status", [429, 503])
    def test_transient_errors_are_retried(self, status):
        service, requests = _service(status, status)

        with patch("tenacity.nap.time.sleep"):
            result = service.generate("Describe this")

        assert result.text == "Brand: Apple"
        assert len(requests) == 3

    @pytest.mark.parametrize(
        "status, error",
        [
            (401, openai.AuthenticationError),
            (400, openai.BadRequestError),
            (404, openai.NotFoundError),
            (500, openai.InternalServerError),
        ],
    )
    def test_other_errors_fail_at_once(self, status, error):
        service, requests = _service(status)

        with patch("tenacity.nap.time.sleep") as sleep, pytest.raises(error):
            service.generate("Describe this")

        assert len(requests) == 1
        sleep.assert_not_called()

    def test_gives_up_after_five_attempts(self):
        service, requests = _service(*[429] * 10)

        with patch("tenacity.nap.time.sleep"), pytest.raises(openai.RateLimitError):
            service.generate("Describe this")

        assert len(requests) == 5

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError):
            AITextService(api_key="").generate("Describe this")
