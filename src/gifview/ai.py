"""Text generation over the OpenAI chat completions API."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from openai import APIStatusError, OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from gifview.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 0.7
# Rate limited or temporarily overloaded; everything else fails the call at once
TRANSIENT_STATUS_CODES = (429, 503)


def _should_retry(retry_state) -> bool:
    exc = retry_state.outcome.exception()
    return isinstance(exc, APIStatusError) and exc.status_code in TRANSIENT_STATUS_CODES


@dataclass(frozen=True)
class AIText:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class AITextService:
    """Thin wrapper around ``OpenAI().chat.completions`` with retry on 429/503 responses."""

    def __init__(self, api_key: str = "", client: OpenAI | None = None) -> None:
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("OpenAI API key not configured. Set GIFVIEW_OPENAI_API_KEY.")
            # Retries are owned by the tenacity policy on generate()
            self._client = OpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    @retry(
        retry=_should_retry,
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "ai.retry",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep,
        ),
    )
    def generate(
        self,
        prompt: str,
        *,
        model: str = DEFAULT_MODEL,
        system: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = None,
    ) -> AIText:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        logger.debug("ai.generating", model=model, prompt_chars=len(prompt))
        kwargs = {"max_tokens": max_tokens} if max_tokens else {}
        response = self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            **kwargs,
        )

        text = (response.choices[0].message.content or "") if response.choices else ""
        usage = response.usage
        logger.debug("ai.generated", model=model, chars=len(text))
        return AIText(
            text=text,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )
