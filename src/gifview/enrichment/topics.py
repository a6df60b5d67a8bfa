"""Topic extraction: the structured ``Area: keywords`` lines that drive GIF search."""

from __future__ import annotations

import structlog

from gifview.ai import AITextService
from gifview.prompts import build_topic_prompt

TOPIC_MODEL = "gpt-4o-mini"
TOPIC_TEMPERATURE = 0.3


def topic_user_message(title: str | None, description: str | None, content: str | None) -> str:
    return f"{title or ''}: {description or ''} {content or ''}".strip()


def suggest_topic(
    ai: AITextService,
    title: str | None,
    description: str | None,
    content: str | None,
    log: structlog.stdlib.BoundLogger,
) -> str:
    prompt = build_topic_prompt(topic_user_message(title, description, content))
    result = ai.generate(prompt, model=TOPIC_MODEL, temperature=TOPIC_TEMPERATURE)
    log.debug("enrich.topic_extracted", topic=result.text[:100])
    return result.text
