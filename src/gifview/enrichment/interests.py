"""Hierarchical category selection, one AI call per depth level.

Level 1 chooses from every active top-level category. Levels 2 and 3 only see
children of what the previous level chose; a level with nothing to filter by
returns no categories without touching the store.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from gifview.ai import AITextService
from gifview.enums import InterestDepth
from gifview.prompts import build_interest_prompt
from gifview.repositories import CategoryRepository

INTEREST_MODEL = "gpt-4o-mini"
INTEREST_TEMPERATURE = 0.3

DEPTH_ORDER = (InterestDepth.MAIN, InterestDepth.SUB, InterestDepth.SUB_SUB)


def interest_user_message(title: str | None, description: str | None, content: str | None) -> str:
    return f"{(title or '').strip()}\n{(description or '').strip()}\n{(content or '').strip()}"


def parse_selected_ids(text: str, offered: set[str]) -> list[str]:
    """Ids from the reply, one per line, in reply order. Anything not offered is dropped."""
    selected: list[str] = []
    for line in (text or "").strip().splitlines():
        candidate = line.strip()
        if candidate in offered and candidate not in selected:
            selected.append(candidate)
    return selected


def interests_for_depth(
    ai: AITextService,
    categories: CategoryRepository,
    depth: InterestDepth,
    parent_ids: Sequence[str],
    user_msg: str,
    log: structlog.stdlib.BoundLogger,
) -> list[str]:
    if depth != InterestDepth.MAIN and not parent_ids:
        return []

    options = categories.active_by_depth(depth, parent_ids if depth != InterestDepth.MAIN else None)
    if not options:
        log.debug("enrich.no_categories", depth=str(depth))
        return []

    result = ai.generate(
        build_interest_prompt(options, user_msg),
        model=INTEREST_MODEL,
        temperature=INTEREST_TEMPERATURE,
    )
    return parse_selected_ids(result.text, {o.id for o in options})


def suggest_interests(
    ai: AITextService,
    categories: CategoryRepository,
    title: str | None,
    description: str | None,
    content: str | None,
    log: structlog.stdlib.BoundLogger,
) -> list[str]:
    """Category ids across all three levels, top level first."""
    user_msg = interest_user_message(title, description, content)

    selected: list[str] = []
    parents: list[str] = []
    for depth in DEPTH_ORDER:
        parents = interests_for_depth(ai, categories, depth, parents, user_msg, log)
        log.debug("enrich.interests_at_depth", depth=str(depth), count=len(parents))
        selected.extend(parents)

    log.info("enrich.interests_suggested", total=len(selected))
    return selected
