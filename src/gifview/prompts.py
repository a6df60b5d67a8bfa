"""Prompt templates for post enrichment."""

from __future__ import annotations

from collections.abc import Iterable

from gifview.models import CategoryOption

INTEREST_PROMPT = """
You are an AI assistant specializing in content analysis and interest categorization. Your task is to analyze the given text and suggest the most relevant interests from the provided list. Follow these guidelines:

1. Analyze the given text thoroughly, considering the topic, tone, and context.
2. From the list of interests provided below, select all relevant ones that match the content of the text.
3. Rank your selections by relevance, with the most pertinent interest first.
4. Return only the IDs of the interests, one per line, without any additional explanation or commentary.
5. Give only the top 3 interests.

Remember:
- Be specific in your selections. If multiple related interests exist, choose the most precise matches.
- Consider both explicit and implicit themes in the content.
- If the content is multilingual, base your decision on the overall meaning, not just the English parts.

Here is the list of available interests (format is ID: Name):

{interests}

Now, analyze the following text and suggest relevant interest IDs:

{user_input}"""

TOPIC_PROMPT = """
Analyze the provided text and extract specific information based on the following criteria:

1. Brand: If the text refers to a brand, extract the name of the brand and prefix it with "Brand: ".
2. Product: If the text refers to a product, extract the name of the product and prefix it with "Product: ".
3. Event: If the text refers to a seasonal or recurring event (e.g., Christmas, Black Friday), extract the event name and prefix it with "Event: ".
4. Action: If the text describes an action or activity (e.g., running, cooking), extract the action name and prefix it with "Action: ".
5. Sports Team: If the text mentions a sports team, extract the team name and prefix it with "Sports team: ".
6. Celebrity: If the text refers to a celebrity or public figure, extract the name and prefix it with "Celebrity: ".
7. Location: If the text mentions a specific place or location (e.g., New York, Paris), extract the name and prefix it with "Location: ".
8. Emotion: If the text describes a feeling or emotional state (e.g., joy, frustration), extract the emotion and prefix it with "Emotion: ".
9. Weather: If the text describes weather conditions (e.g., sunny, rainy), extract the description and prefix it with "Weather: ".

Put each category on its own line, with multiple values separated by commas.
If none of the above criteria apply, provide 2-3 relevant tags summarizing the main ideas in the text, prefixed by "Other: "

Content: {user_input}
"""


def format_interest_list(options: Iterable[CategoryOption]) -> str:
    return "\n".join(f"{o.id}: {o.name}" for o in options)


def build_interest_prompt(options: Iterable[CategoryOption], user_input: str) -> str:
    # str.replace rather than format(): post text may contain braces
    return INTEREST_PROMPT.replace("{interests}", format_interest_list(options)).replace("{user_input}", user_input)


def build_topic_prompt(user_input: str) -> str:
    return TOPIC_PROMPT.replace("{user_input}", user_input)
