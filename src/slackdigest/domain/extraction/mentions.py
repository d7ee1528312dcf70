"""User mention extraction from Slack message text."""

import re

# <@U123> or <@U123|display-name>
MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)(?:\|[^>]*)?>")


def mention_ids(text: str) -> list[str]:
    """Return mentioned user IDs in order of first appearance, without repeats."""
    return list(dict.fromkeys(MENTION_PATTERN.findall(text or "")))


def extract_mentions(text: str) -> set[str]:
    """Return the set of user IDs referenced in text."""
    return set(mention_ids(text))
