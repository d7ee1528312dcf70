"""Pure extractors over message text."""

from slackdigest.domain.extraction.dates import find_due_date
from slackdigest.domain.extraction.mentions import extract_mentions, mention_ids
from slackdigest.domain.extraction.tasks import TASK_RULES, extract_tasks

__all__ = [
    "TASK_RULES",
    "extract_mentions",
    "extract_tasks",
    "find_due_date",
    "mention_ids",
]
