"""Heuristic action item extraction.

Every rule is applied independently to the message and contributes at most one
candidate, so a single message can yield several overlapping tasks (for
example a "please review ... by Friday" message matches both the ``please``
and the ``deadline`` rules). Consumers rely on that multiplicity.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from slackdigest.domain.entities.summary import HEURISTIC_TASK_CONFIDENCE, TaskItem
from slackdigest.domain.extraction.dates import find_due_date
from slackdigest.domain.extraction.mentions import mention_ids
from slackdigest.domain.timestamps import ts_to_datetime

MIN_TITLE_LENGTH = 5

ACTION_VERBS = (
    r"(do|create|update|change|fix|implement|add|remove|check|review|"
    r"complete|finish|send|write|prepare|schedule|deploy|test)"
)

# Title text runs to the first period or the end of the line
_REST = r"(.+?)(?:\.|$)"


@dataclass(frozen=True)
class TaskRule:
    """A named pattern whose capture groups form the task title."""

    name: str
    pattern: re.Pattern[str]

    def title(self, text: str) -> str | None:
        match = self.pattern.search(text)
        if match is None:
            return None
        parts = [group for group in match.groups() if group]
        title = " ".join(" ".join(parts).split())
        if len(title) < MIN_TITLE_LENGTH:
            return None
        return title


_FLAGS = re.IGNORECASE | re.MULTILINE

TASK_RULES: tuple[TaskRule, ...] = (
    TaskRule("todo", re.compile(r"\btodo\b:?\s*" + _REST, _FLAGS)),
    TaskRule(
        "please",
        re.compile(r"\bplease\b.{0,15}?\b" + ACTION_VERBS + r"\b" + _REST, _FLAGS),
    ),
    TaskRule(
        "need_to",
        re.compile(r"\bneeds? to\s+" + ACTION_VERBS + r"\b" + _REST, _FLAGS),
    ),
    TaskRule(
        "deadline",
        re.compile(
            r"\b" + ACTION_VERBS + r"\b.{0,15}?\b(by|before|after|on)\b" + _REST,
            _FLAGS,
        ),
    ),
    TaskRule("checklist", re.compile(r"^\s*(?:[-*•]\s*)?\[\s?\]\s+" + _REST, _FLAGS)),
    TaskRule("bullet", re.compile(r"^\s*[-*•]\s+(?!\[)" + _REST, _FLAGS)),
    TaskRule("numbered", re.compile(r"^\s*\d+[.)]\s+" + _REST, _FLAGS)),
)


def extract_tasks(
    text: str,
    ts: str,
    permalink: str = "",
    user_id: str = "",
    reference: datetime | None = None,
) -> list[TaskItem]:
    """Extract candidate action items from one message.

    Args:
        text: Message text.
        ts: Message ts, recorded as the task source.
        permalink: Message permalink, recorded as the task source link.
        user_id: Message author. Unused: owners come from mentions only, and
            the parameter is kept so callers pass the same fields the model
            path records.
        reference: Time relative dates resolve against. Defaults to the
            message time derived from ts.

    Returns:
        One TaskItem per matching rule, in rule order.
    """
    if not text:
        return []

    mentioned = mention_ids(text)
    owner = mentioned[0] if len(mentioned) == 1 else None
    due_date = find_due_date(text, reference or ts_to_datetime(ts))

    tasks: list[TaskItem] = []
    for rule in TASK_RULES:
        title = rule.title(text)
        if title is None:
            continue
        tasks.append(
            TaskItem(
                title=title,
                owner_user_id=owner,
                due_date=due_date,
                confidence=HEURISTIC_TASK_CONFIDENCE,
                source_ts=ts,
                source_permalink=permalink,
            )
        )
    return tasks
