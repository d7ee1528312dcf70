"""Natural-language due date detection for action items.

Recognizes a small vocabulary of date expressions anywhere in a message and
resolves the first one (by position) against the time the message was sent:

- ``today``, ``tonight``, ``eod``, ``tomorrow``
- ``monday`` ... ``sunday``, optionally prefixed with ``next``
- ``in 3 days``, ``in a week``, ``in two weeks``
- ISO dates (``2026-11-20``)
- month-name dates (``Nov 20``, ``November 20th, 2027``)
"""

import re
from datetime import date, datetime

from dateutil import parser as date_parser
from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

DATE_PATTERN = re.compile(
    r"\b(?:"
    r"(?P<iso>\d{4}-\d{2}-\d{2})"
    r"|(?P<day>today|tonight|eod|tomorrow)"
    r"|in\s+(?P<count>\d+|an?|one|two|three|four)\s+(?P<unit>days?|weeks?)"
    r"|(?P<next>next\s+)?(?P<weekday>monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
    r"|(?P<month_day>" + _MONTH + r"\.?\s+\d{1,2}(?:st|nd|rd|th)?(?:,?\s+(?P<year>\d{4}))?)"
    r")\b",
    re.IGNORECASE,
)

WEEKDAYS = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}

NUMBER_WORDS = {"a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4}

DAY_OFFSETS = {"today": 0, "tonight": 0, "eod": 0, "tomorrow": 1}


def find_due_date(text: str, reference: datetime) -> date | None:
    """Return the first date expression in text resolved against reference.

    Args:
        text: Message text.
        reference: Time the message was sent. Relative expressions such as
            ``tomorrow`` are resolved against its calendar day.

    Returns:
        The resolved date, or None when text holds no recognizable date.
    """
    for match in DATE_PATTERN.finditer(text or ""):
        resolved = _resolve(match, reference.date())
        if resolved is not None:
            return resolved
    return None


def _resolve(match: re.Match[str], today: date) -> date | None:
    groups = match.groupdict()

    if groups["iso"]:
        try:
            return date.fromisoformat(groups["iso"])
        except ValueError:
            return None

    if groups["day"]:
        return today + relativedelta(days=DAY_OFFSETS[groups["day"].lower()])

    if groups["unit"]:
        raw_count = groups["count"].lower()
        try:
            count = NUMBER_WORDS.get(raw_count) or int(raw_count)
            if groups["unit"].lower().startswith("week"):
                return today + relativedelta(weeks=count)
            return today + relativedelta(days=count)
        except (ValueError, OverflowError):
            # Counts past date.max are not deadlines
            return None

    if groups["weekday"]:
        # The next occurrence strictly after the reference day
        weekday = WEEKDAYS[groups["weekday"].lower()]
        return today + relativedelta(days=1, weekday=weekday)

    if groups["month_day"]:
        default = datetime(today.year, today.month, today.day)
        try:
            parsed = date_parser.parse(groups["month_day"], default=default).date()
        except (ValueError, OverflowError):
            return None
        if groups["year"] is None and parsed < today:
            parsed += relativedelta(years=1)
        return parsed

    return None
