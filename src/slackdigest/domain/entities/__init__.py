"""Domain entities."""

from slackdigest.domain.entities.conversation import Conversation, ConversationKind
from slackdigest.domain.entities.message import Message, message_id
from slackdigest.domain.entities.summary import (
    HEURISTIC_TASK_CONFIDENCE,
    MODEL_TASK_CONFIDENCE,
    Highlight,
    MentionStat,
    Summary,
    SummaryContent,
    SummaryStrategy,
    TaskItem,
)
from slackdigest.domain.entities.user import UserRecord

__all__ = [
    "HEURISTIC_TASK_CONFIDENCE",
    "MODEL_TASK_CONFIDENCE",
    "Conversation",
    "ConversationKind",
    "Highlight",
    "MentionStat",
    "Message",
    "Summary",
    "SummaryContent",
    "SummaryStrategy",
    "TaskItem",
    "UserRecord",
    "message_id",
]
