"""Persistence infrastructure."""

from slackdigest.infrastructure.persistence.conversation_repository import (
    SqliteConversationRepository,
)
from slackdigest.infrastructure.persistence.database import (
    Database,
    StoreUnavailableError,
)

__all__ = ["Database", "SqliteConversationRepository", "StoreUnavailableError"]
