"""Conversation entity for tracked Slack conversations."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlmodel import Field, SQLModel

from slackdigest.domain.timestamps import utcnow


class ConversationKind(str, Enum):
    """Slack conversation kinds tracked for ingestion."""

    CHANNEL = "channel"
    GROUP = "group"
    IM = "im"
    MPIM = "mpim"

    @classmethod
    def from_slack(cls, payload: dict[str, Any]) -> "ConversationKind":
        """Derive the kind from a conversations.list / conversations.info object.

        Raises:
            ValueError: If the payload carries none of the known kind flags.
        """
        # mpims also carry is_group, private channels may carry is_channel
        if payload.get("is_im"):
            return cls.IM
        if payload.get("is_mpim"):
            return cls.MPIM
        if payload.get("is_group") or payload.get("is_private"):
            return cls.GROUP
        if payload.get("is_channel"):
            return cls.CHANNEL
        raise ValueError(f"Unknown conversation type for {payload.get('id')}")


class Conversation(SQLModel, table=True):
    """A channel, private group or direct message tracked for ingestion.

    Attributes:
        id: Slack conversation ID.
        name: Display name (the peer's user ID for direct messages).
        kind: One of the ConversationKind values.
        watermark: Slack ts up to which history has been durably ingested.
        created_at: Record creation time.
        updated_at: Last metadata refresh.
    """

    __tablename__ = "conversations"

    id: str = Field(primary_key=True)
    name: str
    kind: str = Field(index=True)
    watermark: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_slack(cls, payload: dict[str, Any]) -> "Conversation":
        """Build a conversation from a Slack conversation object."""
        conversation_id = payload["id"]
        name = payload.get("name") or payload.get("user") or conversation_id
        return cls(
            id=conversation_id,
            name=name,
            kind=ConversationKind.from_slack(payload).value,
        )
