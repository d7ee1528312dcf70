"""Message entity for Slack message persistence."""

from datetime import datetime
from typing import Any

from sqlalchemy import Column, Index, UniqueConstraint
from sqlalchemy.types import JSON
from sqlmodel import Field, SQLModel

from slackdigest.domain.timestamps import ts_to_datetime, utcnow


def message_id(conversation_id: str, ts: str) -> str:
    """Return the storage key of a message."""
    return f"{conversation_id}:{ts}"


class Message(SQLModel, table=True):
    """Slack message entity.

    Represents a Slack message stored in the database.

    Attributes:
        id: Composite key in format `{conversation_id}:{ts}`.
        conversation_id: Slack conversation ID.
        ts: Slack timestamp.
        user_id: Author's user ID.
        text: Message content.
        thread_ts: Thread root ts. Equals ts for a thread starter.
        reply_count: Number of thread replies (for thread starters).
        reactions: Reaction name to reacting user IDs.
        mentions: User IDs referenced in the text.
        permalink: Permanent link to the message, empty when unavailable.
        posted_at: Message sent time derived from ts.
        received_at: First ingestion time.
        updated_at: Last time the row was re-observed.
    """

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "ts", name="uq_message_conversation_ts"),
        Index("idx_conversation_posted_at", "conversation_id", "posted_at"),
        Index("idx_thread", "conversation_id", "thread_ts"),
    )

    id: str = Field(primary_key=True)
    conversation_id: str = Field(index=True, foreign_key="conversations.id")
    ts: str
    user_id: str = Field(index=True)
    text: str = ""
    thread_ts: str | None = Field(default=None)
    reply_count: int = Field(default=0)
    reactions: dict[str, list[str]] = Field(default_factory=dict, sa_column=Column(JSON))
    mentions: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    permalink: str = ""
    posted_at: datetime = Field(index=True)
    received_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_thread_starter(self) -> bool:
        """Return True if the message opens a thread."""
        return self.thread_ts is not None and self.thread_ts == self.ts

    @property
    def is_reply(self) -> bool:
        """Return True if the message is a reply inside a thread."""
        return self.thread_ts is not None and self.thread_ts != self.ts

    @classmethod
    def from_slack(
        cls,
        conversation_id: str,
        payload: dict[str, Any],
        *,
        mentions: list[str],
        permalink: str = "",
    ) -> "Message":
        """Build a message from a Slack history or replies item."""
        ts = payload["ts"]
        reactions = {
            reaction["name"]: list(reaction.get("users", []))
            for reaction in payload.get("reactions", [])
        }
        return cls(
            id=message_id(conversation_id, ts),
            conversation_id=conversation_id,
            ts=ts,
            user_id=payload["user"],
            text=payload.get("text", ""),
            thread_ts=payload.get("thread_ts"),
            reply_count=payload.get("reply_count", 0),
            reactions=reactions,
            mentions=mentions,
            permalink=permalink,
            posted_at=ts_to_datetime(ts),
        )
