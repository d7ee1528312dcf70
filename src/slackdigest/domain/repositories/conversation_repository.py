"""ConversationRepository protocol."""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Protocol

from slackdigest.domain.entities.conversation import Conversation
from slackdigest.domain.entities.message import Message
from slackdigest.domain.entities.summary import Summary
from slackdigest.domain.entities.user import UserRecord


class ConversationRepository(Protocol):
    """Repository protocol for conversations, messages, users and summaries.

    All writes are idempotent: applying the same upsert twice leaves a single
    row holding the latest field values.
    """

    async def upsert_conversation(self, conversation: Conversation) -> Conversation:
        """Insert or update conversation metadata.

        The stored watermark and created_at are preserved on update.

        Args:
            conversation: Conversation carrying the latest metadata.

        Returns:
            The stored conversation.
        """
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by Slack ID."""
        ...

    async def list_conversations(self) -> list[Conversation]:
        """List all known conversations ordered by name."""
        ...

    async def upsert_message(self, message: Message) -> Message:
        """Save a message keyed by (conversation_id, ts).

        If the message exists it is updated in place while preserving
        received_at.

        Args:
            message: The message to save.

        Returns:
            The stored message.
        """
        ...

    async def get_message(self, conversation_id: str, ts: str) -> Message | None:
        """Get a message by conversation and ts."""
        ...

    async def find_messages_in_window(
        self, conversation_id: str, start: datetime, end: datetime
    ) -> list[Message]:
        """Get messages posted within [start, end], oldest first.

        Args:
            conversation_id: The conversation ID.
            start: Inclusive lower bound on posted_at.
            end: Inclusive upper bound on posted_at.

        Returns:
            List of messages.
        """
        ...

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        """Insert or refresh a user record."""
        ...

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Get a user record by Slack ID."""
        ...

    async def get_users(self, user_ids: Iterable[str]) -> dict[str, UserRecord]:
        """Get the known user records among user_ids, keyed by ID."""
        ...

    async def create_summary(self, summary: Summary) -> Summary:
        """Append a summary row.

        Returns:
            The stored summary with its id assigned.
        """
        ...

    async def get_summary(self, summary_id: int) -> Summary | None:
        """Get a summary by id."""
        ...

    async def latest_summary(
        self, conversation_id: str, start: datetime, end: datetime
    ) -> Summary | None:
        """Get the most recent summary generated for exactly this window."""
        ...

    async def mark_summary_posted(self, summary_id: int, posted_ts: str) -> None:
        """Record that a summary was published as the message posted_ts."""
        ...

    async def advance_watermark(self, conversation_id: str, ts: str) -> str | None:
        """Move the conversation watermark forward to ts.

        The watermark never moves backwards; an older ts is ignored.

        Args:
            conversation_id: The conversation ID.
            ts: Candidate watermark.

        Returns:
            The stored watermark after the call.
        """
        ...

    async def purge_messages_older_than(
        self, age: timedelta, now: datetime | None = None
    ) -> int:
        """Delete messages posted before now - age.

        Summaries and users are left untouched.

        Returns:
            Number of deleted messages.
        """
        ...
