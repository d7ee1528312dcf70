"""SQLite implementation of ConversationRepository."""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete
from sqlmodel import select

from slackdigest.domain.entities.conversation import Conversation
from slackdigest.domain.entities.message import Message, message_id
from slackdigest.domain.entities.summary import Summary
from slackdigest.domain.entities.user import UserRecord
from slackdigest.domain.timestamps import as_utc, ts_key, utcnow
from slackdigest.infrastructure.persistence.database import Database

# Fields refreshed when a message is observed again
MESSAGE_UPDATE_FIELDS = (
    "user_id",
    "text",
    "thread_ts",
    "reply_count",
    "reactions",
    "mentions",
    "posted_at",
)


class SqliteConversationRepository:
    """SQLite implementation of ConversationRepository.

    Uses SQLModel with async SQLite for persistence.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the repository.

        Args:
            database: Database instance for session management.
        """
        self._database = database

    async def upsert_conversation(self, conversation: Conversation) -> Conversation:
        """Insert or update conversation metadata, keeping the watermark."""
        async with self._database.get_session() as session:
            existing = await session.get(Conversation, conversation.id)
            if existing is None:
                session.add(conversation)
                return conversation

            if existing.name != conversation.name or existing.kind != conversation.kind:
                existing.name = conversation.name
                existing.kind = conversation.kind
                existing.updated_at = utcnow()
                session.add(existing)
            return existing

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        async with self._database.get_session() as session:
            return await session.get(Conversation, conversation_id)

    async def list_conversations(self) -> list[Conversation]:
        async with self._database.get_session() as session:
            statement = select(Conversation).order_by(Conversation.name)
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def upsert_message(self, message: Message) -> Message:
        """Save a message (upsert on conversation and ts).

        Re-observing a message with identical content leaves the row
        untouched. Changed fields are updated in place; received_at is
        preserved and an empty permalink never overwrites a known one.
        """
        async with self._database.get_session() as session:
            existing = await session.get(Message, message.id)
            if existing is None:
                session.add(message)
                return message

            changed = False
            for field in MESSAGE_UPDATE_FIELDS:
                value = getattr(message, field)
                if field == "posted_at":
                    value = as_utc(value)
                    current: Any = as_utc(existing.posted_at)
                else:
                    current = getattr(existing, field)
                if current != value:
                    setattr(existing, field, value)
                    changed = True
            if message.permalink and message.permalink != existing.permalink:
                existing.permalink = message.permalink
                changed = True

            if changed:
                existing.updated_at = utcnow()
                session.add(existing)
            return existing

    async def get_message(self, conversation_id: str, ts: str) -> Message | None:
        async with self._database.get_session() as session:
            return await session.get(Message, message_id(conversation_id, ts))

    async def find_messages_in_window(
        self, conversation_id: str, start: datetime, end: datetime
    ) -> list[Message]:
        """Get messages posted within [start, end], oldest first."""
        async with self._database.get_session() as session:
            statement = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .where(Message.posted_at >= as_utc(start))  # type: ignore[operator]
                .where(Message.posted_at <= as_utc(end))  # type: ignore[operator]
                .order_by(Message.posted_at.asc(), Message.ts.asc())  # type: ignore[attr-defined]
            )
            result = await session.execute(statement)
            messages = list(result.scalars().all())
        return sorted(messages, key=lambda message: ts_key(message.ts))

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        async with self._database.get_session() as session:
            existing = await session.get(UserRecord, user.id)
            if existing is None:
                session.add(user)
                return user

            existing.name = user.name
            existing.real_name = user.real_name
            existing.email = user.email
            existing.avatar = user.avatar
            existing.is_bot = user.is_bot
            existing.refreshed_at = user.refreshed_at
            session.add(existing)
            return existing

    async def get_user(self, user_id: str) -> UserRecord | None:
        async with self._database.get_session() as session:
            return await session.get(UserRecord, user_id)

    async def get_users(self, user_ids: Iterable[str]) -> dict[str, UserRecord]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}

        async with self._database.get_session() as session:
            statement = select(UserRecord).where(
                UserRecord.id.in_(ids)  # type: ignore[attr-defined]
            )
            result = await session.execute(statement)
            return {user.id: user for user in result.scalars().all()}

    async def create_summary(self, summary: Summary) -> Summary:
        async with self._database.get_session() as session:
            session.add(summary)
            await session.flush()
            await session.refresh(summary)
            return summary

    async def get_summary(self, summary_id: int) -> Summary | None:
        async with self._database.get_session() as session:
            return await session.get(Summary, summary_id)

    async def latest_summary(
        self, conversation_id: str, start: datetime, end: datetime
    ) -> Summary | None:
        async with self._database.get_session() as session:
            statement = (
                select(Summary)
                .where(Summary.conversation_id == conversation_id)
                .where(Summary.window_start == as_utc(start))
                .where(Summary.window_end == as_utc(end))
                .order_by(Summary.id.desc())  # type: ignore[union-attr]
                .limit(1)
            )
            result = await session.execute(statement)
            return result.scalars().first()

    async def mark_summary_posted(self, summary_id: int, posted_ts: str) -> None:
        async with self._database.get_session() as session:
            summary = await session.get(Summary, summary_id)
            if summary is None:
                raise LookupError(f"Summary {summary_id} not found")
            summary.posted_ts = posted_ts
            summary.posted_at = utcnow()
            session.add(summary)

    async def advance_watermark(self, conversation_id: str, ts: str) -> str | None:
        """Move the watermark forward; never backwards."""
        async with self._database.get_session() as session:
            conversation = await session.get(Conversation, conversation_id)
            if conversation is None:
                raise LookupError(f"Conversation {conversation_id} not found")

            current = conversation.watermark
            if current is None or ts_key(ts) > ts_key(current):
                conversation.watermark = ts
                conversation.updated_at = utcnow()
                session.add(conversation)
            return conversation.watermark

    async def purge_messages_older_than(
        self, age: timedelta, now: datetime | None = None
    ) -> int:
        cutoff = as_utc(now or utcnow()) - age
        async with self._database.get_session() as session:
            result: Any = await session.execute(
                delete(Message).where(Message.posted_at < cutoff)  # type: ignore[arg-type]
            )
            return result.rowcount or 0
