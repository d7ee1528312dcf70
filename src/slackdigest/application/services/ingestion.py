"""Ingestion of Slack conversation history into the repository."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from structlog.stdlib import BoundLogger

from slackdigest.application.services.user_directory import UserDirectory
from slackdigest.config.models import DEFAULT_CONVERSATION_TYPES
from slackdigest.domain.entities.conversation import Conversation
from slackdigest.domain.entities.message import Message
from slackdigest.domain.extraction.mentions import mention_ids
from slackdigest.domain.repositories.conversation_repository import (
    ConversationRepository,
)
from slackdigest.domain.timestamps import max_ts, ts_key
from slackdigest.infrastructure.persistence.database import StoreUnavailableError
from slackdigest.infrastructure.slack.client import SlackClient
from slackdigest.infrastructure.slack.errors import SlackApiCallError


@dataclass
class ConversationReport:
    """Outcome of ingesting one conversation."""

    conversation_id: str
    fetched: int = 0
    stored: int = 0
    failed: int = 0
    watermark: str | None = None


@dataclass
class IngestionReport:
    """Outcome of an ingestion run."""

    conversations: list[ConversationReport] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def messages_stored(self) -> int:
        return sum(report.stored for report in self.conversations)


def _is_ingestible(payload: dict[str, Any]) -> bool:
    # System messages (joins, topic changes...) carry no user
    return payload.get("type", "message") == "message" and bool(payload.get("user"))


class IngestionOrchestrator:
    """Pulls new history for every visible conversation.

    Conversations are processed one at a time. For each one the history newer
    than the stored watermark is paginated, thread replies are backfilled,
    authors and mentioned users are resolved, every message is upserted and
    the watermark is advanced only over messages that were stored.
    """

    def __init__(
        self,
        slack: SlackClient,
        repository: ConversationRepository,
        users: UserDirectory,
        logger: BoundLogger,
        conversation_types: Sequence[str] = tuple(DEFAULT_CONVERSATION_TYPES),
        conversation_delay: float = 1.0,
        preload_users: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._slack = slack
        self._repository = repository
        self._users = users
        self._logger = logger
        self._conversation_types = list(conversation_types)
        self._conversation_delay = conversation_delay
        self._preload_users = preload_users
        self._sleep = sleep

    async def run(self, since: str | None = None) -> IngestionReport:
        """Ingest every visible conversation.

        Args:
            since: Optional Slack ts lower bound. The effective bound of a
                conversation is the later of since and its watermark.

        Returns:
            Per-conversation results and the IDs of skipped conversations.

        Raises:
            StoreUnavailableError: If the database fails; the run aborts.
        """
        self._logger.info("Starting ingestion for all conversations", since=since)
        report = IngestionReport()

        if self._preload_users:
            try:
                await self._users.warm_up()
            except SlackApiCallError as e:
                self._logger.warning("Failed to preload users", error=str(e))

        try:
            conversations = await self._slack.list_conversations(
                self._conversation_types
            )
        except SlackApiCallError as e:
            self._logger.error("Failed to list conversations", error=str(e))
            return report

        self._logger.info("Found conversations", count=len(conversations))

        for index, payload in enumerate(conversations):
            if index and self._conversation_delay:
                await self._sleep(self._conversation_delay)

            conversation_id = payload.get("id", "")
            try:
                result = await self.ingest_conversation(payload, since)
            except StoreUnavailableError:
                raise
            except Exception as e:
                self._logger.error(
                    "Error processing conversation",
                    conversation_id=conversation_id,
                    error=str(e),
                    exc_info=True,
                )
                report.skipped.append(conversation_id)
                continue

            if result is None:
                report.skipped.append(conversation_id)
            else:
                report.conversations.append(result)

        self._logger.info(
            "Completed ingestion for all conversations",
            processed=len(report.conversations),
            skipped=len(report.skipped),
            messages_stored=report.messages_stored,
        )
        return report

    async def ingest_conversation(
        self, payload: dict[str, Any], since: str | None = None
    ) -> ConversationReport | None:
        """Ingest one conversation from a conversations.list entry.

        Returns:
            The conversation report, or None if the bot cannot access it.
        """
        conversation_id = payload["id"]
        info = await self._slack.conversation_info(conversation_id)
        if info is None:
            self._logger.warning(
                "Cannot access conversation, skipping", conversation_id=conversation_id
            )
            return None

        conversation = await self._repository.upsert_conversation(
            Conversation.from_slack({**payload, **info})
        )
        oldest = max_ts(since, conversation.watermark)
        report = ConversationReport(conversation_id=conversation_id)

        self._logger.info(
            "Fetching messages",
            conversation_id=conversation_id,
            conversation_name=conversation.name,
            oldest=oldest,
        )

        messages: dict[str, dict[str, Any]] = {}
        thread_roots: list[str] = []
        async for item in self._slack.history(conversation_id, oldest):
            if _is_ingestible(item):
                messages[item["ts"]] = item
            root = item.get("thread_ts")
            if root and root not in thread_roots:
                thread_roots.append(root)

        # Blocks watermark advancement at or beyond these timestamps
        blocked: list[str] = []

        for root in thread_roots:
            try:
                async for reply in self._slack.replies(conversation_id, root):
                    if reply.get("ts") == root or not _is_ingestible(reply):
                        continue
                    messages.setdefault(reply["ts"], reply)
            except SlackApiCallError as e:
                self._logger.warning(
                    "Failed to fetch thread replies",
                    conversation_id=conversation_id,
                    thread_ts=root,
                    error=str(e),
                )
                blocked.append(root)

        ordered = sorted(messages.values(), key=lambda item: ts_key(item["ts"]))
        report.fetched = len(ordered)
        self._logger.info(
            "Processing messages",
            conversation_id=conversation_id,
            message_count=len(ordered),
        )

        stored: list[str] = []
        for item in ordered:
            try:
                await self._store_message(conversation_id, item)
            except StoreUnavailableError:
                raise
            except Exception as e:
                self._logger.error(
                    "Failed to process message",
                    conversation_id=conversation_id,
                    message_ts=item["ts"],
                    error=str(e),
                )
                blocked.append(item["ts"])
                report.failed += 1
            else:
                stored.append(item["ts"])
                report.stored += 1

        candidate = _watermark_candidate(stored, blocked)
        if candidate is not None:
            report.watermark = await self._repository.advance_watermark(
                conversation_id, candidate
            )
        else:
            report.watermark = conversation.watermark

        self._logger.info(
            "Finished processing conversation",
            conversation_id=conversation_id,
            stored=report.stored,
            failed=report.failed,
            watermark=report.watermark,
        )
        return report

    async def _store_message(self, conversation_id: str, item: dict[str, Any]) -> None:
        mentions = mention_ids(item.get("text", ""))
        await self._users.resolve_many([item["user"], *mentions])
        permalink = await self._permalink(conversation_id, item["ts"])
        message = Message.from_slack(
            conversation_id, item, mentions=mentions, permalink=permalink
        )
        await self._repository.upsert_message(message)

    async def _permalink(self, conversation_id: str, ts: str) -> str:
        try:
            return await self._slack.get_permalink(conversation_id, ts)
        except SlackApiCallError as e:
            self._logger.debug(
                "Failed to get permalink",
                conversation_id=conversation_id,
                message_ts=ts,
                error=e.code,
            )
            return ""


def _watermark_candidate(stored: list[str], blocked: list[str]) -> str | None:
    """Return the greatest stored ts below the earliest blocking ts."""
    if blocked:
        limit = ts_key(min(blocked, key=ts_key))
        stored = [ts for ts in stored if ts_key(ts) < limit]
    return max_ts(*stored)
