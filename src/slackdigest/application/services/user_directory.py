"""User directory backed by Slack, the repository and a TTL cache."""

import asyncio
from collections.abc import Iterable

from structlog.stdlib import BoundLogger

from slackdigest.domain.entities.user import UserRecord
from slackdigest.domain.repositories.conversation_repository import (
    ConversationRepository,
)
from slackdigest.infrastructure.cache import TtlCache
from slackdigest.infrastructure.slack.client import SlackClient
from slackdigest.infrastructure.slack.errors import SlackApiCallError

DEFAULT_USER_TTL = 3600.0


class UserDirectory:
    """Resolves Slack user IDs to UserRecords.

    Lookups hit the in-memory cache first; stale or missing entries are
    fetched with users.info and written through to the repository. A user
    Slack cannot resolve becomes a placeholder record so ingestion never
    stalls on a deleted or foreign author.
    """

    def __init__(
        self,
        slack: SlackClient,
        repository: ConversationRepository,
        logger: BoundLogger,
        ttl: float = DEFAULT_USER_TTL,
        cache: TtlCache[str, UserRecord] | None = None,
    ) -> None:
        self._slack = slack
        self._repository = repository
        self._logger = logger
        self._ttl = ttl
        self._cache: TtlCache[str, UserRecord] = cache or TtlCache()

    async def resolve_user(self, user_id: str) -> UserRecord:
        """Return the directory record for user_id, refreshing it when stale."""
        return await self._cache.get_or_refresh(
            user_id, self._ttl, lambda: self._load(user_id)
        )

    async def resolve_many(self, user_ids: Iterable[str]) -> dict[str, UserRecord]:
        """Resolve several users concurrently."""
        ids = list(dict.fromkeys(user_ids))
        records = await asyncio.gather(*(self.resolve_user(user_id) for user_id in ids))
        return dict(zip(ids, records))

    async def warm_up(self) -> int:
        """Preload the cache from users.list.

        Returns:
            Number of users loaded.
        """
        count = 0
        async for member in self._slack.list_users():
            record = await self._repository.upsert_user(UserRecord.from_slack(member))
            self._cache.put(record.id, record)
            count += 1
        self._logger.info("User directory warmed up", user_count=count)
        return count

    async def _load(self, user_id: str) -> UserRecord:
        try:
            member = await self._slack.user_info(user_id)
        except SlackApiCallError as e:
            self._logger.warning(
                "Failed to resolve user, using placeholder",
                user_id=user_id,
                error=e.code,
            )
            return UserRecord.placeholder(user_id)

        return await self._repository.upsert_user(UserRecord.from_slack(member))
