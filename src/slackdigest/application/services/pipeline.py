"""Entry points composing ingestion, summarization, posting and retention."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from structlog.stdlib import BoundLogger

from slackdigest.application.services.digest_poster import DigestPoster
from slackdigest.application.services.ingestion import (
    IngestionOrchestrator,
    IngestionReport,
)
from slackdigest.application.services.summary_generator import (
    GenerationResult,
    SummaryGenerator,
)
from slackdigest.domain.repositories.conversation_repository import (
    ConversationRepository,
)
from slackdigest.domain.timestamps import TimeWindow
from slackdigest.infrastructure.persistence.database import StoreUnavailableError


@dataclass
class RunReport:
    """Outcome of a full scheduled run."""

    window: TimeWindow
    ingestion: IngestionReport | None = None
    generated: list[str] = field(default_factory=list)
    posted: list[str] = field(default_factory=list)
    already_posted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    purged: int | None = None


class DigestPipeline:
    """Runs the digest workflow steps individually or as one sequence."""

    def __init__(
        self,
        ingestion: IngestionOrchestrator,
        generator: SummaryGenerator,
        poster: DigestPoster,
        repository: ConversationRepository,
        logger: BoundLogger,
        retention_days: int | None = None,
    ) -> None:
        self._ingestion = ingestion
        self._generator = generator
        self._poster = poster
        self._repository = repository
        self._logger = logger
        self._retention_days = retention_days

    async def run_ingestion(self, since: str | None = None) -> IngestionReport:
        """Ingest new messages for every visible conversation."""
        return await self._ingestion.run(since)

    async def run_summarization(
        self,
        conversation_id: str,
        start: datetime,
        end: datetime,
        post: bool = False,
    ) -> GenerationResult:
        """Summarize one conversation window, optionally posting the digest.

        Posting is skipped with a warning when no digest channel is set.
        """
        result = await self._generator.generate(conversation_id, start, end)
        if not post or result.summary is None:
            return result

        if not self._poster.is_configured:
            self._logger.warning(
                "Digest channel not configured, skipping posting summary",
                summary_id=result.summary.id,
            )
            return result

        await self._poster.post(result.summary)
        return result

    async def purge_older_than(self, days: int, now: datetime | None = None) -> int:
        """Delete messages posted more than days ago.

        Raises:
            ValueError: If days is less than 1.
        """
        if days < 1:
            raise ValueError("Retention must be at least one day")

        deleted = await self._repository.purge_messages_older_than(
            timedelta(days=days), now=now
        )
        self._logger.info("Purged old messages", days=days, deleted=deleted)
        return deleted

    async def run_once(self, window: TimeWindow) -> RunReport:
        """Ingest, summarize and post every conversation for window, then purge.

        A failure on one conversation is logged and does not stop the others.

        Raises:
            StoreUnavailableError: If the database fails.
        """
        self._logger.info(
            "Starting digest run",
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
        )
        report = RunReport(window=window)
        report.ingestion = await self.run_ingestion()

        for conversation in await self._repository.list_conversations():
            try:
                existing = await self._repository.latest_summary(
                    conversation.id, window.start, window.end
                )
                if existing is not None and existing.is_posted:
                    report.already_posted.append(conversation.id)
                    continue

                result = await self.run_summarization(
                    conversation.id, window.start, window.end, post=True
                )
            except StoreUnavailableError:
                raise
            except Exception as e:
                self._logger.error(
                    "Error summarizing conversation",
                    conversation_id=conversation.id,
                    error=str(e),
                    exc_info=True,
                )
                report.failed.append(conversation.id)
                continue

            if result.summary is None:
                continue
            report.generated.append(conversation.id)
            if result.summary.is_posted:
                report.posted.append(conversation.id)

        if self._retention_days:
            report.purged = await self.purge_older_than(self._retention_days)

        self._logger.info(
            "Completed digest run",
            generated=len(report.generated),
            posted=len(report.posted),
            failed=len(report.failed),
            purged=report.purged,
        )
        return report
