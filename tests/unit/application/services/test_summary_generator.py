"""Tests for SummaryGenerator.

Test cases:
- Heuristic highlights, tasks, mentions and recap
- Empty windows produce no summary
- Model output is filtered to the window and falls back on errors
- Bot users are dropped from mentions and task owners
"""

from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

from slackdigest.application.services.summary_generator import (
    GenerationState,
    SummaryGenerator,
)
from slackdigest.config.models import LoggingConfig
from slackdigest.domain.entities import (
    Conversation,
    Highlight,
    Message,
    SummaryContent,
    SummaryStrategy,
    TaskItem,
    UserRecord,
)
from slackdigest.domain.extraction.mentions import mention_ids
from slackdigest.domain.timestamps import ts_to_datetime
from slackdigest.infrastructure.logging import setup_logging
from slackdigest.infrastructure.persistence import (
    Database,
    SqliteConversationRepository,
)

BASE_TS = 1_700_000_000


def ts(offset: int) -> str:
    return f"{BASE_TS + offset}.000100"


WINDOW_START = ts_to_datetime(ts(0))
WINDOW_END = ts_to_datetime(ts(100))


def make_message(offset: int, user: str, text: str, **extra: Any) -> Message:
    payload = {"type": "message", "ts": ts(offset), "user": user, "text": text, **extra}
    return Message.from_slack(
        "C1",
        payload,
        mentions=mention_ids(text),
        permalink=f"https://example.slack.com/p{offset}",
    )


class FakeSummarizer:
    def __init__(self, content: SummaryContent | None = None) -> None:
        self.content = content
        self.calls = 0

    async def summarize(
        self, messages: Sequence[Message], start: datetime, end: datetime
    ) -> SummaryContent:
        self.calls += 1
        if self.content is None:
            raise RuntimeError("model unavailable")
        return self.content


@pytest.fixture
def logger() -> structlog.stdlib.BoundLogger:
    setup_logging(LoggingConfig(level="DEBUG", format="json"))
    return structlog.stdlib.get_logger("test")


@pytest.fixture
async def repository(tmp_path: Path) -> AsyncIterator[SqliteConversationRepository]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.initialize()
    repo = SqliteConversationRepository(database)
    await repo.upsert_conversation(Conversation(id="C1", name="general", kind="channel"))
    yield repo
    await database.close()


@pytest.fixture
async def seeded(
    repository: SqliteConversationRepository,
) -> SqliteConversationRepository:
    """Repository holding a small conversation."""
    messages = [
        make_message(
            0, "U1", "Can someone review the PR?", thread_ts=ts(0), reply_count=1
        ),
        make_message(5, "U2", "On it", thread_ts=ts(0)),
        make_message(10, "U1", "TODO: update the runbook <@U2>"),
        make_message(
            20, "U2", "Shipped", reactions=[{"name": "tada", "users": ["U1"]}]
        ),
    ]
    for message in messages:
        await repository.upsert_message(message)
    return repository


class TestHeuristicPath:
    """Summaries without a model."""

    async def test_heuristic_summary(
        self, seeded: SqliteConversationRepository, logger: structlog.stdlib.BoundLogger
    ) -> None:
        generator = SummaryGenerator(seeded, logger)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.state is GenerationState.PERSISTED
        assert result.strategy is SummaryStrategy.HEURISTIC
        assert generator.state is GenerationState.PERSISTED
        assert result.summary is not None
        assert result.summary.id is not None

        content = result.summary.content
        assert [h.ts for h in content.highlights] == [ts(0), ts(20)]
        assert content.highlights[0].permalink == "https://example.slack.com/p0"

        assert len(content.tasks) == 1
        task = content.tasks[0]
        assert task.title.startswith("update the runbook")
        assert task.owner_user_id == "U2"
        assert task.source_ts == ts(10)
        assert task.confidence == 0.6

        assert list(content.mentions) == ["U2"]
        assert content.mentions["U2"].count == 1
        assert content.mentions["U2"].contexts[0].startswith("TODO: update the runbook")
        assert content.mentions["U2"].contexts[0].endswith("...")

        assert "Channel: general" in content.recap
        assert "Total messages: 4" in content.recap
        assert "Active threads: 1" in content.recap
        assert "Unique participants: 2" in content.recap
        assert '1. "Can someone review the PR?..."' in content.recap

    async def test_summary_is_persisted(
        self, seeded: SqliteConversationRepository, logger: structlog.stdlib.BoundLogger
    ) -> None:
        generator = SummaryGenerator(seeded, logger)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.summary is not None
        assert result.summary.id is not None
        stored = await seeded.get_summary(result.summary.id)
        assert stored is not None
        assert stored.strategy == "heuristic"
        assert stored.posted_ts is None

    async def test_highlight_limit(
        self, seeded: SqliteConversationRepository, logger: structlog.stdlib.BoundLogger
    ) -> None:
        generator = SummaryGenerator(seeded, logger, highlight_limit=1)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.summary is not None
        assert [h.ts for h in result.summary.content.highlights] == [ts(0)]

    async def test_window_is_inclusive(
        self, seeded: SqliteConversationRepository, logger: structlog.stdlib.BoundLogger
    ) -> None:
        """Messages exactly on both bounds are summarized."""
        generator = SummaryGenerator(seeded, logger)

        result = await generator.generate(
            "C1", ts_to_datetime(ts(5)), ts_to_datetime(ts(10))
        )

        assert result.summary is not None
        assert "Total messages: 2" in result.summary.content.recap

    async def test_far_future_date_text_is_summarized(
        self,
        repository: SqliteConversationRepository,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        """Text naming an unrepresentable date still yields a summary."""
        await repository.upsert_message(
            make_message(0, "U1", "see you in 9999999 days")
        )
        await repository.upsert_message(
            make_message(1, "U1", "TODO: archive the logs in 5000000 days")
        )
        generator = SummaryGenerator(repository, logger)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.state is GenerationState.PERSISTED
        assert result.strategy is SummaryStrategy.HEURISTIC
        assert result.summary is not None
        tasks = result.summary.content.tasks
        assert [task.source_ts for task in tasks] == [ts(1)]
        assert tasks[0].due_date is None
        stored = await repository.latest_summary("C1", WINDOW_START, WINDOW_END)
        assert stored is not None


class TestEmptyAndErrors:
    """Empty windows and invalid input."""

    async def test_empty_window(
        self,
        repository: SqliteConversationRepository,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        """A window without messages yields no summary."""
        summarizer = FakeSummarizer(SummaryContent(recap="unused"))
        generator = SummaryGenerator(repository, logger, summarizer=summarizer)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.is_empty
        assert result.summary is None
        assert result.strategy is None
        assert generator.state is GenerationState.EMPTY
        assert summarizer.calls == 0
        assert await repository.latest_summary("C1", WINDOW_START, WINDOW_END) is None

    async def test_unknown_conversation(
        self,
        repository: SqliteConversationRepository,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        generator = SummaryGenerator(repository, logger)

        with pytest.raises(LookupError):
            await generator.generate("C404", WINDOW_START, WINDOW_END)

        assert generator.state is GenerationState.IDLE

    async def test_inverted_window(
        self,
        repository: SqliteConversationRepository,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        generator = SummaryGenerator(repository, logger)

        with pytest.raises(ValueError):
            await generator.generate("C1", WINDOW_END, WINDOW_START)


class TestModelPath:
    """Summaries produced by a summarizer."""

    async def test_model_content_is_filtered_to_window(
        self, seeded: SqliteConversationRepository, logger: structlog.stdlib.BoundLogger
    ) -> None:
        """Items citing unknown messages are dropped; permalinks are filled."""
        summarizer = FakeSummarizer(
            SummaryContent(
                recap="The team reviewed and shipped the PR.",
                highlights=[
                    Highlight(text="Review request", ts=ts(0)),
                    Highlight(text="Invented", ts="1.000000"),
                ],
                tasks=[
                    TaskItem(title="Update the runbook", source_ts=ts(10)),
                    TaskItem(title="Invented task", source_ts="2.000000"),
                ],
            )
        )
        generator = SummaryGenerator(seeded, logger, summarizer=summarizer)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.strategy is SummaryStrategy.MODEL
        assert result.summary is not None
        content = result.summary.content
        assert content.recap == "The team reviewed and shipped the PR."
        assert [h.ts for h in content.highlights] == [ts(0)]
        assert content.highlights[0].permalink == "https://example.slack.com/p0"
        assert content.highlights[0].user_id == "U1"
        assert [t.title for t in content.tasks] == ["Update the runbook"]
        assert content.tasks[0].source_permalink == "https://example.slack.com/p10"
        assert content.tasks[0].confidence == 0.8

    async def test_model_failure_falls_back(
        self, seeded: SqliteConversationRepository, logger: structlog.stdlib.BoundLogger
    ) -> None:
        summarizer = FakeSummarizer(None)
        generator = SummaryGenerator(seeded, logger, summarizer=summarizer)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert summarizer.calls == 1
        assert result.strategy is SummaryStrategy.HEURISTIC
        assert result.summary is not None
        assert "Channel: general" in result.summary.content.recap


class TestBotFiltering:
    """Bot users are excluded from mentions and owners."""

    async def test_bot_mentions_and_owners_dropped(
        self,
        repository: SqliteConversationRepository,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        await repository.upsert_user(UserRecord(id="B1", name="deploybot", is_bot=True))
        await repository.upsert_user(UserRecord(id="U2", name="bob"))
        await repository.upsert_message(
            make_message(0, "U1", "TODO: restart the worker <@B1>")
        )
        await repository.upsert_message(make_message(5, "U1", "Thanks <@U2>"))
        generator = SummaryGenerator(repository, logger)

        result = await generator.generate("C1", WINDOW_START, WINDOW_END)

        assert result.summary is not None
        content = result.summary.content
        assert list(content.mentions) == ["U2"]
        assert len(content.tasks) == 1
        assert content.tasks[0].owner_user_id is None
