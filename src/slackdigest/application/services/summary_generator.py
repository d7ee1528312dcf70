"""Summary generation over a conversation window."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from jinja2 import Template
from structlog.stdlib import BoundLogger

from slackdigest.application.services.model_summarizer import Summarizer
from slackdigest.domain.entities.message import Message
from slackdigest.domain.entities.summary import (
    Highlight,
    MentionStat,
    Summary,
    SummaryContent,
    SummaryStrategy,
    TaskItem,
)
from slackdigest.domain.extraction.tasks import extract_tasks
from slackdigest.domain.repositories.conversation_repository import (
    ConversationRepository,
)
from slackdigest.domain.timestamps import as_utc, ts_to_datetime

RECAP_TEMPLATE = Template(
    """Channel: {{ channel_name }}
Period: {{ first.strftime("%Y-%m-%d %H:%M") }} UTC to {{ last.strftime("%Y-%m-%d %H:%M") }} UTC

Total messages: {{ message_count }}
Active threads: {{ thread_count }}
Unique participants: {{ participant_count }}
{% if highlights %}
Key messages:
{% for highlight in highlights -%}
{{ loop.index }}. "{{ highlight.text[:50] }}..."
{% endfor %}{% endif %}"""
)


class GenerationState(str, Enum):
    """Lifecycle of a single generate() call."""

    IDLE = "idle"
    FETCHING = "fetching"
    GENERATING = "generating"
    PERSISTED = "persisted"
    EMPTY = "empty"


@dataclass
class GenerationResult:
    """Outcome of a generate() call.

    summary and strategy are None when the window held no messages.
    """

    state: GenerationState
    summary: Summary | None = None
    strategy: SummaryStrategy | None = None

    @property
    def is_empty(self) -> bool:
        return self.state is GenerationState.EMPTY


class SummaryGenerator:
    """Builds and stores digest summaries.

    When a summarizer is configured the model path runs first; any failure
    there falls back to the heuristic path, so a non-empty window always
    yields a persisted summary.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        logger: BoundLogger,
        summarizer: Summarizer | None = None,
        highlight_limit: int = 5,
        mention_context_chars: int = 30,
        max_mention_contexts: int = 3,
    ) -> None:
        self._repository = repository
        self._logger = logger
        self._summarizer = summarizer
        self._highlight_limit = highlight_limit
        self._mention_context_chars = mention_context_chars
        self._max_mention_contexts = max_mention_contexts
        self.state = GenerationState.IDLE

    async def generate(
        self, conversation_id: str, start: datetime, end: datetime
    ) -> GenerationResult:
        """Generate and persist the summary of [start, end].

        Raises:
            ValueError: If start is after end.
            LookupError: If the conversation is unknown.
        """
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValueError("Window start must not be after window end")

        self.state = GenerationState.FETCHING
        try:
            conversation = await self._repository.get_conversation(conversation_id)
            if conversation is None:
                raise LookupError(f"Conversation {conversation_id} not found")

            messages = await self._repository.find_messages_in_window(
                conversation_id, start, end
            )
            if not messages:
                self._logger.info(
                    "No messages in time window, skipping summary",
                    conversation_id=conversation_id,
                    start=start.isoformat(),
                    end=end.isoformat(),
                )
                self.state = GenerationState.EMPTY
                return GenerationResult(state=GenerationState.EMPTY)

            self.state = GenerationState.GENERATING
            self._logger.info(
                "Generating summary",
                conversation_id=conversation_id,
                message_count=len(messages),
            )

            content, strategy = await self._generate_content(
                messages, conversation.name, start, end
            )
            content = await self._without_bots(content)

            summary = await self._repository.create_summary(
                Summary.from_content(conversation_id, start, end, content, strategy)
            )
        except BaseException:
            self.state = GenerationState.IDLE
            raise

        self.state = GenerationState.PERSISTED
        self._logger.info(
            "Summary generated and stored",
            summary_id=summary.id,
            conversation_id=conversation_id,
            strategy=strategy.value,
        )
        return GenerationResult(
            state=GenerationState.PERSISTED, summary=summary, strategy=strategy
        )

    async def _generate_content(
        self,
        messages: Sequence[Message],
        channel_name: str,
        start: datetime,
        end: datetime,
    ) -> tuple[SummaryContent, SummaryStrategy]:
        if self._summarizer is not None:
            try:
                content = await self._summarizer.summarize(messages, start, end)
                return _within_window(content, messages), SummaryStrategy.MODEL
            except Exception as e:
                self._logger.error(
                    "Error generating summary, falling back to heuristic",
                    error=str(e),
                )

        return self.heuristic_summary(messages, channel_name), SummaryStrategy.HEURISTIC

    def heuristic_summary(
        self, messages: Sequence[Message], channel_name: str
    ) -> SummaryContent:
        """Summarize messages from reactions, threads, questions and mentions."""
        replied_to = {m.thread_ts for m in messages if m.is_reply}

        highlights = [
            Highlight(
                text=m.text, ts=m.ts, user_id=m.user_id, permalink=m.permalink
            )
            for m in messages
            if m.reactions
            or m.ts in replied_to
            or (m.is_thread_starter and m.reply_count > 0)
            or "?" in m.text
        ][: self._highlight_limit]

        tasks: list[TaskItem] = []
        for m in messages:
            tasks.extend(
                extract_tasks(m.text, m.ts, permalink=m.permalink, user_id=m.user_id)
            )

        mentions: dict[str, MentionStat] = {}
        for m in messages:
            for user_id in m.mentions:
                stat = mentions.setdefault(user_id, MentionStat(count=0))
                stat.count += 1
                if len(stat.contexts) < self._max_mention_contexts:
                    stat.contexts.append(m.text[: self._mention_context_chars] + "...")

        recap = RECAP_TEMPLATE.render(
            channel_name=channel_name,
            first=ts_to_datetime(messages[0].ts),
            last=ts_to_datetime(messages[-1].ts),
            message_count=len(messages),
            thread_count=len(replied_to),
            participant_count=len({m.user_id for m in messages}),
            highlights=highlights,
        )

        return SummaryContent(
            recap=recap, highlights=highlights, tasks=tasks, mentions=mentions
        )

    async def _without_bots(self, content: SummaryContent) -> SummaryContent:
        candidates = set(content.mentions)
        candidates.update(t.owner_user_id for t in content.tasks if t.owner_user_id)
        if not candidates:
            return content

        users = await self._repository.get_users(candidates)
        bots = {user_id for user_id, user in users.items() if user.is_bot}
        if not bots:
            return content

        return content.model_copy(
            update={
                "mentions": {
                    user_id: stat
                    for user_id, stat in content.mentions.items()
                    if user_id not in bots
                },
                "tasks": [
                    task.model_copy(update={"owner_user_id": None})
                    if task.owner_user_id in bots
                    else task
                    for task in content.tasks
                ],
            }
        )


def _within_window(content: SummaryContent, messages: Sequence[Message]) -> SummaryContent:
    """Drop model highlights and tasks that cite messages outside the window.

    Permalinks missing from the model reply are filled in from the stored
    messages.
    """
    by_ts = {m.ts: m for m in messages}

    highlights = [
        h.model_copy(
            update={
                "permalink": h.permalink or by_ts[h.ts].permalink,
                "user_id": h.user_id or by_ts[h.ts].user_id,
            }
        )
        for h in content.highlights
        if h.ts in by_ts
    ]
    tasks = [
        t.model_copy(
            update={"source_permalink": t.source_permalink or by_ts[t.source_ts].permalink}
        )
        for t in content.tasks
        if t.source_ts in by_ts
    ]
    return content.model_copy(update={"highlights": highlights, "tasks": tasks})
