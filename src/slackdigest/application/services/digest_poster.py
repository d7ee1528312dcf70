"""Digest rendering and publishing."""

from datetime import datetime

from slack_sdk.models.blocks import (
    Block,
    DividerBlock,
    HeaderBlock,
    MarkdownTextObject,
    PlainTextObject,
    SectionBlock,
)
from structlog.stdlib import BoundLogger

from slackdigest.domain.entities.summary import Summary
from slackdigest.domain.repositories.conversation_repository import (
    ConversationRepository,
)
from slackdigest.domain.timestamps import as_utc, utcnow
from slackdigest.infrastructure.slack.client import SlackClient

HEADER_LIMIT = 150
SECTION_LIMIT = 3000
HIGHLIGHT_TEXT_LIMIT = 100
MENTION_STATS_LIMIT = 10


class NotConfiguredError(RuntimeError):
    """Raised when posting without a destination channel."""


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _link(url: str, label: str) -> str:
    return f"<{url}|{label}>" if url else label


def _format_time(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%d %H:%M UTC")


def _section(text: str) -> SectionBlock:
    return SectionBlock(text=MarkdownTextObject(text=_truncate(text, SECTION_LIMIT)))


def _fill_lines(lines: list[str], limit: int = SECTION_LIMIT) -> str:
    """Join whole lines up to limit, noting how many did not fit.

    Lines are never cut, so link markup stays intact. Once a line does not
    fit, it and every later line are replaced by a single
    ``...and N more`` line.
    """
    text = "\n".join(lines)
    if len(text) <= limit:
        return text

    # Sized for the largest possible count
    budget = limit - len(f"\n_...and {len(lines)} more_")
    kept: list[str] = []
    size = 0
    for line in lines:
        added = len(line) + (1 if kept else 0)
        if size + added > budget:
            break
        kept.append(line)
        size += added

    kept.append(f"_...and {len(lines) - len(kept)} more_")
    return "\n".join(kept)


def _list_section(lines: list[str]) -> SectionBlock:
    return SectionBlock(text=MarkdownTextObject(text=_fill_lines(lines)))


def render_digest(summary: Summary, conversation_name: str) -> list[Block]:
    """Render a summary as Block Kit blocks.

    Args:
        summary: The stored summary.
        conversation_name: Display name of the summarized conversation.

    Returns:
        Header, period, recap, then the Key Messages, Action Items and Mention
        Stats sections for whichever of them are non-empty.
    """
    content = summary.content
    blocks: list[Block] = [
        HeaderBlock(
            text=PlainTextObject(
                text=_truncate(f"Daily Summary: #{conversation_name}", HEADER_LIMIT),
                emoji=True,
            )
        ),
        _section(
            f"*Period:* {_format_time(summary.window_start)} - "
            f"{_format_time(summary.window_end)}"
        ),
        DividerBlock(),
        _section("*Summary*"),
        _section(content.recap or "_No recap available._"),
    ]

    if content.highlights:
        lines = []
        for index, highlight in enumerate(content.highlights, start=1):
            label = _truncate(highlight.text, HIGHLIGHT_TEXT_LIMIT)
            lines.append(f"{index}. {_link(highlight.permalink, label)}")
        blocks += [DividerBlock(), _section("*Key Messages*"), _list_section(lines)]

    if content.tasks:
        lines = []
        for index, task in enumerate(content.tasks, start=1):
            line = f"{index}. {_link(task.source_permalink, task.title)}"
            if task.owner_user_id:
                line += f" (Owner: <@{task.owner_user_id}>)"
            if task.due_date:
                line += f" (Due: {task.due_date.isoformat()})"
            lines.append(line)
        blocks += [DividerBlock(), _section("*Action Items*"), _list_section(lines)]

    if content.mentions:
        # sorted() is stable, so ties keep discovery order
        ranked = sorted(
            content.mentions.items(), key=lambda item: item[1].count, reverse=True
        )[:MENTION_STATS_LIMIT]
        lines = [f"<@{user_id}>: {stat.count} mentions" for user_id, stat in ranked]
        blocks += [DividerBlock(), _section("*Mention Stats*"), _list_section(lines)]

    return blocks


class DigestPoster:
    """Publishes summaries to the digest channel."""

    def __init__(
        self,
        slack: SlackClient,
        repository: ConversationRepository,
        logger: BoundLogger,
        channel_id: str | None = None,
    ) -> None:
        self._slack = slack
        self._repository = repository
        self._logger = logger
        self._channel_id = channel_id

    @property
    def is_configured(self) -> bool:
        """Return True if a destination channel is set."""
        return bool(self._channel_id)

    async def post(self, summary: Summary) -> str:
        """Post a summary and record the resulting message ts.

        Args:
            summary: A persisted summary.

        Returns:
            ts of the posted digest message.

        Raises:
            NotConfiguredError: If no destination channel is configured.
            SlackApiCallError: If Slack rejects the post.
        """
        if not self._channel_id:
            raise NotConfiguredError("Digest channel is not configured")
        if summary.id is None:
            raise ValueError("Summary must be persisted before posting")

        conversation = await self._repository.get_conversation(summary.conversation_id)
        name = conversation.name if conversation else summary.conversation_id
        blocks = render_digest(summary, name)

        ts = await self._slack.post_message(
            self._channel_id,
            text=f"Daily Summary for #{name}",
            blocks=[block.to_dict() for block in blocks],
        )
        await self._repository.mark_summary_posted(summary.id, ts)
        summary.posted_ts = ts
        summary.posted_at = utcnow()

        self._logger.info(
            "Posted summary to Slack",
            summary_id=summary.id,
            channel=self._channel_id,
            ts=ts,
        )
        return ts
