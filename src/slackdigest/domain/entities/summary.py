"""Summary entity and the digest content value objects."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field as PydanticField, field_validator
from sqlalchemy import Column, Index
from sqlalchemy.types import JSON
from sqlmodel import Field, SQLModel

from slackdigest.domain.timestamps import utcnow

HEURISTIC_TASK_CONFIDENCE = 0.6
MODEL_TASK_CONFIDENCE = 0.8


class SummaryStrategy(str, Enum):
    """Which generation path produced a summary."""

    MODEL = "model"
    HEURISTIC = "heuristic"


class Highlight(BaseModel):
    """A message worth surfacing in the digest."""

    text: str
    ts: str
    user_id: str = ""
    permalink: str = ""


class TaskItem(BaseModel):
    """A candidate action item."""

    title: str
    owner_user_id: str | None = None
    due_date: date | None = None
    confidence: float = PydanticField(default=MODEL_TASK_CONFIDENCE, ge=0.0, le=1.0)
    source_ts: str
    source_permalink: str = ""

    @field_validator("due_date", mode="before")
    @classmethod
    def _date_part(cls, value: Any) -> Any:
        # Models tend to answer with full ISO datetimes
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        if isinstance(value, datetime):
            return value.date()
        return value


class MentionStat(BaseModel):
    """How often a user was mentioned, with short context snippets."""

    count: int = PydanticField(ge=0)
    contexts: list[str] = PydanticField(default_factory=list)


class SummaryContent(BaseModel):
    """Digest content shared by the model-backed and heuristic paths."""

    recap: str
    highlights: list[Highlight] = PydanticField(default_factory=list)
    tasks: list[TaskItem] = PydanticField(default_factory=list)
    mentions: dict[str, MentionStat] = PydanticField(default_factory=dict)


class Summary(SQLModel, table=True):
    """A generated digest for a conversation and time window.

    Rows are append-only; every generation run creates a new one.

    Attributes:
        id: Autoincrement primary key.
        conversation_id: Slack conversation ID.
        window_start: Inclusive window start (UTC).
        window_end: Inclusive window end (UTC).
        recap: Free-text recap.
        highlights: Serialized Highlight list.
        tasks: Serialized TaskItem list.
        mentions: Serialized user ID to MentionStat map, in discovery order.
        strategy: SummaryStrategy value.
        created_at: Generation time.
        posted_ts: ts of the digest message once posted.
        posted_at: Time the digest was posted.
    """

    __tablename__ = "summaries"
    __table_args__ = (
        Index("idx_summary_window", "conversation_id", "window_start", "window_end"),
    )

    id: int | None = Field(default=None, primary_key=True)
    conversation_id: str = Field(index=True)
    window_start: datetime
    window_end: datetime
    recap: str
    highlights: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    tasks: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    mentions: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    strategy: str = SummaryStrategy.HEURISTIC.value
    created_at: datetime = Field(default_factory=utcnow)
    posted_ts: str | None = None
    posted_at: datetime | None = None

    @classmethod
    def from_content(
        cls,
        conversation_id: str,
        window_start: datetime,
        window_end: datetime,
        content: SummaryContent,
        strategy: SummaryStrategy,
    ) -> "Summary":
        """Build a summary row from generated content."""
        data = content.model_dump(mode="json")
        return cls(
            conversation_id=conversation_id,
            window_start=window_start,
            window_end=window_end,
            recap=data["recap"],
            highlights=data["highlights"],
            tasks=data["tasks"],
            mentions=data["mentions"],
            strategy=strategy.value,
        )

    @property
    def content(self) -> SummaryContent:
        """Return the stored content as validated value objects."""
        return SummaryContent(
            recap=self.recap,
            highlights=[Highlight.model_validate(item) for item in self.highlights],
            tasks=[TaskItem.model_validate(item) for item in self.tasks],
            mentions={
                user_id: MentionStat.model_validate(stat)
                for user_id, stat in self.mentions.items()
            },
        )

    @property
    def is_posted(self) -> bool:
        """Return True once the digest has been published."""
        return self.posted_ts is not None
