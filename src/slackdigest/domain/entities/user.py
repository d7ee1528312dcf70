"""UserRecord entity for the Slack user directory."""

from datetime import datetime
from typing import Any

from sqlmodel import Field, SQLModel

from slackdigest.domain.timestamps import utcnow


class UserRecord(SQLModel, table=True):
    """Directory entry for a message author or mentioned user."""

    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: str
    real_name: str | None = None
    email: str | None = None
    avatar: str | None = None
    is_bot: bool = Field(default=False)
    refreshed_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_slack(cls, payload: dict[str, Any]) -> "UserRecord":
        """Build a record from a users.info / users.list member object."""
        profile = payload.get("profile") or {}
        return cls(
            id=payload["id"],
            name=payload.get("name") or payload["id"],
            real_name=payload.get("real_name") or profile.get("real_name") or None,
            email=profile.get("email") or None,
            avatar=profile.get("image_72") or None,
            is_bot=bool(payload.get("is_bot", False)),
        )

    @classmethod
    def placeholder(cls, user_id: str) -> "UserRecord":
        """Stand-in record for a user that cannot be resolved."""
        return cls(id=user_id, name=user_id)
