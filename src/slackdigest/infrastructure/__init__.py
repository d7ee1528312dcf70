"""Infrastructure layer."""

from slackdigest.infrastructure.cache import TtlCache
from slackdigest.infrastructure.persistence import Database

__all__ = ["Database", "TtlCache"]
