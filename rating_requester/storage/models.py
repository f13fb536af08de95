"""
Data models for the storage layer.

Defines the ledger keys and the snapshot read by the decision engine.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class LedgerKey(Enum):
    """Persisted ledger keys. Values are the stored key names."""
    RATED_AT = "ratedAt"
    DECLINED_AT = "declinedAt"
    LAST_SEEN_AT = "lastSeenAt"
    USES_COUNT = "usesCount"
    EVENT_COUNT = "eventCount"


TIMESTAMP_KEYS = (LedgerKey.RATED_AT, LedgerKey.DECLINED_AT, LedgerKey.LAST_SEEN_AT)
COUNTER_KEYS = (LedgerKey.USES_COUNT, LedgerKey.EVENT_COUNT)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time view of the rating ledger.
    
    Unset timestamps are None and unset counters are 0.
    """
    rated_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    uses_count: int = 0
    event_count: int = 0

    @property
    def is_suppressed(self) -> bool:
        """True once the user has rated or declined."""
        return self.rated_at is not None or self.declined_at is not None
