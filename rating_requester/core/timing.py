"""
Timing policy for rating prompts.

Turns a ledger snapshot and the configured thresholds into a yes/no
prompt decision. Policies only read the snapshot, they never write to
the ledger.

Default decision order:
1. Permanent suppression - rated or declined users are never asked again
2. Debug override - always prompt
3. Thresholds - uses, positive events, or days since the last prompt
"""

import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from rating_requester.storage.models import LedgerSnapshot

if TYPE_CHECKING:
    from rating_requester.config.loader import RatingConfig

ONE_DAY = timedelta(days=1)


@runtime_checkable
class TimingPolicy(Protocol):
    """Strategy deciding whether the rating prompt should be shown."""

    def should_prompt(
        self,
        config: "RatingConfig",
        snapshot: LedgerSnapshot,
        now: datetime,
    ) -> bool:
        ...


def days_since(timestamp: Optional[datetime], now: datetime) -> float:
    """Whole days elapsed since timestamp, or infinity if it was never set."""
    if timestamp is None:
        return math.inf
    return math.floor((now - timestamp) / ONE_DAY)


class DefaultTimingPolicy:
    """Prompt once any usage threshold or the reminder interval is reached.

    A ledger that has never recorded a prompt counts as having waited
    long enough, so the days criterion passes on first run.
    """

    def should_prompt(
        self,
        config: "RatingConfig",
        snapshot: LedgerSnapshot,
        now: datetime,
    ) -> bool:
        if not config.debug and snapshot.is_suppressed:
            return False

        return (
            config.debug
            or snapshot.uses_count >= config.uses_until_prompt
            or snapshot.event_count >= config.events_until_prompt
            or days_since(snapshot.last_seen_at, now) > config.days_before_reminding
        )

    def __repr__(self) -> str:
        return "DefaultTimingPolicy()"


def should_prompt(
    config: "RatingConfig",
    snapshot: LedgerSnapshot,
    now: Optional[datetime] = None,
) -> bool:
    """Evaluate the configured timing policy against a ledger snapshot.

    Args:
        config: Rating configuration carrying thresholds and the policy
        snapshot: Ledger values read at the start of the evaluation
        now: Evaluation time (defaults to the current time)

    Returns:
        True if a prompt cycle should start
    """
    if now is None:
        now = datetime.now()
    return bool(config.timing_policy.should_prompt(config, snapshot, now))
