"""
Rating requester.

Decides when to ask users for an app store rating and runs the prompt.
"""

from .config.loader import ConfigurationError, RatingConfig, build_rating_config
from .core.prompt import PromptOutcome, RatingRequester, UsageKind
from .core.timing import DefaultTimingPolicy, TimingPolicy, should_prompt
from .platform.collaborators import CapabilityUnavailableError, request_review
from .storage.ledger import RatingsLedger, SQLiteKeyValueStore, StorageError
from .storage.models import LedgerSnapshot

__all__ = [
    "CapabilityUnavailableError",
    "ConfigurationError",
    "DefaultTimingPolicy",
    "LedgerSnapshot",
    "PromptOutcome",
    "RatingConfig",
    "RatingRequester",
    "RatingsLedger",
    "SQLiteKeyValueStore",
    "StorageError",
    "TimingPolicy",
    "UsageKind",
    "build_rating_config",
    "request_review",
    "should_prompt",
]
