"""
External collaborator contracts.

The prompt controller only talks to the platform through these
interfaces: a modal dialog presenter, an optional native review
facility and an external link opener.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from rating_requester.config.loader import ConfigurationError, StoreIds


class CapabilityUnavailableError(RuntimeError):
    """Raised when the native review facility is requested but absent."""


class ChoiceStyle(Enum):
    """Visual hint for a dialog button."""
    DEFAULT = "default"
    CANCEL = "cancel"


@dataclass(frozen=True)
class Choice:
    """One button of a modal dialog."""
    key: str
    label: str
    style: ChoiceStyle = ChoiceStyle.DEFAULT


class DialogPresenter(Protocol):
    """Shows a modal dialog and reports which choice the user picked."""

    async def present(self, title: str, message: str, choices: Sequence[Choice]) -> str:
        """Return the key of exactly one of the given choices."""
        ...


@runtime_checkable
class NativeReviewProbe(Protocol):
    """Platform in-app review facility."""

    @property
    def available(self) -> bool:
        ...

    def request_review(self) -> Any:
        ...


class LinkOpener(Protocol):
    """Opens a URL outside the application. Fire-and-forget."""

    def open_url(self, url: str) -> Any:
        ...


def request_review(probe: Optional[NativeReviewProbe]) -> Any:
    """Ask the platform for its native in-app review sheet.

    Args:
        probe: Native review facility, or None if the platform has none

    Returns:
        Whatever the facility returns (opaque to this package)

    Raises:
        CapabilityUnavailableError: If no facility exists or it is unavailable
    """
    if probe is None:
        raise CapabilityUnavailableError("Native review module not available")
    if not probe.available:
        raise CapabilityUnavailableError("Native review is not available on this OS version")
    return probe.request_review()


def store_listing_url(platform: str, store_ids: StoreIds) -> str:
    """Store listing for the given platform ("ios" or "android")."""
    if platform == "ios":
        return f"https://itunes.apple.com/app/id{store_ids.ios}?action=write-review"
    if platform == "android":
        return f"market://details?id={store_ids.android}"
    raise ConfigurationError(f"Unknown platform {platform!r}")
