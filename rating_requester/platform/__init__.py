"""
Platform collaborators for the rating prompt.

Contracts for dialogs, native review and link opening, plus console
implementations used by the CLI.
"""

from .collaborators import (
    CapabilityUnavailableError,
    Choice,
    ChoiceStyle,
    DialogPresenter,
    LinkOpener,
    NativeReviewProbe,
    request_review,
    store_listing_url,
)
from .console import ConsoleDialogPresenter, ConsoleLinkOpener

__all__ = [
    "CapabilityUnavailableError",
    "Choice",
    "ChoiceStyle",
    "ConsoleDialogPresenter",
    "ConsoleLinkOpener",
    "DialogPresenter",
    "LinkOpener",
    "NativeReviewProbe",
    "request_review",
    "store_listing_url",
]
