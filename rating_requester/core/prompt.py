"""
Rating prompt controller.

Runs one prompt cycle from eligibility through the user's answer:

    Idle -> Seen -> [enjoying gate] -> native review | rating dialog -> Reset -> Idle

Presenting dialogs only decides a PromptOutcome. What each outcome does
to the ledger and which callback it fires lives in OUTCOME_EFFECTS.
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from rating_requester.config.loader import ConfigurationError, RatingConfig, build_rating_config
from rating_requester.platform.collaborators import (
    Choice,
    ChoiceStyle,
    DialogPresenter,
    LinkOpener,
    NativeReviewProbe,
    request_review,
    store_listing_url,
)
from rating_requester.storage.ledger import RatingsLedger

from .timing import should_prompt

logger = logging.getLogger(__name__)

PLATFORMS = ("ios", "android")


class UsageKind(Enum):
    """Usage signals counted toward the prompt thresholds."""
    USE = "use"
    POSITIVE_INTERACTION = "positive_interaction"


class PromptOutcome(Enum):
    """How a prompt cycle ended from the user's point of view."""
    ACCEPTED = "accepted"
    DECLINED = "declined"
    DELAYED = "delayed"
    DECLINED_AT_GATE = "declined_at_gate"
    NATIVE_REVIEW = "native_review"  # result is not reported back by the platform


@dataclass(frozen=True)
class OutcomeEffects:
    """Side effects applied once an outcome is known."""
    ledger_write: Optional[str] = None  # RatingsLedger method
    callback: Optional[str] = None      # Callbacks field
    open_store: bool = False


OUTCOME_EFFECTS: Dict[PromptOutcome, OutcomeEffects] = {
    PromptOutcome.ACCEPTED: OutcomeEffects("record_rated", "accept", open_store=True),
    PromptOutcome.DECLINED: OutcomeEffects("record_decline", "decline"),
    PromptOutcome.DELAYED: OutcomeEffects(None, "delay"),
    PromptOutcome.DECLINED_AT_GATE: OutcomeEffects("record_decline", "not_enjoying_app"),
    PromptOutcome.NATIVE_REVIEW: OutcomeEffects(),
}

_RATING_CHOICES = {
    "accept": PromptOutcome.ACCEPTED,
    "delay": PromptOutcome.DELAYED,
    "decline": PromptOutcome.DECLINED,
}


async def _invoke(callback: Callable[[], Any]) -> None:
    result = callback()
    if inspect.isawaitable(result):
        await result


class RatingRequester:
    """Decides when to ask for a rating and runs the prompt.

    Calls are expected to be serialized by the caller. Two usage events
    racing each other may both see a pre-increment ledger and both
    start a prompt cycle.
    """

    def __init__(
        self,
        ios_store_id: str,
        android_store_id: str,
        overrides: Optional[Union[Mapping[str, Any], RatingConfig]] = None,
        *,
        ledger: RatingsLedger,
        presenter: DialogPresenter,
        link_opener: LinkOpener,
        native_review: Optional[NativeReviewProbe] = None,
        platform: str = "ios",
    ):
        """Initialize the requester.

        Args:
            ios_store_id: App Store identifier (required)
            android_store_id: Google Play identifier (required)
            overrides: Partial configuration merged over the defaults,
                or a complete RatingConfig
            ledger: Persisted ledger of counters and timestamps
            presenter: Modal dialog presenter
            link_opener: Opens the store listing
            native_review: Native in-app review facility, if the platform has one
            platform: "ios" or "android", selects the store listing

        Raises:
            ConfigurationError: If a store id is missing or an override is invalid,
                or the platform is unknown
        """
        self.config: RatingConfig = build_rating_config(
            ios_store_id, android_store_id, overrides
        )
        self.ledger = ledger
        self.presenter = presenter
        self.link_opener = link_opener
        self.native_review = native_review
        if platform not in PLATFORMS:
            raise ConfigurationError(
                f"Unknown platform {platform!r}, expected one of {list(PLATFORMS)}"
            )
        self.platform = platform

    @property
    def store_url(self) -> str:
        return store_listing_url(self.platform, self.config.store_ids)

    async def handle_use(self) -> Optional[PromptOutcome]:
        """Call once per app use. May show the rating prompt."""
        return await self.record_usage_event(UsageKind.USE)

    async def handle_positive_event(self) -> Optional[PromptOutcome]:
        """Call when a positive interaction happened. May show the rating prompt."""
        return await self.record_usage_event(UsageKind.POSITIVE_INTERACTION)

    async def record_usage_event(self, kind: Union[UsageKind, str]) -> Optional[PromptOutcome]:
        """Count a usage signal, then prompt if the timing policy allows it.

        Args:
            kind: UsageKind or its string value

        Returns:
            The cycle outcome, or None if no prompt was shown
        """
        kind = UsageKind(kind)
        if kind == UsageKind.USE:
            await self.ledger.record_use()
        else:
            await self.ledger.record_positive_event()
        return await self.check_to_show_dialog()

    async def is_eligible(self) -> bool:
        """Evaluate the timing policy against the current ledger."""
        snapshot = await self.ledger.read_all()
        eligible = should_prompt(self.config, snapshot, self.ledger.clock())
        logger.debug(f"Eligibility check: {snapshot} -> {eligible}")
        return eligible

    async def check_to_show_dialog(self) -> Optional[PromptOutcome]:
        """Start a prompt cycle if the ledger is eligible."""
        if not await self.is_eligible():
            return None
        return await self.show_rating_dialog()

    async def show_rating_dialog(self) -> PromptOutcome:
        """Run a full prompt cycle regardless of eligibility.

        Use with care: asking too often annoys users. Handy when the
        user explicitly looks for a way to rate the app.

        Returns:
            How the cycle ended

        Raises:
            StorageError: If a ledger write fails; the cycle stops there
        """
        await self.ledger.record_rating_seen()

        outcome = await self._present()
        await self._apply(outcome)

        await self.ledger.reset_counters()
        logger.info(f"Rating prompt cycle finished with outcome {outcome.value}")
        return outcome

    async def _present(self) -> PromptOutcome:
        if self.config.show_is_enjoying_dialog:
            enjoying = await self.presenter.present(
                self.config.enjoying_message,
                "",
                [
                    Choice("accept", self.config.enjoying_actions.accept),
                    Choice("decline", self.config.enjoying_actions.decline, ChoiceStyle.CANCEL),
                ],
            )
            if enjoying == "decline":
                return PromptOutcome.DECLINED_AT_GATE
            if enjoying != "accept":
                raise ValueError(f"Dialog presenter returned unknown choice: {enjoying!r}")
            await _invoke(self.config.callbacks.enjoying_app)

        if self.native_review is not None and self.native_review.available:
            result = request_review(self.native_review)
            if inspect.isawaitable(result):
                await result
            return PromptOutcome.NATIVE_REVIEW

        labels = self.config.action_labels
        answer = await self.presenter.present(
            self.config.title,
            self.config.message,
            [
                Choice("accept", labels.accept),
                Choice("delay", labels.delay),
                Choice("decline", labels.decline),
            ],
        )
        try:
            return _RATING_CHOICES[answer]
        except KeyError:
            raise ValueError(f"Dialog presenter returned unknown choice: {answer!r}") from None

    async def _apply(self, outcome: PromptOutcome) -> None:
        effects = OUTCOME_EFFECTS[outcome]
        if effects.open_store:
            self.link_opener.open_url(self.store_url)
        if effects.ledger_write:
            await getattr(self.ledger, effects.ledger_write)()
        if effects.callback:
            await _invoke(getattr(self.config.callbacks, effects.callback))
