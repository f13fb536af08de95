"""
Tests for the rating prompt controller.
"""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from rating_requester.config.loader import ConfigurationError
from rating_requester.core.prompt import (
    OUTCOME_EFFECTS,
    PromptOutcome,
    RatingRequester,
    UsageKind,
)
from rating_requester.platform.collaborators import ChoiceStyle
from rating_requester.storage.ledger import StorageError

from .conftest import (
    AsyncNativeReview,
    FakeNativeReview,
    RecordingLinkOpener,
    ScriptedPresenter,
)


IOS_URL = "https://itunes.apple.com/app/id123456789?action=write-review"


def make_requester(ledger, presenter, overrides=None, **kwargs):
    kwargs.setdefault("link_opener", RecordingLinkOpener())
    return RatingRequester(
        "123456789",
        "com.example.app",
        overrides,
        ledger=ledger,
        presenter=presenter,
        **kwargs,
    )


class CallbackLog:
    """Collects callback invocations by name."""

    def __init__(self):
        self.calls = []

    def overrides(self):
        names = ["enjoying_app", "not_enjoying_app", "accept", "delay", "decline"]
        return {name: (lambda name=name: self.calls.append(name)) for name in names}


class TestConstruction:

    def test_requires_store_ids(self, ledger):
        with pytest.raises(ConfigurationError):
            RatingRequester(
                "", "com.example.app",
                ledger=ledger, presenter=ScriptedPresenter(), link_opener=RecordingLinkOpener(),
            )

    def test_store_url_per_platform(self, ledger):
        ios = make_requester(ledger, ScriptedPresenter())
        android = make_requester(ledger, ScriptedPresenter(), platform="android")
        assert ios.store_url == IOS_URL
        assert android.store_url == "market://details?id=com.example.app"

    def test_unknown_platform_rejected(self, ledger):
        with pytest.raises(ConfigurationError, match="Unknown platform"):
            make_requester(ledger, ScriptedPresenter(), platform="windows")

    def test_every_outcome_has_effects(self):
        assert set(OUTCOME_EFFECTS) == set(PromptOutcome)


class TestUsageRecording:
    """Test usage events and eligibility checks."""

    @pytest.mark.asyncio
    async def test_usage_below_threshold_only_counts(self, ledger):
        presenter = ScriptedPresenter()
        await ledger.record_rating_seen()
        requester = make_requester(
            ledger, presenter,
            {"uses_until_prompt": 100, "events_until_prompt": 100, "days_before_reminding": 30},
        )

        for _ in range(7):
            assert await requester.record_usage_event(UsageKind.USE) is None

        snapshot = await ledger.read_all()
        assert snapshot.uses_count == 7
        assert presenter.dialogs == []

    @pytest.mark.asyncio
    async def test_usage_kind_accepts_string(self, ledger):
        await ledger.record_rating_seen()
        requester = make_requester(
            ledger, ScriptedPresenter(),
            {"uses_until_prompt": 5, "events_until_prompt": 5, "days_before_reminding": 30},
        )
        await requester.record_usage_event("positive_interaction")
        assert (await ledger.read_all()).event_count == 1

        with pytest.raises(ValueError):
            await requester.record_usage_event("crash")

    @pytest.mark.asyncio
    async def test_fresh_ledger_first_use_starts_cycle(self, ledger, clock):
        presenter = ScriptedPresenter("accept", "delay")
        requester = make_requester(ledger, presenter)

        outcome = await requester.handle_use()

        assert outcome == PromptOutcome.DELAYED
        assert len(presenter.dialogs) == 2
        snapshot = await ledger.read_all()
        assert snapshot.last_seen_at == clock.now
        assert snapshot.uses_count == 0

    @pytest.mark.asyncio
    async def test_declined_ledger_never_prompts(self, ledger):
        await ledger.record_decline()
        presenter = ScriptedPresenter()
        requester = make_requester(ledger, presenter, {"events_until_prompt": 1})

        for _ in range(3):
            assert await requester.handle_positive_event() is None

        snapshot = await ledger.read_all()
        assert snapshot.event_count == 3
        assert presenter.dialogs == []

    @pytest.mark.asyncio
    async def test_debug_prompts_despite_decline(self, ledger):
        await ledger.record_decline()
        presenter = ScriptedPresenter("decline")
        requester = make_requester(ledger, presenter, {"debug": True})

        assert await requester.handle_positive_event() == PromptOutcome.DECLINED_AT_GATE

    @pytest.mark.asyncio
    async def test_delay_allows_next_event_to_prompt_again(self, ledger, clock):
        presenter = ScriptedPresenter("delay", "delay")
        requester = make_requester(
            ledger, presenter,
            {"show_is_enjoying_dialog": False, "uses_until_prompt": 1, "days_before_reminding": 30},
        )

        assert await requester.handle_use() == PromptOutcome.DELAYED
        clock.now += timedelta(hours=1)
        assert await requester.handle_use() == PromptOutcome.DELAYED
        assert len(presenter.dialogs) == 2


class TestPromptCycle:
    """Test the outcomes of a full prompt cycle."""

    @pytest.mark.asyncio
    async def test_accept_opens_store_and_records_rating(self, ledger, clock):
        log = CallbackLog()
        opener = RecordingLinkOpener()
        presenter = ScriptedPresenter("accept", "accept")
        requester = make_requester(
            ledger, presenter, {"callbacks": log.overrides()}, link_opener=opener
        )
        await ledger.record_use()

        outcome = await requester.show_rating_dialog()

        assert outcome == PromptOutcome.ACCEPTED
        assert opener.urls == [IOS_URL]
        assert log.calls == ["enjoying_app", "accept"]
        snapshot = await ledger.read_all()
        assert snapshot.rated_at == clock.now
        assert snapshot.declined_at is None
        assert snapshot.uses_count == 0

    @pytest.mark.asyncio
    async def test_decline_at_gate(self, ledger, clock):
        log = CallbackLog()
        opener = RecordingLinkOpener()
        presenter = ScriptedPresenter("decline")
        requester = make_requester(
            ledger, presenter, {"callbacks": log.overrides()}, link_opener=opener
        )
        await ledger.record_use()
        await ledger.record_positive_event()

        outcome = await requester.show_rating_dialog()

        assert outcome == PromptOutcome.DECLINED_AT_GATE
        assert log.calls == ["not_enjoying_app"]
        assert opener.urls == []
        assert len(presenter.dialogs) == 1
        snapshot = await ledger.read_all()
        assert snapshot.declined_at == clock.now
        assert snapshot.rated_at is None
        assert snapshot.uses_count == 0
        assert snapshot.event_count == 0

    @pytest.mark.asyncio
    async def test_gate_dialog_shape(self, ledger):
        presenter = ScriptedPresenter("decline")
        requester = make_requester(
            ledger, presenter,
            {"enjoying_message": "Like it?", "enjoying_actions": {"accept": "Sure"}},
        )
        await requester.show_rating_dialog()

        title, message, choices = presenter.dialogs[0]
        assert title == "Like it?"
        assert message == ""
        assert [c.label for c in choices] == ["Sure", "Not really"]
        assert choices[1].style == ChoiceStyle.CANCEL

    @pytest.mark.asyncio
    async def test_manual_dialog_delay(self, ledger, clock):
        log = CallbackLog()
        presenter = ScriptedPresenter("delay")
        requester = make_requester(
            ledger, presenter,
            {"show_is_enjoying_dialog": False, "callbacks": log.overrides()},
        )
        await ledger.record_use()

        outcome = await requester.show_rating_dialog()

        assert outcome == PromptOutcome.DELAYED
        assert log.calls == ["delay"]
        title, message, choices = presenter.dialogs[0]
        assert title == "Rate Us!"
        assert message == "How about a rating on the app store?"
        assert [c.key for c in choices] == ["accept", "delay", "decline"]
        snapshot = await ledger.read_all()
        assert snapshot.rated_at is None
        assert snapshot.declined_at is None
        assert snapshot.last_seen_at == clock.now
        assert snapshot.uses_count == 0

    @pytest.mark.asyncio
    async def test_manual_dialog_decline(self, ledger, clock):
        log = CallbackLog()
        requester = make_requester(
            ledger, ScriptedPresenter("decline"),
            {"show_is_enjoying_dialog": False, "callbacks": log.overrides()},
        )

        assert await requester.show_rating_dialog() == PromptOutcome.DECLINED
        assert log.calls == ["decline"]
        assert (await ledger.read_all()).declined_at == clock.now

    @pytest.mark.asyncio
    async def test_native_review_skips_manual_dialog(self, ledger, clock):
        log = CallbackLog()
        native = FakeNativeReview(available=True)
        opener = RecordingLinkOpener()
        presenter = ScriptedPresenter("accept")
        requester = make_requester(
            ledger, presenter, {"callbacks": log.overrides()},
            native_review=native, link_opener=opener,
        )
        await ledger.record_positive_event()

        outcome = await requester.show_rating_dialog()

        assert outcome == PromptOutcome.NATIVE_REVIEW
        assert native.requests == 1
        assert len(presenter.dialogs) == 1  # only the enjoying gate
        assert log.calls == ["enjoying_app"]
        assert opener.urls == []
        snapshot = await ledger.read_all()
        assert snapshot.rated_at is None
        assert snapshot.declined_at is None
        assert snapshot.last_seen_at == clock.now
        assert snapshot.event_count == 0

    @pytest.mark.asyncio
    async def test_unavailable_native_review_falls_back(self, ledger):
        native = FakeNativeReview(available=False)
        presenter = ScriptedPresenter("decline")
        requester = make_requester(
            ledger, presenter, {"show_is_enjoying_dialog": False}, native_review=native,
        )

        assert await requester.show_rating_dialog() == PromptOutcome.DECLINED
        assert native.requests == 0

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self, ledger):
        accept = AsyncMock()
        requester = make_requester(
            ledger, ScriptedPresenter("accept"),
            {"show_is_enjoying_dialog": False, "callbacks": {"accept": accept}},
        )

        await requester.show_rating_dialog()
        accept.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_presenter_answer(self, ledger):
        requester = make_requester(
            ledger, ScriptedPresenter("maybe"), {"show_is_enjoying_dialog": False}
        )
        with pytest.raises(ValueError, match="unknown choice"):
            await requester.show_rating_dialog()

    @pytest.mark.asyncio
    async def test_storage_failure_aborts_cycle(self, ledger):
        presenter = ScriptedPresenter("accept", "accept")
        requester = make_requester(ledger, presenter)
        await ledger.record_use()
        ledger.record_rated = AsyncMock(side_effect=StorageError("disk full"))

        with pytest.raises(StorageError, match="disk full"):
            await requester.show_rating_dialog()

        assert (await ledger.read_all()).uses_count == 1

    @pytest.mark.asyncio
    async def test_async_native_review_is_awaited(self, ledger):
        native = AsyncNativeReview()
        requester = make_requester(
            ledger, ScriptedPresenter(), {"show_is_enjoying_dialog": False},
            native_review=native,
        )

        assert await requester.show_rating_dialog() == PromptOutcome.NATIVE_REVIEW
        assert native.requested is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", [None, "dismissed", "delay"])
    async def test_unknown_gate_answer_does_not_decline(self, ledger, answer):
        log = CallbackLog()
        requester = make_requester(
            ledger, ScriptedPresenter(answer), {"callbacks": log.overrides()}
        )

        with pytest.raises(ValueError, match="unknown choice"):
            await requester.show_rating_dialog()

        snapshot = await ledger.read_all()
        assert snapshot.declined_at is None
        assert log.calls == []
