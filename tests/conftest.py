"""
Shared fixtures and test doubles for the platform collaborators.
"""
import os
import tempfile
from datetime import datetime

import pytest

from rating_requester.storage.ledger import RatingsLedger, SQLiteKeyValueStore


class ScriptedPresenter:
    """Dialog presenter answering from a fixed script."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.dialogs = []

    async def present(self, title, message, choices):
        self.dialogs.append((title, message, list(choices)))
        return self.answers.pop(0)


class RecordingLinkOpener:
    def __init__(self):
        self.urls = []

    def open_url(self, url):
        self.urls.append(url)


class FakeNativeReview:
    def __init__(self, available=True):
        self.available = available
        self.requests = 0

    def request_review(self):
        self.requests += 1


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 15, 12, 0, 0))


@pytest.fixture
def ledger(clock):
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = os.path.join(temp_dir, "test.db")
        yield RatingsLedger(SQLiteKeyValueStore(db_path), clock=clock)


class AsyncNativeReview:
    """Native review facility whose request returns an awaitable."""

    def __init__(self):
        self.available = True
        self.requested = False

    async def request_review(self):
        self.requested = True
