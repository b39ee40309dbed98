import pytest

from signrelay.config import Settings
from signrelay.db import make_session_factory
from signrelay.db.requests import SessionJournal
from tests.helpers import FakeChannel


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", classifier_url="ws://classifier.test/ws")


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def journal():
    return SessionJournal(make_session_factory("sqlite://"))
