from unittest.mock import AsyncMock

import pytest

from autodialer.call_queue import CallQueue
from autodialer.sequencer import DialerSequencer
from autodialer.session import DialerSession
from autodialer.state_machine import DialerStateMachine
from helpers import RecordingObserver


@pytest.fixture
def session():
    return DialerSession()


@pytest.fixture
def queue():
    return CallQueue()


@pytest.fixture
def machine():
    return DialerStateMachine()


@pytest.fixture
def initiator():
    mock = AsyncMock()
    mock.place.return_value = "CA_test"
    return mock


@pytest.fixture
def sequencer(initiator):
    return DialerSequencer(initiator)


@pytest.fixture
def recorder(sequencer):
    return sequencer.subscribe(RecordingObserver())
