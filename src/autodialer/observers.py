import logging
from typing import Optional

from autodialer.errors import InitiationError
from autodialer.session import SessionSnapshot
from autodialer.states import SessionState

logger = logging.getLogger(__name__)


class DialerObserver:
    """Receives sequencer changes. Override only the hooks you need.

    Hooks run on the sequencer's worker after a message has been fully
    applied, so every value passed in is already consistent with the rest.
    """

    def on_state_changed(self, state: SessionState) -> None:
        pass

    def on_current_number_changed(self, number: Optional[str]) -> None:
        pass

    def on_call_count_changed(self, count: int) -> None:
        pass

    def on_queue_changed(self, numbers: tuple[str, ...]) -> None:
        pass

    def on_initiation_failed(self, number: str, error: InitiationError) -> None:
        pass


class LoggingObserver(DialerObserver):
    """Writes every transition to the log."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def on_state_changed(self, state):
        self.log.info("Dialer state -> %s", state.value)

    def on_current_number_changed(self, number):
        if number:
            self.log.info("Current number -> %s", number)

    def on_call_count_changed(self, count):
        self.log.debug("Calls made: %d", count)

    def on_queue_changed(self, numbers):
        self.log.debug("Queue now holds %d numbers", len(numbers))

    def on_initiation_failed(self, number, error):
        self.log.warning("Could not start call to %s: %s", number, error)


# Snapshot fields in delivery order, with the hook each one feeds
FIELD_HOOKS = (
    ("state", "on_state_changed"),
    ("current_number", "on_current_number_changed"),
    ("call_count", "on_call_count_changed"),
    ("queue", "on_queue_changed"),
)


class ObserverRegistry:
    def __init__(self):
        self._observers: list[DialerObserver] = []

    def __len__(self) -> int:
        return len(self._observers)

    def subscribe(self, observer: DialerObserver) -> DialerObserver:
        self._observers.append(observer)
        return observer

    def unsubscribe(self, observer: DialerObserver) -> None:
        try:
            self._observers.remove(observer)
        except ValueError:
            pass

    def notify_changes(self, before: SessionSnapshot, after: SessionSnapshot) -> None:
        """Deliver every field that differs between the two snapshots."""
        for field_name, hook in FIELD_HOOKS:
            value = getattr(after, field_name)
            if getattr(before, field_name) != value:
                self._deliver(hook, value)

    def notify_initiation_failed(self, number: str, error: InitiationError) -> None:
        self._deliver("on_initiation_failed", number, error)

    def _deliver(self, hook: str, *args) -> None:
        # Copy so an observer may unsubscribe itself mid-delivery
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(*args)
            except Exception:
                logger.exception("Observer %r failed in %s", observer, hook)
