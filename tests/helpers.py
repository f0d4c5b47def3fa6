from autodialer.observers import DialerObserver


class RecordingObserver(DialerObserver):
    """Collects every notification as (hook, value) pairs."""

    def __init__(self):
        self.events = []

    def on_state_changed(self, state):
        self.events.append(("state", state))

    def on_current_number_changed(self, number):
        self.events.append(("current_number", number))

    def on_call_count_changed(self, count):
        self.events.append(("call_count", count))

    def on_queue_changed(self, numbers):
        self.events.append(("queue", numbers))

    def on_initiation_failed(self, number, error):
        self.events.append(("initiation_failed", number))

    def values(self, hook):
        return [value for name, value in self.events if name == hook]
