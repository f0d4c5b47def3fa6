from enum import Enum

ACTIVE_STATES = {"calling", "ringing", "answered"}


class SessionState(Enum):
    IDLE = "idle"
    CALLING = "calling"
    RINGING = "ringing"
    ANSWERED = "answered"

    @property
    def is_active(self) -> bool:
        return self.value in ACTIVE_STATES
