from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from autodialer.states import SessionState

# How many finished call ids to remember for filtering late provider events
ENDED_CALL_IDS_KEPT = 32


@dataclass
class DialerSession:
    state: SessionState = SessionState.IDLE
    current_number: Optional[str] = None
    call_count: int = 0

    # Provider call id of the current call, known once the initiator returns
    call_id: str = ""
    ended_call_ids: deque = field(default_factory=lambda: deque(maxlen=ENDED_CALL_IDS_KEPT))

    def retire_call(self, call_id: str = "") -> None:
        """Forget the current call id (or the given one) and remember it as over."""
        call_id = call_id or self.call_id
        if call_id and call_id not in self.ended_call_ids:
            self.ended_call_ids.append(call_id)
        if call_id == self.call_id:
            self.call_id = ""


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the sequencer after one applied message."""

    state: SessionState
    current_number: Optional[str]
    call_count: int
    queue: tuple[str, ...]

    @classmethod
    def capture(cls, session: DialerSession, queue) -> "SessionSnapshot":
        return cls(
            state=session.state,
            current_number=session.current_number,
            call_count=session.call_count,
            queue=queue.snapshot(),
        )

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "current_number": self.current_number,
            "call_count": self.call_count,
            "queue": list(self.queue),
        }
