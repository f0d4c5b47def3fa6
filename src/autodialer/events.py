"""Messages accepted by the sequencer.

User commands and telephony events share one message type so a single
worker can apply them in arrival order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

COMMAND_KINDS = {"start", "stop", "add_number", "remove_number", "clear_queue"}
TELEPHONY_KINDS = {"ringing", "answered", "ended"}


class MessageKind(Enum):
    START = "start"
    STOP = "stop"
    ADD_NUMBER = "add_number"
    REMOVE_NUMBER = "remove_number"
    CLEAR_QUEUE = "clear_queue"

    RINGING = "ringing"
    ANSWERED = "answered"
    ENDED = "ended"

    # Results of a fire-and-forget dial, posted back by the sequencer itself
    PLACED = "placed"
    INITIATION_FAILED = "initiation_failed"

    @property
    def is_command(self) -> bool:
        return self.value in COMMAND_KINDS

    @property
    def is_telephony(self) -> bool:
        return self.value in TELEPHONY_KINDS


@dataclass(frozen=True)
class Message:
    kind: MessageKind
    number: str = ""
    call_id: str = ""
    attempt: int = 0
    error: Optional[Exception] = None
