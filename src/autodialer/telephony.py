"""Translate provider call-state signals into sequencer messages.

Android's TelephonyManager reports a single device-wide state (IDLE,
RINGING, OFFHOOK); Twilio posts a CallStatus per call to a status callback
URL. Both collapse onto the three telephony messages the sequencer knows.
"""

import logging
from typing import Optional

from autodialer.events import Message, MessageKind

logger = logging.getLogger(__name__)

# android.telephony.TelephonyManager.CALL_STATE_*
CALL_STATE_IDLE = 0
CALL_STATE_RINGING = 1
CALL_STATE_OFFHOOK = 2

ANDROID_CALL_STATES = {
    CALL_STATE_IDLE: MessageKind.ENDED,
    CALL_STATE_RINGING: MessageKind.RINGING,
    CALL_STATE_OFFHOOK: MessageKind.ANSWERED,
    "idle": MessageKind.ENDED,
    "ringing": MessageKind.RINGING,
    "offhook": MessageKind.ANSWERED,
}

# Statuses that map to None mean "call accepted, nothing happened yet"
TWILIO_CALL_STATUSES = {
    "queued": None,
    "initiated": None,
    "ringing": MessageKind.RINGING,
    "in-progress": MessageKind.ANSWERED,
    "answered": MessageKind.ANSWERED,
    "completed": MessageKind.ENDED,
    "busy": MessageKind.ENDED,
    "failed": MessageKind.ENDED,
    "no-answer": MessageKind.ENDED,
    "canceled": MessageKind.ENDED,
}


def event_from_call_state(state: int | str) -> Optional[Message]:
    """Message for an Android call-state code or name, None if unknown."""
    key = state.strip().lower() if isinstance(state, str) else state
    kind = ANDROID_CALL_STATES.get(key)
    if kind is None:
        logger.warning("Unknown call state %r", state)
        return None
    return Message(kind)


def event_from_twilio_status(status: str, call_sid: str = "") -> Optional[Message]:
    """Message for a Twilio CallStatus value, None if it carries no event."""
    key = (status or "").strip().lower()
    if key not in TWILIO_CALL_STATUSES:
        logger.warning("Unknown Twilio call status %r for %s", status, call_sid or "unknown call")
        return None
    kind = TWILIO_CALL_STATUSES[key]
    if kind is None:
        return None
    return Message(kind, call_id=call_sid)
