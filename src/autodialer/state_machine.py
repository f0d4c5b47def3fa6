import logging
from dataclasses import dataclass

from autodialer.call_queue import CallQueue
from autodialer.events import Message
from autodialer.session import DialerSession
from autodialer.states import SessionState

logger = logging.getLogger(__name__)


@dataclass
class Action:
    dial: str = ""
    attempt: int = 0


TRANSITIONS = {
    SessionState.IDLE: {SessionState.CALLING},
    SessionState.CALLING: {SessionState.RINGING, SessionState.ANSWERED, SessionState.CALLING, SessionState.IDLE},
    SessionState.RINGING: {SessionState.RINGING, SessionState.ANSWERED, SessionState.CALLING, SessionState.IDLE},
    SessionState.ANSWERED: {SessionState.ANSWERED, SessionState.CALLING, SessionState.IDLE},
}

# States in which a ringing signal is still news
RINGING_FROM = {SessionState.CALLING, SessionState.RINGING}


def _transition(session: DialerSession, new_state: SessionState):
    """Helper to transition state; leaving an active call drops its number and id."""
    if new_state not in TRANSITIONS[session.state] and new_state is not session.state:
        logger.warning("Unexpected transition %s -> %s", session.state.value, new_state.value)
    session.state = new_state
    if new_state is SessionState.IDLE:
        session.current_number = None
        session.retire_call()


class DialerStateMachine:
    """Synchronous transition logic for the dialer.

    Mutates the session and queue for one message and returns an Action
    telling the caller which number (if any) to hand to the call initiator.
    Never raises for a message that does not apply in the current state.
    """

    def valid_transitions(self, state: SessionState) -> set[SessionState]:
        return TRANSITIONS.get(state, set())

    def process(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if message.kind.is_telephony and self._is_foreign_call(session, message):
            logger.debug(
                "Ignoring %s for call %s (current call %s)",
                message.kind.value, message.call_id, session.call_id,
            )
            return Action()

        handler = getattr(self, f"_handle_{message.kind.value}", None)
        if handler:
            return handler(session, queue, message)
        return Action()

    @staticmethod
    def _is_foreign_call(session: DialerSession, message: Message) -> bool:
        if not message.call_id:
            return False
        # A stopped or finished call stays foreign even before the next call id is known
        if message.call_id in session.ended_call_ids:
            return True
        return bool(session.call_id and message.call_id != session.call_id)

    def _dial_next(self, session: DialerSession, queue: CallQueue) -> Action:
        number = queue.pop_front()
        session.current_number = number
        session.retire_call()
        session.call_count += 1
        _transition(session, SessionState.CALLING)
        logger.info("Dialing %s (call #%d, %d left)", number, session.call_count, len(queue))
        return Action(dial=number, attempt=session.call_count)

    # ── Commands ──

    def _handle_start(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if session.state.is_active:
            logger.debug("start ignored: session already %s", session.state.value)
            return Action()
        if queue.is_empty():
            logger.info("start ignored: no numbers queued")
            return Action()
        return self._dial_next(session, queue)

    def _handle_stop(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if session.state.is_active:
            logger.info("Stopping session at call #%d, %d numbers left", session.call_count, len(queue))
        _transition(session, SessionState.IDLE)
        return Action()

    def _handle_add_number(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        queue.append(message.number)
        return Action()

    def _handle_remove_number(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        queue.remove(message.number)
        return Action()

    def _handle_clear_queue(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        queue.clear()
        return Action()

    # ── Telephony events ──

    def _handle_ringing(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if session.state in RINGING_FROM:
            _transition(session, SessionState.RINGING)
        else:
            logger.debug("ringing ignored in %s", session.state.value)
        return Action()

    def _handle_answered(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if session.state.is_active:
            _transition(session, SessionState.ANSWERED)
        else:
            logger.debug("answered ignored in %s", session.state.value)
        return Action()

    def _handle_ended(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if not session.state.is_active:
            logger.debug("ended ignored in %s", session.state.value)
            return Action()
        logger.info("Call to %s ended", session.current_number)
        session.current_number = None
        session.retire_call()
        if queue.is_empty():
            logger.info("Queue exhausted after %d calls", session.call_count)
            _transition(session, SessionState.IDLE)
            return Action()
        return self._dial_next(session, queue)

    # ── Dial results ──

    def _is_current_attempt(self, session: DialerSession, message: Message) -> bool:
        return session.state.is_active and message.attempt == session.call_count

    def _handle_placed(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if self._is_current_attempt(session, message):
            session.call_id = message.call_id
        elif message.call_id:
            # Placed after stop or a newer dial; its events must not touch the session
            session.retire_call(message.call_id)
        return Action()

    def _handle_initiation_failed(self, session: DialerSession, queue: CallQueue, message: Message) -> Action:
        if not self._is_current_attempt(session, message):
            logger.debug("Stale initiation failure for attempt %d ignored", message.attempt)
            return Action()
        return self._handle_ended(session, queue, message)
