import asyncio
import logging
from typing import Optional

from autodialer.call_queue import CallQueue
from autodialer.errors import InitiationError
from autodialer.events import Message, MessageKind
from autodialer.initiator import CallInitiator
from autodialer.observers import DialerObserver, ObserverRegistry
from autodialer.session import DialerSession, SessionSnapshot
from autodialer.state_machine import DialerStateMachine
from autodialer.states import SessionState

logger = logging.getLogger(__name__)


class DialerSequencer:
    """Dials a queue of numbers one after another.

    Commands (start, stop, queue edits) and telephony events are both
    messages into a single asyncio worker, so no two of them ever
    interleave:

      command/event -> inbox -> worker -> DialerStateMachine -> observers
                                                 |
                                                 +-> dial task -> CallInitiator

    Dials are fire-and-forget tasks. Their result comes back through the
    inbox as a PLACED or INITIATION_FAILED message; a failure counts as the
    call ending so the session keeps moving.
    """

    def __init__(
        self,
        initiator: CallInitiator,
        machine: DialerStateMachine | None = None,
        queue: CallQueue | None = None,
    ):
        self.initiator = initiator
        self.machine = machine or DialerStateMachine()
        self.queue = queue if queue is not None else CallQueue()
        self.session = DialerSession()
        self.observers = ObserverRegistry()
        self._inbox: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._dial_tasks: set[asyncio.Task] = set()

    # ── Queries ──

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def current_number(self) -> Optional[str]:
        return self.session.current_number

    @property
    def call_count(self) -> int:
        return self.session.call_count

    @property
    def queued_numbers(self) -> tuple[str, ...]:
        return self.queue.snapshot()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot.capture(self.session, self.queue)

    def subscribe(self, observer: DialerObserver) -> DialerObserver:
        return self.observers.subscribe(observer)

    def unsubscribe(self, observer: DialerObserver) -> None:
        self.observers.unsubscribe(observer)

    # ── Commands ──

    async def start(self) -> SessionSnapshot:
        return await self.submit(Message(MessageKind.START))

    async def stop(self) -> SessionSnapshot:
        return await self.submit(Message(MessageKind.STOP))

    async def add_number(self, number: str) -> SessionSnapshot:
        return await self.submit(Message(MessageKind.ADD_NUMBER, number=number))

    async def add_numbers(self, numbers) -> SessionSnapshot:
        snapshot = self.snapshot()
        for number in numbers:
            snapshot = await self.add_number(number)
        return snapshot

    async def remove_number(self, number: str) -> SessionSnapshot:
        return await self.submit(Message(MessageKind.REMOVE_NUMBER, number=number))

    async def clear_queue(self) -> SessionSnapshot:
        return await self.submit(Message(MessageKind.CLEAR_QUEUE))

    # ── Telephony events ──

    async def on_ringing(self, call_id: str = "") -> SessionSnapshot:
        return await self.submit(Message(MessageKind.RINGING, call_id=call_id))

    async def on_answered(self, call_id: str = "") -> SessionSnapshot:
        return await self.submit(Message(MessageKind.ANSWERED, call_id=call_id))

    async def on_ended(self, call_id: str = "") -> SessionSnapshot:
        return await self.submit(Message(MessageKind.ENDED, call_id=call_id))

    # ── Inbox ──

    def _ensure_worker(self) -> asyncio.Queue:
        if self._worker is None or self._worker.done():
            self._loop = asyncio.get_running_loop()
            if self._inbox is None:
                self._inbox = asyncio.Queue()
            self._worker = asyncio.create_task(self._run(), name="dialer-sequencer")
        return self._inbox

    async def submit(self, message: Message) -> SessionSnapshot:
        """Enqueue message and wait until the worker has applied it."""
        inbox = self._ensure_worker()
        future = self._loop.create_future()
        inbox.put_nowait((message, future))
        return await future

    def post(self, message: Message) -> None:
        """Enqueue message without waiting. Must be called on the event loop."""
        self._ensure_worker().put_nowait((message, None))

    def post_threadsafe(self, message: Message) -> None:
        """Enqueue message from a thread other than the event loop's."""
        if self._loop is None or self._inbox is None:
            raise RuntimeError("Sequencer worker is not running")
        self._loop.call_soon_threadsafe(self._inbox.put_nowait, (message, None))

    async def _run(self):
        while True:
            message, future = await self._inbox.get()
            try:
                snapshot = self._apply(message)
            except Exception as e:
                logger.exception("Failed to apply %s", message.kind.value)
                if future is not None and not future.done():
                    future.set_exception(e)
            else:
                if future is not None and not future.done():
                    future.set_result(snapshot)
            finally:
                self._inbox.task_done()

    def _apply(self, message: Message) -> SessionSnapshot:
        before = self.snapshot()
        action = self.machine.process(self.session, self.queue, message)
        after = self.snapshot()

        self.observers.notify_changes(before, after)
        if message.kind is MessageKind.INITIATION_FAILED:
            self.observers.notify_initiation_failed(message.number, message.error)

        if action.dial:
            self._spawn_dial(action.dial, action.attempt)
        return after

    # ── Dialing ──

    def _spawn_dial(self, number: str, attempt: int) -> None:
        task = asyncio.create_task(self._place(number, attempt), name=f"dial-{attempt}")
        self._dial_tasks.add(task)
        task.add_done_callback(self._dial_tasks.discard)

    async def _place(self, number: str, attempt: int) -> None:
        try:
            call_id = await self.initiator.place(number)
        except InitiationError as e:
            logger.warning("Call #%d to %s could not be started: %s", attempt, number, e)
            self.post(Message(MessageKind.INITIATION_FAILED, number=number, attempt=attempt, error=e))
        except Exception as e:
            logger.exception("Call initiator crashed on call #%d to %s", attempt, number)
            error = InitiationError(str(e) or type(e).__name__, number=number)
            self.post(Message(MessageKind.INITIATION_FAILED, number=number, attempt=attempt, error=error))
        else:
            self.post(Message(MessageKind.PLACED, number=number, attempt=attempt, call_id=call_id or ""))

    # ── Lifecycle ──

    async def drain(self) -> None:
        """Wait until every queued message and in-flight dial has settled."""
        if self._inbox is None:
            return
        while True:
            await self._inbox.join()
            if not self._dial_tasks:
                return
            await asyncio.gather(*list(self._dial_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop the worker and cancel dials still waiting on the provider.

        Callers still awaiting submit() get a RuntimeError.
        """
        tasks = list(self._dial_tasks)
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._worker = None
        self._dial_tasks.clear()

        if self._inbox is not None:
            while not self._inbox.empty():
                message, future = self._inbox.get_nowait()
                self._inbox.task_done()
                if future is not None and not future.done():
                    future.set_exception(RuntimeError(f"Sequencer closed before {message.kind.value} was applied"))
            self._inbox = None

    async def __aenter__(self) -> "DialerSequencer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
