"""Trigger guard: at most one resumption trigger per round, per thread.

After a trigger fires, the host sets ``waiting_to_start_streaming``. If that
flag drops back to false, the guard does not release the latch right away,
because the drop may be part of a retry handshake that raises it again. It
arms a short deferred clear instead. If the flag stays down for the whole
delay, the trigger is treated as failed and that round may fire once more.

The deferred clear is a monotonic deadline checked on every call, so a host
polling synchronously gets the same behaviour. When an asyncio loop is
running, a ``call_later`` timer also releases the latch without waiting for
the next call.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_CLEAR_DELAY_SEC = 0.1


@dataclass
class ThreadGuardState:
    fired_rounds: set[int] = field(default_factory=set)
    last_fired_round: int | None = None
    pending_round: int | None = None     # round the armed clear will release
    clear_deadline: float | None = None
    pending_timer: asyncio.TimerHandle | None = None
    was_waiting: bool = False


class TriggerGuard:
    """Per-thread latch plus deferred clear.

    Only one writer may drive a guard; in practice that is the detector on
    the host's event loop or polling thread.
    """

    def __init__(
        self,
        clear_delay_sec: float = DEFAULT_CLEAR_DELAY_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clear_delay_sec = clear_delay_sec
        self._clock = clock
        self._threads: dict[str, ThreadGuardState] = {}

    @property
    def clear_delay_sec(self) -> float:
        return self._clear_delay_sec

    def _state(self, thread_id: str) -> ThreadGuardState:
        return self._threads.setdefault(thread_id, ThreadGuardState())

    def _current(self, thread_id: str) -> ThreadGuardState | None:
        state = self._threads.get(thread_id)
        if state is not None:
            self._expire(thread_id, state)
        return state

    def has_fired(self, thread_id: str, round_number: int) -> bool:
        state = self._current(thread_id)
        return state is not None and round_number in state.fired_rounds

    def fired_rounds(self, thread_id: str) -> frozenset[int]:
        state = self._current(thread_id)
        return frozenset(state.fired_rounds) if state else frozenset()

    def has_pending_timer(self, thread_id: str) -> bool:
        state = self._current(thread_id)
        return state is not None and state.clear_deadline is not None

    def mark_fired(self, thread_id: str, round_number: int) -> None:
        state = self._state(thread_id)
        state.fired_rounds.add(round_number)
        state.last_fired_round = round_number
        self._disarm(state)
        logger.debug("Guard latched thread %s round %d", thread_id, round_number)

    def observe(self, thread_id: str, waiting: bool, streaming: bool) -> None:
        """Feed the current flag values; acts on transitions only."""
        state = self._state(thread_id)
        self._expire(thread_id, state)

        if streaming:
            # Success path: the latch stays, nothing left to time out.
            self._disarm(state)
        elif waiting and not state.was_waiting:
            if state.clear_deadline is not None:
                logger.debug("Waiting flag re-raised on thread %s, keeping latch", thread_id)
            self._disarm(state)
        elif (
            not waiting
            and state.was_waiting
            and state.last_fired_round is not None
            and state.last_fired_round in state.fired_rounds
        ):
            self._arm(thread_id, state)

        state.was_waiting = waiting

    def _arm(self, thread_id: str, state: ThreadGuardState) -> None:
        self._disarm(state)
        state.pending_round = state.last_fired_round
        state.clear_deadline = self._clock() + self._clear_delay_sec
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous host: the deadline is checked on the next call.
            return
        state.pending_timer = loop.call_later(
            self._clear_delay_sec, self._on_timer, thread_id, state,
        )

    def _on_timer(self, thread_id: str, state: ThreadGuardState) -> None:
        # A torn-down thread's state is detached from the map; ignore it.
        if self._threads.get(thread_id) is not state:
            return
        state.pending_timer = None
        self._release(thread_id, state)

    def _expire(self, thread_id: str, state: ThreadGuardState) -> None:
        if state.clear_deadline is not None and self._clock() >= state.clear_deadline:
            self._release(thread_id, state)

    def _release(self, thread_id: str, state: ThreadGuardState) -> None:
        round_number = state.pending_round
        self._disarm(state)
        if round_number is None or round_number not in state.fired_rounds:
            return
        state.fired_rounds.discard(round_number)
        logger.warning(
            "Trigger for thread %s round %d never started streaming; allowing retry",
            thread_id, round_number,
        )

    @staticmethod
    def _disarm(state: ThreadGuardState) -> None:
        if state.pending_timer is not None:
            state.pending_timer.cancel()
            state.pending_timer = None
        state.clear_deadline = None
        state.pending_round = None

    def clear_thread(self, thread_id: str) -> None:
        state = self._threads.pop(thread_id, None)
        if state is not None:
            self._disarm(state)

    def close(self) -> None:
        for thread_id in list(self._threads):
            self.clear_thread(thread_id)
