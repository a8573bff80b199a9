"""Resumption detector: decide the single next action after a disruption.

Call ``evaluate`` on every change to a thread's snapshot. Each call returns
at most one action: resubmit a lost message whose search survived, trigger
the next participant of an incomplete round, or ``None``.
"""

import logging

from roundkeeper.guard import TriggerGuard
from roundkeeper.ledger import build_ledger, current_round_number, enabled_participants
from roundkeeper.models import (
    Action,
    Message,
    RecordStatus,
    ResponsePolicy,
    ResubmitMessage,
    ResumptionPhase,
    Role,
    SearchRecord,
    SessionFlags,
    Snapshot,
    TriggerParticipant,
)
from roundkeeper.scheduler import is_submission_in_progress, schedule
from roundkeeper.search_gate import search_for_round, should_wait

logger = logging.getLogger(__name__)

_RECOVERABLE_SEARCH = {RecordStatus.COMPLETE, RecordStatus.STREAMING}
_FINISHED_SEARCH = {RecordStatus.COMPLETE, RecordStatus.FAILED}


def has_stale_waiting_flag(flags: SessionFlags) -> bool:
    """A waiting flag with nothing behind it, left over from a crashed session."""
    return (
        flags.waiting_to_start_streaming
        and flags.pending_outgoing_message is None
        and not flags.is_streaming
        and not flags.stream_resumption_prefilled
    )


def _confirmed_user_turn(messages: list[Message], round_number: int) -> Message | None:
    return next(
        (m for m in messages
         if m.role == Role.USER and m.round_number == round_number and not m.is_optimistic),
        None,
    )


def find_orphaned_search(snapshot: Snapshot) -> SearchRecord | None:
    """A live or finished search whose round has no confirmed user turn."""
    for record in sorted(snapshot.search_records, key=lambda r: r.round_number):
        if record.status not in _RECOVERABLE_SEARCH or not record.query:
            continue
        if _confirmed_user_turn(snapshot.messages, record.round_number) is None:
            return record
    return None


def strip_optimistic_user_turn(messages: list[Message], round_number: int) -> list[Message]:
    return [
        m for m in messages
        if not (m.role == Role.USER and m.is_optimistic and m.round_number == round_number)
    ]


class ResumptionDetector:
    """Reactive controller over ledger, gate, scheduler and guard.

    Owns the guard and the per-thread orphaned-search latches. Switching to
    a different thread id clears the previous thread's state first.
    """

    def __init__(self, guard: TriggerGuard | None = None, policy: ResponsePolicy | None = None) -> None:
        self._guard = guard if guard is not None else TriggerGuard()
        self._policy = policy if policy is not None else ResponsePolicy()
        self._recovered_rounds: dict[str, set[int]] = {}
        self._pre_search_rounds: dict[str, set[int]] = {}
        self._thread_id: str | None = None

    @property
    def guard(self) -> TriggerGuard:
        return self._guard

    @property
    def policy(self) -> ResponsePolicy:
        return self._policy

    def observe(self, snapshot: Snapshot) -> None:
        """Feed flag changes to the guard without deciding anything."""
        flags = snapshot.flags
        self._guard.observe(snapshot.thread_id, flags.waiting_to_start_streaming, flags.is_streaming)

    def evaluate(self, snapshot: Snapshot, enabled: bool = True) -> Action | None:
        """Run one recomputation tick for ``snapshot.thread_id``."""
        thread_id = snapshot.thread_id
        if self._thread_id is not None and self._thread_id != thread_id:
            logger.debug("Thread changed %s -> %s, clearing resumption state", self._thread_id, thread_id)
            self.teardown(self._thread_id)
        self._thread_id = thread_id

        self.observe(snapshot)
        flags = snapshot.flags

        if not enabled:
            return None

        phase = snapshot.current_resumption_phase
        if flags.stream_resumption_prefilled and phase is not None:
            if phase == ResumptionPhase.PRE_SEARCH:
                return self._finish_pre_search_phase(snapshot)
            if phase != ResumptionPhase.PARTICIPANTS:
                # Summarizer resumes on its own; idle and complete need nothing.
                return None

        if flags.is_streaming or flags.waiting_to_start_streaming or is_submission_in_progress(flags):
            return None

        action = self._recover_orphaned_search(snapshot)
        if action is not None:
            return action
        return self._resume_participants(snapshot, enabled)

    def _recover_orphaned_search(self, snapshot: Snapshot) -> ResubmitMessage | None:
        record = find_orphaned_search(snapshot)
        if record is None:
            return None

        recovered = self._recovered_rounds.setdefault(snapshot.thread_id, set())
        if record.round_number in recovered:
            return None

        expected_ids = tuple(p.model_id for p in enabled_participants(snapshot.roster))
        if not expected_ids:
            logger.debug("Orphaned search for round %d but roster is empty", record.round_number)
            return None

        recovered.add(record.round_number)
        logger.info(
            "Recovering lost submission for thread %s round %d from %s search",
            snapshot.thread_id, record.round_number, record.status.value,
        )
        return ResubmitMessage(
            round_number=record.round_number,
            text=record.query,
            expected_participant_ids=expected_ids,
            messages=tuple(strip_optimistic_user_turn(snapshot.messages, record.round_number)),
        )

    def _finish_pre_search_phase(self, snapshot: Snapshot) -> TriggerParticipant | None:
        """Hand a prefilled round over to participant 0 once its search ends.

        The prefill raises the waiting flag itself, so only live streaming or
        an in-flight submission hold this back.
        """
        flags = snapshot.flags
        if flags.is_streaming or is_submission_in_progress(flags):
            return None

        round_number = snapshot.resumption_round_number
        if round_number is None:
            round_number = current_round_number(snapshot.messages)
        if round_number is None:
            return None

        record = search_for_round(snapshot.search_records, round_number)
        if record is None or record.status not in _FINISHED_SEARCH:
            return None

        handed_over = self._pre_search_rounds.setdefault(snapshot.thread_id, set())
        if round_number in handed_over:
            return None
        handed_over.add(round_number)
        self._guard.mark_fired(snapshot.thread_id, round_number)
        logger.info(
            "Pre-search for thread %s round %d %s, starting participants",
            snapshot.thread_id, round_number, record.status.value,
        )
        return TriggerParticipant(round_number=round_number, participant_index=0)

    def _resume_participants(self, snapshot: Snapshot, enabled: bool) -> TriggerParticipant | None:
        ledger = build_ledger(snapshot.messages, snapshot.roster, self._policy)
        result = schedule(ledger, snapshot.flags, enabled)
        if not result.is_incomplete or result.next_participant_index is None:
            return None

        round_number = ledger.current_round
        if _confirmed_user_turn(snapshot.messages, round_number) is None:
            logger.debug("Round %d has no confirmed user turn yet", round_number)
            return None

        if should_wait(snapshot.flags.web_search_enabled, snapshot.search_records, round_number):
            logger.debug("Round %d waiting on pre-search", round_number)
            return None

        if self._guard.has_fired(snapshot.thread_id, round_number):
            return None

        self._guard.mark_fired(snapshot.thread_id, round_number)
        logger.info(
            "Resuming thread %s round %d at participant %d (%d/%d responded)",
            snapshot.thread_id, round_number, result.next_participant_index,
            len(ledger.responded_indices), ledger.enabled_count,
        )
        return TriggerParticipant(
            round_number=round_number,
            participant_index=result.next_participant_index,
        )

    def teardown(self, thread_id: str) -> None:
        self._guard.clear_thread(thread_id)
        self._recovered_rounds.pop(thread_id, None)
        self._pre_search_rounds.pop(thread_id, None)
        if self._thread_id == thread_id:
            self._thread_id = None

    def close(self) -> None:
        self._guard.close()
        self._recovered_rounds.clear()
        self._pre_search_rounds.clear()
        self._thread_id = None
