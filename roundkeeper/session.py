"""Reference hosting session: owns a thread snapshot and dispatches detector actions."""

import logging
from dataclasses import replace
from datetime import datetime, timezone

from config.config_loader import ResumptionConfig
from roundkeeper.detector import ResumptionDetector, has_stale_waiting_flag
from roundkeeper.flow import FlowPhase, flow_context_from_snapshot, resolve_phase
from roundkeeper.guard import TriggerGuard
from roundkeeper.models import Action, RecordStatus, ResubmitMessage, Snapshot, TriggerParticipant
from roundkeeper.search_gate import find_timed_out_searches
from roundkeeper.transport import SubmissionTransport, TransportError

logger = logging.getLogger(__name__)


class ChatSession:
    """Single-writer host around a ResumptionDetector.

    The session mutates ``snapshot`` the way a real store would: it raises
    the waiting flag when it triggers a participant and installs the pending
    message when it resubmits. Callers feed transport progress back through
    the snapshot and call ``tick`` again.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        transport: SubmissionTransport,
        config: ResumptionConfig | None = None,
        detector: ResumptionDetector | None = None,
    ) -> None:
        self._config = config if config is not None else ResumptionConfig()
        self.snapshot = snapshot
        self._transport = transport
        self._detector = detector if detector is not None else ResumptionDetector(
            guard=TriggerGuard(self._config.trigger_clear_delay_sec),
            policy=self._config.response_policy(),
        )
        self._mounted_threads: set[str] = set()

    @property
    def detector(self) -> ResumptionDetector:
        return self._detector

    def mount(self) -> bool:
        """Clear a stale waiting flag, once per thread. Returns True if cleared."""
        thread_id = self.snapshot.thread_id
        if thread_id in self._mounted_threads:
            return False
        self._mounted_threads.add(thread_id)

        if has_stale_waiting_flag(self.snapshot.flags):
            logger.info("Clearing stale waiting flag on thread %s", thread_id)
            self.snapshot.flags.waiting_to_start_streaming = False
            return True
        return False

    def phase(self) -> FlowPhase:
        return resolve_phase(flow_context_from_snapshot(self.snapshot, self._detector.policy))

    def expire_stale_searches(self, now: datetime | None = None) -> list[int]:
        """Force searches stuck past the timeout to failed. Returns their rounds."""
        now = now if now is not None else datetime.now(timezone.utc)
        stale = find_timed_out_searches(self.snapshot.search_records, now, self._config.search_timeout_sec)
        if not stale:
            return []

        stale_ids = {id(r) for r in stale}
        self.snapshot.search_records = [
            replace(r, status=RecordStatus.FAILED) if id(r) in stale_ids else r
            for r in self.snapshot.search_records
        ]
        rounds = sorted(r.round_number for r in stale)
        logger.warning(
            "Search timed out after %.0fs on thread %s round(s) %s; continuing without results",
            self._config.search_timeout_sec, self.snapshot.thread_id, rounds,
        )
        return rounds

    async def tick(self, enabled: bool = True) -> Action | TransportError | None:
        """Evaluate once and dispatch whatever the detector asks for.

        Never raises for transport failures; returns the TransportError instead.
        """
        action = self._detector.evaluate(self.snapshot, enabled=enabled)
        if action is None:
            return None
        if isinstance(action, TriggerParticipant):
            return await self._dispatch_trigger(action)
        return await self._dispatch_resubmit(action)

    async def _dispatch_trigger(self, action: TriggerParticipant) -> TriggerParticipant | TransportError:
        flags = self.snapshot.flags
        flags.waiting_to_start_streaming = True
        self._detector.observe(self.snapshot)
        try:
            await self._transport.trigger_participant(action.round_number, action.participant_index)
        except TransportError as exc:
            logger.warning(
                "Trigger for round %d participant %d failed: %s",
                action.round_number, action.participant_index, exc,
            )
            # Dropping the flag lets the guard's deferred clear allow a retry.
            flags.waiting_to_start_streaming = False
            self._detector.observe(self.snapshot)
            return exc
        except Exception as exc:
            err = TransportError(self.snapshot.thread_id, f"Unexpected error: {exc}")
            logger.warning("Trigger for round %d unexpected failure: %s", action.round_number, exc)
            flags.waiting_to_start_streaming = False
            self._detector.observe(self.snapshot)
            return err
        return action

    async def _dispatch_resubmit(self, action: ResubmitMessage) -> ResubmitMessage | TransportError:
        flags = self.snapshot.flags
        self.snapshot.messages = list(action.messages)
        flags.pending_outgoing_message = action.text
        flags.has_sent_pending_message = False
        try:
            await self._transport.submit_message(action.text, list(action.expected_participant_ids))
        except TransportError as exc:
            logger.warning("Resubmitting round %d failed: %s", action.round_number, exc)
            flags.pending_outgoing_message = None
            return exc
        except Exception as exc:
            err = TransportError(self.snapshot.thread_id, f"Unexpected error: {exc}")
            logger.warning("Resubmitting round %d unexpected failure: %s", action.round_number, exc)
            flags.pending_outgoing_message = None
            return err
        flags.has_sent_pending_message = True
        return action

    def switch_thread(self, snapshot: Snapshot) -> None:
        """Navigate to another thread; the old thread's latches and timers go away."""
        old_thread = self.snapshot.thread_id
        if old_thread != snapshot.thread_id:
            self._detector.teardown(old_thread)
            self._mounted_threads.discard(old_thread)
        self.snapshot = snapshot

    def close(self) -> None:
        self._detector.close()
        self._mounted_threads.clear()
