"""Turn scheduler: is the current round incomplete, and who goes next."""

from dataclasses import dataclass

from roundkeeper.ledger import RoundLedger
from roundkeeper.models import SessionFlags


@dataclass(frozen=True)
class ScheduleResult:
    is_incomplete: bool
    next_participant_index: int | None
    submission_in_progress: bool


def is_submission_in_progress(flags: SessionFlags) -> bool:
    """A fresh round is being submitted; it must not look like an incomplete one."""
    return flags.has_early_optimistic_message or (
        flags.pending_outgoing_message is not None and not flags.has_sent_pending_message
    )


def schedule(ledger: RoundLedger, flags: SessionFlags, enabled: bool = True) -> ScheduleResult:
    """Combine the ledger with session flags into a scheduling verdict.

    An in-progress turn blocks the round: it may still reconnect, and index
    i+1 is never scheduled while index i is streaming.
    """
    submitting = is_submission_in_progress(flags)
    is_incomplete = (
        enabled
        and not flags.is_streaming
        and not flags.waiting_to_start_streaming
        and not submitting
        and ledger.current_round is not None
        and ledger.enabled_count > 0
        and len(ledger.responded_indices) < ledger.enabled_count
        and not ledger.roster_changed_since_round
        and not ledger.in_progress_indices
    )

    next_index: int | None = None
    if is_incomplete:
        next_index = next(
            (i for i in range(ledger.enabled_count) if i not in ledger.responded_indices),
            None,
        )

    return ScheduleResult(
        is_incomplete=is_incomplete,
        next_participant_index=next_index,
        submission_in_progress=submitting,
    )
