"""Round ledger: who has responded in the current round, and whether the roster moved."""

import logging
from dataclasses import dataclass

from roundkeeper.models import FinishReason, Message, ParticipantSlot, ResponsePolicy, Role

logger = logging.getLogger(__name__)

_DEFAULT_POLICY = ResponsePolicy()


@dataclass(frozen=True)
class RoundLedger:
    current_round: int | None
    responded_indices: frozenset[int]
    in_progress_indices: frozenset[int]
    responded_model_ids: frozenset[str]
    enabled_count: int
    roster_changed_since_round: bool


def enabled_participants(roster: list[ParticipantSlot]) -> list[ParticipantSlot]:
    """Enabled slots in roster order. Position in this list is the participant index."""
    return sorted((p for p in roster if p.is_enabled), key=lambda p: p.index)


def current_round_number(messages: list[Message]) -> int | None:
    rounds = [m.round_number for m in messages if m.role == Role.USER]
    return max(rounds) if rounds else None


def has_text_content(message: Message) -> bool:
    return any(part.strip() for part in message.content_parts)


def is_responded(message: Message, policy: ResponsePolicy = _DEFAULT_POLICY) -> bool:
    """Whether an assistant turn has committed a response.

    A streaming turn is never responded. Otherwise content or any terminal
    finish reason counts, except an empty ``unknown`` finish, which marks an
    interrupted stream unless the policy says otherwise.
    """
    if message.streaming_in_progress:
        return False
    has_content = has_text_content(message)
    if has_content:
        return True
    if message.finish_reason == FinishReason.UNKNOWN:
        return policy.empty_unknown_counts_as_responded
    return message.finish_reason != FinishReason.NONE


def _participant_turns(messages: list[Message], round_number: int) -> list[Message]:
    return [
        m for m in messages
        if m.role == Role.ASSISTANT
        and m.round_number == round_number
        and m.participant_index is not None
    ]


def build_ledger(
    messages: list[Message],
    roster: list[ParticipantSlot],
    policy: ResponsePolicy = _DEFAULT_POLICY,
) -> RoundLedger:
    """Derive the current round's response state from messages and the live roster."""
    enabled = enabled_participants(roster)
    enabled_count = len(enabled)
    current_round = current_round_number(messages)

    responded: set[int] = set()
    in_progress: set[int] = set()
    responded_model_ids: set[str] = set()

    if current_round is not None:
        for msg in _participant_turns(messages, current_round):
            idx = msg.participant_index
            if msg.streaming_in_progress:
                in_progress.add(idx)
            elif is_responded(msg, policy):
                if msg.model_id:
                    responded_model_ids.add(msg.model_id)
                if 0 <= idx < enabled_count:
                    responded.add(idx)

    current_model_ids = {p.model_id for p in enabled}
    roster_changed = bool(responded_model_ids) and any(
        model_id not in current_model_ids for model_id in responded_model_ids
    )
    if roster_changed:
        logger.debug(
            "Roster changed since round %s: responders %s, enabled %s",
            current_round, sorted(responded_model_ids), sorted(current_model_ids),
        )

    return RoundLedger(
        current_round=current_round,
        responded_indices=frozenset(responded),
        in_progress_indices=frozenset(in_progress),
        responded_model_ids=frozenset(responded_model_ids),
        enabled_count=enabled_count,
        roster_changed_since_round=roster_changed,
    )


def all_participants_responded(
    messages: list[Message],
    roster: list[ParticipantSlot],
    round_number: int,
    policy: ResponsePolicy = _DEFAULT_POLICY,
) -> bool:
    """True when every enabled participant has a responded turn in ``round_number``."""
    enabled_count = len(enabled_participants(roster))
    if enabled_count == 0:
        return False
    responded = {
        m.participant_index
        for m in _participant_turns(messages, round_number)
        if is_responded(m, policy) and 0 <= m.participant_index < enabled_count
    }
    return len(responded) >= enabled_count
