"""Flow phase resolver: map a conversation snapshot to one coarse UI phase."""

from dataclasses import dataclass
from enum import Enum

from roundkeeper.ledger import all_participants_responded, current_round_number, enabled_participants
from roundkeeper.models import RecordStatus, ResponsePolicy, ScreenMode, Snapshot


class FlowPhase(str, Enum):
    IDLE = "idle"
    CREATING_THREAD = "creating_thread"
    STREAMING_PARTICIPANTS = "streaming_participants"
    CREATING_SUMMARY = "creating_summary"
    STREAMING_SUMMARY = "streaming_summary"
    NAVIGATING = "navigating"
    COMPLETE = "complete"


@dataclass(frozen=True)
class FlowContext:
    has_navigated: bool = False
    screen_mode: ScreenMode | None = None
    summary_status: RecordStatus | None = None
    summary_exists: bool = False
    all_participants_responded: bool = False
    participant_count: int = 0
    is_streaming: bool = False
    is_creating_thread: bool = False
    is_creating_summary: bool = False
    has_ai_title: bool = False
    thread_slug: str | None = None


def resolve_phase(ctx: FlowContext) -> FlowPhase:
    """First matching rule wins, highest priority first."""
    if ctx.has_navigated:
        return FlowPhase.COMPLETE

    if (
        ctx.screen_mode == ScreenMode.OVERVIEW
        and ctx.summary_status == RecordStatus.COMPLETE
        and ctx.has_ai_title
        and ctx.thread_slug
    ):
        return FlowPhase.NAVIGATING

    if ctx.summary_status == RecordStatus.STREAMING or (ctx.summary_exists and ctx.is_streaming):
        return FlowPhase.STREAMING_SUMMARY

    if (
        not ctx.is_streaming
        and ctx.all_participants_responded
        and ctx.participant_count > 0
        and not ctx.summary_exists
        and not ctx.is_creating_summary
    ):
        return FlowPhase.CREATING_SUMMARY

    if ctx.is_streaming and not ctx.summary_exists:
        return FlowPhase.STREAMING_PARTICIPANTS

    if ctx.is_creating_thread:
        return FlowPhase.CREATING_THREAD

    return FlowPhase.IDLE


def flow_context_from_snapshot(snapshot: Snapshot, policy: ResponsePolicy | None = None) -> FlowContext:
    """Build the resolver input for the snapshot's current round."""
    policy = policy if policy is not None else ResponsePolicy()
    round_number = current_round_number(snapshot.messages)

    summary = None
    responded = False
    if round_number is not None:
        summary = next((s for s in snapshot.summaries if s.round_number == round_number), None)
        responded = all_participants_responded(snapshot.messages, snapshot.roster, round_number, policy)

    return FlowContext(
        has_navigated=snapshot.has_navigated,
        screen_mode=snapshot.screen_mode,
        summary_status=summary.status if summary else None,
        summary_exists=summary is not None,
        all_participants_responded=responded,
        participant_count=len(enabled_participants(snapshot.roster)),
        is_streaming=snapshot.flags.is_streaming,
        is_creating_thread=snapshot.is_creating_thread,
        is_creating_summary=snapshot.is_creating_summary,
        has_ai_title=snapshot.has_ai_title,
        thread_slug=snapshot.thread_slug,
    )
