"""Pure dataclasses and enums for conversation snapshots. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    STOP = "stop"
    ERROR = "error"
    UNKNOWN = "unknown"
    NONE = "none"


class RecordStatus(str, Enum):
    """Lifecycle of search and summary records."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class ScreenMode(str, Enum):
    OVERVIEW = "overview"
    THREAD = "thread"


class ResumptionPhase(str, Enum):
    """Phase a server prefill says the interrupted round stopped in."""

    IDLE = "idle"
    PRE_SEARCH = "pre_search"
    PARTICIPANTS = "participants"
    SUMMARIZER = "summarizer"
    COMPLETE = "complete"


@dataclass
class ParticipantSlot:
    id: str
    model_id: str
    index: int
    is_enabled: bool = True


@dataclass
class Message:
    role: Role
    round_number: int
    content_parts: list[str] = field(default_factory=list)
    participant_index: int | None = None
    model_id: str | None = None      # set on assistant turns only
    streaming_in_progress: bool = False
    finish_reason: FinishReason = FinishReason.NONE
    is_optimistic: bool = False      # created locally, not yet confirmed
    id: str | None = None


@dataclass
class SearchRecord:
    round_number: int
    status: RecordStatus
    query: str
    created_at: datetime | None = None


@dataclass
class SummaryRecord:
    round_number: int
    status: RecordStatus


@dataclass
class SessionFlags:
    is_streaming: bool = False
    waiting_to_start_streaming: bool = False
    pending_outgoing_message: str | None = None
    has_sent_pending_message: bool = False
    has_early_optimistic_message: bool = False
    web_search_enabled: bool = False
    stream_resumption_prefilled: bool = False


@dataclass
class Snapshot:
    """Everything one evaluation tick needs to know about a thread."""

    thread_id: str
    messages: list[Message] = field(default_factory=list)
    roster: list[ParticipantSlot] = field(default_factory=list)
    search_records: list[SearchRecord] = field(default_factory=list)
    flags: SessionFlags = field(default_factory=SessionFlags)
    summaries: list[SummaryRecord] = field(default_factory=list)
    thread_slug: str | None = None
    has_ai_title: bool = False
    screen_mode: ScreenMode = ScreenMode.THREAD
    has_navigated: bool = False
    is_creating_thread: bool = False
    is_creating_summary: bool = False
    # Only meaningful while flags.stream_resumption_prefilled is set.
    current_resumption_phase: ResumptionPhase | None = None
    resumption_round_number: int | None = None


@dataclass(frozen=True)
class ResponsePolicy:
    # An empty turn that ended with finish_reason=unknown is an interrupted
    # stream; when False it stays eligible for retry.
    empty_unknown_counts_as_responded: bool = False


@dataclass(frozen=True)
class TriggerParticipant:
    round_number: int
    participant_index: int


@dataclass(frozen=True)
class ResubmitMessage:
    round_number: int
    text: str
    expected_participant_ids: tuple[str, ...]
    messages: tuple[Message, ...]    # stale optimistic user turn removed


Action = TriggerParticipant | ResubmitMessage
