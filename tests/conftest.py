"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ResumptionConfig
from roundkeeper.models import (
    FinishReason,
    Message,
    ParticipantSlot,
    RecordStatus,
    Role,
    SearchRecord,
    SessionFlags,
    Snapshot,
)
from roundkeeper.transport import SubmissionTransport


def user_msg(round_number: int, text: str = "What should we build?", optimistic: bool = False) -> Message:
    return Message(
        role=Role.USER,
        round_number=round_number,
        content_parts=[text],
        is_optimistic=optimistic,
    )


def participant_msg(
    round_number: int,
    index: int,
    model_id: str | None = None,
    content: str = "Here is my answer.",
    finish_reason: FinishReason = FinishReason.STOP,
    streaming: bool = False,
) -> Message:
    return Message(
        role=Role.ASSISTANT,
        round_number=round_number,
        participant_index=index,
        model_id=model_id if model_id is not None else f"model-{index}",
        content_parts=[content] if content else [],
        finish_reason=finish_reason,
        streaming_in_progress=streaming,
    )


def make_roster(count: int, prefix: str = "model") -> list[ParticipantSlot]:
    return [
        ParticipantSlot(id=f"slot-{i}", model_id=f"{prefix}-{i}", index=i, is_enabled=True)
        for i in range(count)
    ]


def search(round_number: int, status: RecordStatus, query: str = "What should we build?") -> SearchRecord:
    return SearchRecord(round_number=round_number, status=status, query=query)


class MockTransport(SubmissionTransport):
    """Test double transport."""

    def __init__(self) -> None:
        # Shadow the class methods with AsyncMocks at the instance level.
        self.submit_message = AsyncMock(return_value=None)  # type: ignore[assignment]
        self.trigger_participant = AsyncMock(return_value=None)  # type: ignore[assignment]

    async def submit_message(self, text: str, expected_participant_ids: list[str]) -> None:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""

    async def trigger_participant(self, round_number: int, participant_index: int) -> None:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""


@pytest.fixture
def roster3() -> list[ParticipantSlot]:
    return make_roster(3)


@pytest.fixture
def incomplete_snapshot(roster3) -> Snapshot:
    """Round 0 with only participant 0 answered."""
    return Snapshot(
        thread_id="thread-1",
        messages=[user_msg(0), participant_msg(0, 0)],
        roster=roster3,
        flags=SessionFlags(),
    )


@pytest.fixture
def fast_config() -> ResumptionConfig:
    return ResumptionConfig(trigger_clear_delay_sec=0.1, search_timeout_sec=10.0)


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    path = tmp_path / "snapshot.yaml"
    path.write_text(
        """\
thread_id: thread-9
roster:
  - {id: a, model_id: model-0}
  - {id: b, model_id: model-1}
  - {id: c, model_id: model-2}
messages:
  - {role: user, round_number: 0, content: "Should we shard the database?"}
  - {role: assistant, round_number: 0, participant_index: 0, model_id: model-0,
     content: "Not yet.", finish_reason: stop}
flags:
  web_search_enabled: false
""",
        encoding="utf-8",
    )
    return path
