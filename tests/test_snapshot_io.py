"""Unit tests for roundkeeper/snapshot_io.py."""

import textwrap
from pathlib import Path

import pytest

from roundkeeper.models import FinishReason, RecordStatus, ResumptionPhase, Role, ScreenMode
from roundkeeper.snapshot_io import SnapshotError, load_snapshot, parse_snapshot


def test_load_snapshot(snapshot_file: Path) -> None:
    snapshot = load_snapshot(snapshot_file)
    assert snapshot.thread_id == "thread-9"
    assert [p.index for p in snapshot.roster] == [0, 1, 2]
    assert snapshot.messages[0].role == Role.USER
    assert snapshot.messages[0].content_parts == ["Should we shard the database?"]
    assert snapshot.messages[1].finish_reason == FinishReason.STOP
    assert snapshot.flags.web_search_enabled is False
    assert snapshot.screen_mode == ScreenMode.THREAD


def test_load_snapshot_full_document(tmp_path: Path) -> None:
    path = tmp_path / "snap.yaml"
    path.write_text(
        textwrap.dedent("""\
            thread_id: t-1
            thread_slug: my-thread
            has_ai_title: true
            screen_mode: overview
            roster:
              - {id: a, model_id: m-a, index: 0, is_enabled: false}
            messages:
              - role: assistant
                round_number: 0
                participant_index: 0
                content_parts: ["one", "two"]
                streaming_in_progress: true
            search_records:
              - {round_number: 0, status: streaming, query: q, created_at: "2026-01-01T00:00:00+00:00"}
            summaries:
              - {round_number: 0, status: pending}
            flags:
              is_streaming: true
        """),
        encoding="utf-8",
    )
    snapshot = load_snapshot(path)
    assert snapshot.roster[0].is_enabled is False
    assert snapshot.messages[0].content_parts == ["one", "two"]
    assert snapshot.messages[0].streaming_in_progress is True
    assert snapshot.search_records[0].status == RecordStatus.STREAMING
    assert snapshot.search_records[0].created_at.year == 2026
    assert snapshot.summaries[0].status == RecordStatus.PENDING
    assert snapshot.screen_mode == ScreenMode.OVERVIEW
    assert snapshot.flags.is_streaming is True


def test_default_screen_mode_applies(snapshot_file: Path) -> None:
    assert load_snapshot(snapshot_file, default_screen_mode=ScreenMode.OVERVIEW).screen_mode == ScreenMode.OVERVIEW


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_snapshot(tmp_path / "missing.yaml")


def test_missing_thread_id() -> None:
    with pytest.raises(SnapshotError, match="thread_id"):
        parse_snapshot({"messages": []})


def test_invalid_enum_value() -> None:
    with pytest.raises(SnapshotError):
        parse_snapshot({"thread_id": "t", "messages": [{"role": "robot", "round_number": 0}]})


def test_unknown_flag() -> None:
    with pytest.raises(SnapshotError, match="unknown flags"):
        parse_snapshot({"thread_id": "t", "flags": {"is_flying": True}})


def test_non_mapping_document() -> None:
    with pytest.raises(SnapshotError, match="mapping"):
        parse_snapshot(["not", "a", "mapping"])


def test_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("thread_id: [unclosed", encoding="utf-8")
    with pytest.raises(SnapshotError, match="invalid YAML"):
        load_snapshot(path)


def test_numeric_fields_are_coerced() -> None:
    snapshot = parse_snapshot({
        "thread_id": "t",
        "messages": [
            {"role": "assistant", "round_number": "0", "participant_index": "1", "content": "hi"},
        ],
        "current_resumption_phase": "pre_search",
        "resumption_round_number": "0",
        "flags": {"stream_resumption_prefilled": True},
    })
    assert snapshot.messages[0].participant_index == 1
    assert snapshot.current_resumption_phase == ResumptionPhase.PRE_SEARCH
    assert snapshot.resumption_round_number == 0


def test_resumption_phase_defaults_to_none(snapshot_file: Path) -> None:
    snapshot = load_snapshot(snapshot_file)
    assert snapshot.current_resumption_phase is None
    assert snapshot.resumption_round_number is None


def test_invalid_resumption_phase() -> None:
    with pytest.raises(SnapshotError):
        parse_snapshot({"thread_id": "t", "current_resumption_phase": "paused"})
