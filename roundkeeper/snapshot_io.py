"""Load a conversation snapshot from a YAML file."""

from datetime import datetime
from pathlib import Path

import yaml

from roundkeeper.models import (
    FinishReason,
    Message,
    ParticipantSlot,
    RecordStatus,
    ResumptionPhase,
    Role,
    ScreenMode,
    SearchRecord,
    SessionFlags,
    Snapshot,
    SummaryRecord,
)


class SnapshotError(Exception):
    """Raised when a snapshot document is malformed."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"[{source}] {message}")


def _parse_time(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _optional_int(value) -> int | None:
    return None if value is None else int(value)


def _message(raw: dict) -> Message:
    parts = raw.get("content_parts")
    if parts is None:
        content = raw.get("content")
        parts = [content] if content else []
    return Message(
        id=raw.get("id"),
        role=Role(raw["role"]),
        round_number=int(raw["round_number"]),
        content_parts=[str(p) for p in parts],
        participant_index=_optional_int(raw.get("participant_index")),
        model_id=raw.get("model_id"),
        streaming_in_progress=bool(raw.get("streaming_in_progress", False)),
        finish_reason=FinishReason(raw.get("finish_reason", FinishReason.NONE.value)),
        is_optimistic=bool(raw.get("is_optimistic", False)),
    )


def _optional_phase(value) -> ResumptionPhase | None:
    return None if value is None else ResumptionPhase(value)


def _slot(raw: dict, position: int) -> ParticipantSlot:
    return ParticipantSlot(
        id=str(raw.get("id", f"p{position}")),
        model_id=str(raw["model_id"]),
        index=int(raw.get("index", position)),
        is_enabled=bool(raw.get("is_enabled", True)),
    )


def _search(raw: dict) -> SearchRecord:
    return SearchRecord(
        round_number=int(raw["round_number"]),
        status=RecordStatus(raw["status"]),
        query=str(raw.get("query", "")),
        created_at=_parse_time(raw.get("created_at")),
    )


def parse_snapshot(raw: dict, source: str = "<memory>", default_screen_mode: ScreenMode = ScreenMode.THREAD) -> Snapshot:
    """Build a Snapshot from a decoded mapping.

    Raises:
        SnapshotError: On missing keys or invalid enum values.
    """
    if not isinstance(raw, dict):
        raise SnapshotError(source, "top-level document must be a mapping")
    try:
        flags_raw = raw.get("flags", {}) or {}
        flag_names = SessionFlags.__dataclass_fields__
        unknown = set(flags_raw) - set(flag_names)
        if unknown:
            raise SnapshotError(source, f"unknown flags: {', '.join(sorted(unknown))}")
        return Snapshot(
            thread_id=str(raw["thread_id"]),
            messages=[_message(m) for m in raw.get("messages", []) or []],
            roster=[_slot(p, i) for i, p in enumerate(raw.get("roster", []) or [])],
            search_records=[_search(s) for s in raw.get("search_records", []) or []],
            flags=SessionFlags(**flags_raw),
            summaries=[
                SummaryRecord(round_number=int(s["round_number"]), status=RecordStatus(s["status"]))
                for s in raw.get("summaries", []) or []
            ],
            thread_slug=raw.get("thread_slug"),
            has_ai_title=bool(raw.get("has_ai_title", False)),
            screen_mode=ScreenMode(raw.get("screen_mode", default_screen_mode.value)),
            has_navigated=bool(raw.get("has_navigated", False)),
            is_creating_thread=bool(raw.get("is_creating_thread", False)),
            is_creating_summary=bool(raw.get("is_creating_summary", False)),
            current_resumption_phase=_optional_phase(raw.get("current_resumption_phase")),
            resumption_round_number=_optional_int(raw.get("resumption_round_number")),
        )
    except KeyError as exc:
        raise SnapshotError(source, f"missing required key: {exc.args[0]}") from exc
    except (TypeError, ValueError) as exc:
        raise SnapshotError(source, str(exc)) from exc


def load_snapshot(path: Path, default_screen_mode: ScreenMode = ScreenMode.THREAD) -> Snapshot:
    """Read and parse a YAML snapshot file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        SnapshotError: If the document is not a valid snapshot.
    """
    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise SnapshotError(str(path), f"invalid YAML: {exc}") from exc
    return parse_snapshot(raw, source=str(path), default_screen_mode=default_screen_mode)
