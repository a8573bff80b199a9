"""Pre-search gate: whether participant turns must wait for the round's web search."""

import logging
from datetime import datetime, timezone

from roundkeeper.models import RecordStatus, SearchRecord

logger = logging.getLogger(__name__)

# Reference threshold after which a host should force a stuck search to failed
DEFAULT_SEARCH_TIMEOUT_SEC = 10.0

_IN_FLIGHT = {RecordStatus.PENDING, RecordStatus.STREAMING}


def search_for_round(search_records: list[SearchRecord], round_number: int) -> SearchRecord | None:
    return next((r for r in search_records if r.round_number == round_number), None)


def should_wait(
    web_search_enabled: bool,
    search_records: list[SearchRecord],
    round_number: int,
) -> bool:
    """Return True while participant turns for ``round_number`` must wait.

    A missing record with search enabled still waits, since the record may
    not have been created yet. A failed search never blocks.
    """
    if not web_search_enabled:
        return False
    record = search_for_round(search_records, round_number)
    if record is None:
        return True
    return record.status in _IN_FLIGHT


def _age_sec(record: SearchRecord, now: datetime) -> float | None:
    if record.created_at is None:
        return None
    created = record.created_at
    if created.tzinfo is None and now.tzinfo is not None:
        created = created.replace(tzinfo=timezone.utc)
    elif created.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - created).total_seconds()


def find_timed_out_searches(
    search_records: list[SearchRecord],
    now: datetime,
    timeout_sec: float = DEFAULT_SEARCH_TIMEOUT_SEC,
) -> list[SearchRecord]:
    """Pending or streaming records older than ``timeout_sec`` (strictly greater)."""
    stale: list[SearchRecord] = []
    for record in search_records:
        if record.status not in _IN_FLIGHT:
            continue
        age = _age_sec(record, now)
        if age is not None and age > timeout_sec:
            stale.append(record)
    return stale
