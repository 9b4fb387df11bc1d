from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from app.features.scan.schemas.history import ComparisonRow, HistoryEntry
from app.features.scan.schemas.record import TestRecord
from app.platform.logger import get_logger

logger = get_logger(__name__)

SCORE_FIELDS = (
    "accessibility_score",
    "performance_score",
    "seo_score",
    "best_practices_score",
    "issues_count",
)

COMPARISON_CATEGORIES = (
    ("accessibility", "accessibility_score"),
    ("performance", "performance_score"),
    ("seo", "seo_score"),
    ("best-practices", "best_practices_score"),
    ("issue-count", "issues_count"),
)


def entry_from_record(record: TestRecord) -> HistoryEntry:
    summary = record.accessibility_summary
    scores = record.performance_scores

    if summary is not None:
        accessibility_score = summary.score
    elif scores is not None:
        accessibility_score = scores.accessibility
    else:
        accessibility_score = None

    return HistoryEntry(
        url=record.url,
        date=record.created_at.date(),
        accessibility_score=accessibility_score,
        performance_score=scores.performance if scores else None,
        seo_score=scores.seo if scores else None,
        best_practices_score=scores.best_practices if scores else None,
        issues_count=summary.violations if summary else None,
        record_ids=[record.id],
    )


def _max_or_none(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def merge_entries(a: HistoryEntry, b: HistoryEntry) -> HistoryEntry:
    """
    Element-wise maximum of every score and the issue count. Missing values
    never win over present ones. Associative and commutative.
    """
    merged = {name: _max_or_none(getattr(a, name), getattr(b, name)) for name in SCORE_FIELDS}
    return HistoryEntry(
        url=a.url,
        date=a.date,
        record_ids=sorted(set(a.record_ids) | set(b.record_ids)),
        **merged,
    )


def reconcile(records: Iterable[TestRecord]) -> List[HistoryEntry]:
    """
    Collapse records to one entry per (url, calendar date), keeping the best
    values seen that day, newest date first.

    Taking the maximum hides a legitimately worse second scan on the same day;
    it is there so a partially failed scan does not mask a complete one.
    """
    grouped: Dict[Tuple[str, date], HistoryEntry] = {}
    for record in records:
        entry = entry_from_record(record)
        key = (entry.url, entry.date)
        grouped[key] = merge_entries(grouped[key], entry) if key in grouped else entry

    entries = sorted(grouped.values(), key=lambda e: e.url)
    entries.sort(key=lambda e: e.date, reverse=True)
    logger.info(f"Reconciled {len(grouped)} history entries")
    return entries


def history_dates(entries: Iterable[HistoryEntry]) -> List[date]:
    return sorted({entry.date for entry in entries}, reverse=True)


def compare(
    entries: List[HistoryEntry],
    current: Optional[date] = None,
    previous: Optional[date] = None,
) -> Tuple[Optional[date], Optional[date], List[ComparisonRow]]:
    """
    Current vs previous values for the fixed comparison categories.
    Dates default to the two most recent; anything missing compares as 0.
    """
    dates = history_dates(entries)
    if current is None and dates:
        current = dates[0]
    if previous is None:
        older = [d for d in dates if current is None or d < current]
        previous = older[0] if older else None

    if current is None:
        return None, None, []

    def pick(day: Optional[date]) -> Optional[HistoryEntry]:
        return next((e for e in entries if e.date == day), None) if day else None

    current_entry = pick(current)
    previous_entry = pick(previous)

    rows = [
        ComparisonRow(
            category=category,
            current=(getattr(current_entry, field) or 0) if current_entry else 0,
            previous=(getattr(previous_entry, field) or 0) if previous_entry else 0,
        )
        for category, field in COMPARISON_CATEGORIES
    ]
    return current, previous, rows
