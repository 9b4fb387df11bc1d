"""
Result store adapter.

Create and read scan records. Rows may be in the current layout or in the
legacy flat one (summary/results/test_engine/lighthouse_results); every read
goes through normalize_document so callers only ever see TestRecord.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.scan.models.scan_record import ScanRecord
from app.features.scan.schemas.record import (
    AccessibilityDetail,
    EngineInfo,
    EngineVersion,
    NewTestRecord,
    NOT_APPLICABLE,
    PerformanceMetrics,
    PerformanceScores,
    RecordKind,
    ScanSummary,
    TestRecord,
    UNKNOWN_VERSION,
)
from app.features.scan.services.scanners.accessibility import compute_summary, normalize_issue
from app.platform.exceptions import ScanValidationError, StoreError
from app.platform.logger import get_logger

logger = get_logger(__name__)

ROW_FIELDS = (
    "id",
    "url",
    "created_at",
    "kind",
    "accessibility_summary",
    "accessibility_detail",
    "performance_scores",
    "performance_metrics",
    "engine_info",
    "summary",
    "results",
    "test_engine",
    "lighthouse_results",
)

LEGACY_SCORE_KEYS = {
    "performance": "performance",
    "accessibility": "accessibility",
    "seo": "seo",
    "best_practices": "bestPractices",
}


# ============================================================================
# Normalization (pure)
# ============================================================================

def _as_utc(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise ValueError(f"created_at is not a timestamp: {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _legacy_summary(summary: Dict[str, Any]) -> ScanSummary:
    computed = compute_summary(
        violations=int(summary.get("violations") or 0),
        passes=int(summary.get("passes") or 0),
        incomplete=int(summary.get("incomplete") or 0),
        inapplicable=int(summary.get("inapplicable") or 0),
    )
    # Corrupt rows may carry scores outside 0-100
    if summary.get("score") is not None:
        computed.score = max(0, min(100, int(summary["score"])))
    return computed


def _legacy_detail(results: Dict[str, Any]) -> AccessibilityDetail:
    return AccessibilityDetail(
        **{
            bucket: [normalize_issue(item) for item in results.get(bucket) or []]
            for bucket in ("violations", "passes", "incomplete", "inapplicable")
        }
    )


def _legacy_scores(lighthouse: Dict[str, Any]) -> PerformanceScores:
    scores = lighthouse.get("scores") or {}
    values = {}
    for field, key in LEGACY_SCORE_KEYS.items():
        value = scores.get(key, scores.get(field))
        values[field] = int(value or 0)
    return PerformanceScores(**values)


def _legacy_metrics(lighthouse: Dict[str, Any]) -> PerformanceMetrics:
    timing = lighthouse.get("timing") or {}
    resources = lighthouse.get("resources") or {}
    return PerformanceMetrics(
        final_url=lighthouse.get("url"),
        timing={
            "first_contentful_paint": timing.get("firstContentfulPaint") or 0,
            "largest_contentful_paint": timing.get("largestContentfulPaint") or 0,
            "time_to_interactive": timing.get("timeToInteractive") or 0,
            "speed_index": timing.get("speedIndex") or 0,
            "total_blocking_time": timing.get("totalBlockingTime") or 0,
            "cumulative_layout_shift": timing.get("cumulativeLayoutShift") or 0,
        },
        resources={
            "total_requests": int(resources.get("total") or 0),
            "total_transfer_size": int(resources.get("transferSize") or 0),
            "by_type": {
                name: {"count": int(count or 0)}
                for name, count in (resources.get("byType") or {}).items()
            },
        },
    )


def _infer_kind(accessibility: bool, performance: bool) -> RecordKind:
    if accessibility and performance:
        return RecordKind.combined
    if performance:
        return RecordKind.performance
    return RecordKind.accessibility


def normalize_document(doc: Dict[str, Any]) -> TestRecord:
    """
    Fold any known record layout into the current TestRecord shape.

    Current layout wins field by field; legacy fields only fill gaps.
    Accepts raw legacy exports too (_id, timestamp, axeSummary).
    """
    record_id = doc.get("id") or doc.get("_id")
    created_at = doc.get("created_at") or doc.get("timestamp")
    if record_id is None or created_at is None:
        raise ValueError("record is missing id or creation time")

    summary = doc.get("accessibility_summary")
    legacy_summary = doc.get("summary") or doc.get("axeSummary")
    if summary is None and legacy_summary:
        summary = _legacy_summary(legacy_summary)

    detail = doc.get("accessibility_detail")
    if detail is None and doc.get("results"):
        detail = _legacy_detail(doc["results"])

    lighthouse = doc.get("lighthouse_results") or doc.get("lighthouseResults")
    scores = doc.get("performance_scores")
    metrics = doc.get("performance_metrics")
    if lighthouse:
        if scores is None:
            scores = _legacy_scores(lighthouse)
        if metrics is None:
            metrics = _legacy_metrics(lighthouse)

    engine_info = doc.get("engine_info")
    if engine_info is None:
        legacy_engine = doc.get("test_engine") or doc.get("testEngine") or {}
        has_accessibility = summary is not None or detail is not None
        engine_info = EngineInfo(
            accessibility=EngineVersion(
                name=legacy_engine.get("name") or "axe-core",
                version=legacy_engine.get("version") or (UNKNOWN_VERSION if has_accessibility else NOT_APPLICABLE),
            ),
            performance=EngineVersion(
                name="lighthouse",
                version=(lighthouse or {}).get("lighthouseVersion")
                or (UNKNOWN_VERSION if lighthouse else NOT_APPLICABLE),
            ),
        )

    kind = doc.get("kind") or _infer_kind(
        accessibility=summary is not None or detail is not None,
        performance=scores is not None or metrics is not None,
    )

    return TestRecord(
        id=str(record_id),
        url=doc["url"],
        created_at=_as_utc(created_at),
        kind=kind,
        accessibility_summary=summary,
        accessibility_detail=detail,
        performance_scores=scores,
        performance_metrics=metrics,
        engine_info=engine_info,
    )


def row_to_document(row: ScanRecord) -> Dict[str, Any]:
    return {name: getattr(row, name) for name in ROW_FIELDS}


# ============================================================================
# Queries
# ============================================================================

def validate_record_id(record_id: str) -> str:
    try:
        return str(uuid.UUID(str(record_id)))
    except ValueError:
        raise ScanValidationError(f"Malformed test result id: {record_id}")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def create_record(db: AsyncSession, record: NewTestRecord) -> TestRecord:
    """Insert a record; id and created_at are assigned here and never change."""
    row = ScanRecord(
        url=record.url,
        kind=record.kind.value,
        accessibility_summary=record.accessibility_summary.model_dump() if record.accessibility_summary else None,
        accessibility_detail=(
            record.accessibility_detail.model_dump(mode="json") if record.accessibility_detail else None
        ),
        performance_scores=record.performance_scores.model_dump() if record.performance_scores else None,
        performance_metrics=record.performance_metrics.model_dump() if record.performance_metrics else None,
        engine_info=record.engine_info.model_dump(),
    )
    try:
        db.add(row)
        await db.commit()
        await db.refresh(row)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to store scan record for {record.url}: {e}")
        raise StoreError(f"Failed to store scan record: {e}") from e

    logger.info(f"Stored {record.kind.value} record {row.id} for {record.url}")
    return normalize_document(row_to_document(row))


async def get_record(db: AsyncSession, record_id: str) -> Optional[TestRecord]:
    """Return the record or None when there is no such id."""
    record_id = validate_record_id(record_id)
    try:
        result = await db.execute(select(ScanRecord).where(ScanRecord.id == record_id))
        row = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch scan record {record_id}: {e}")
        raise StoreError(f"Failed to fetch test result: {e}") from e

    if row is None:
        logger.info(f"Scan record {record_id} not found")
        return None
    return normalize_document(row_to_document(row))


async def find_records(db: AsyncSession, url: Optional[str] = None, limit: int = 10) -> List[TestRecord]:
    """
    Most recent first, at most limit records. A url filter matches
    case-insensitive substrings so scheme/host/path variants line up.
    """
    query = select(ScanRecord)
    if url:
        query = query.where(ScanRecord.url.ilike(f"%{_escape_like(url)}%", escape="\\"))
    query = query.order_by(desc(ScanRecord.created_at), desc(ScanRecord.id)).limit(limit)

    try:
        result = await db.execute(query)
        rows = result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to query scan history (url={url}): {e}")
        raise StoreError(f"Failed to retrieve test history: {e}") from e

    logger.info(f"Found {len(rows)} scan records (url filter={url!r})")
    return [normalize_document(row_to_document(row)) for row in rows]


async def find_by_url(db: AsyncSession, url: str, limit: int = 10) -> List[TestRecord]:
    return await find_records(db, url=url, limit=limit)


async def find_recent(db: AsyncSession, limit: int = 10) -> List[TestRecord]:
    return await find_records(db, limit=limit)
