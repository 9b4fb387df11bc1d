from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.scan.schemas.history import HistoryView
from app.features.scan.schemas.scan import AnalysisFlags, ScannerFailureInfo, ScanRequest, ScanResponse
from app.features.scan.services.orchestration.history import compare, reconcile
from app.features.scan.services.orchestration.orchestrator import ScannerSet, get_scanner_set, run_analysis
from app.features.scan.services.storage import record_store
from app.platform.config import settings
from app.platform.db.session import get_db
from app.platform.exceptions import ScanValidationError
from app.platform.logger import get_logger
from app.platform.response import api_response
from app.platform.utils.url_validator import validate_url

logger = get_logger(__name__)

router = APIRouter(prefix="/test", tags=["test"])


def _require_url(body: ScanRequest) -> str:
    is_valid, url, error = validate_url(body.url or "")
    if not is_valid:
        raise ScanValidationError(f"Valid URL required: {error}")
    return url


async def _scan_and_store(
    db: AsyncSession,
    body: ScanRequest,
    flags: AnalysisFlags,
    scanners: ScannerSet,
    success_message: str,
):
    url = _require_url(body)
    outcome = await run_analysis(url, flags, options=body.options, scanners=scanners)
    record = await record_store.create_record(db, outcome.record)

    response = ScanResponse(
        **record.model_dump(),
        failures=[
            ScannerFailureInfo(scanner=failure.scanner or "unknown", message=failure.message)
            for failure in outcome.failures
        ],
    )
    message = "Analysis completed with partial results" if outcome.is_partial else success_message
    return api_response(data=response, message=message, status_code=status.HTTP_201_CREATED)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Run an accessibility scan")
async def run_test(
    body: ScanRequest,
    enhanced: bool = Query(False, description="Add WCAG mapping and priority scores to violations"),
    db: AsyncSession = Depends(get_db),
    scanners: ScannerSet = Depends(get_scanner_set),
):
    """Run the rule engine against body.url and store the result."""
    flags = AnalysisFlags(accessibility=True, performance=False, enhanced=enhanced)
    return await _scan_and_store(db, body, flags, scanners, "Accessibility test completed")


@router.post("/lighthouse", status_code=status.HTTP_201_CREATED, summary="Run a performance audit")
async def run_lighthouse_test(
    body: ScanRequest,
    db: AsyncSession = Depends(get_db),
    scanners: ScannerSet = Depends(get_scanner_set),
):
    flags = AnalysisFlags(accessibility=False, performance=True)
    return await _scan_and_store(db, body, flags, scanners, "Lighthouse test completed")


@router.post("/analyze", status_code=status.HTTP_201_CREATED, summary="Run accessibility and performance scans")
async def run_combined_analysis(
    body: ScanRequest,
    axe: bool = Query(True),
    lighthouse: bool = Query(True),
    enhanced: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    scanners: ScannerSet = Depends(get_scanner_set),
):
    """
    Run the enabled scanners concurrently. If one fails the other's result is
    still stored and returned (201) with the failure listed under "failures";
    if all fail nothing is stored and a 500 is returned.
    """
    flags = AnalysisFlags(accessibility=axe, performance=lighthouse, enhanced=enhanced)
    return await _scan_and_store(db, body, flags, scanners, "Analysis completed")


async def _history_view(
    db: AsyncSession,
    url: Optional[str],
    current: Optional[date],
    previous: Optional[date],
) -> HistoryView:
    if url:
        records = await record_store.find_by_url(db, url, limit=settings.HISTORY_LIMIT)
    else:
        records = await record_store.find_recent(db, limit=settings.HISTORY_LIMIT)

    entries = reconcile(records)
    current_date, previous_date, rows = compare(entries, current=current, previous=previous)
    return HistoryView(
        records=records,
        history=entries,
        current_date=current_date,
        previous_date=previous_date,
        comparison=rows,
    )


@router.get("/history", summary="Recent test history")
async def get_recent_history(
    current: Optional[date] = Query(None, description="Comparison date (defaults to most recent)"),
    previous: Optional[date] = Query(None, description="Date to compare against"),
    db: AsyncSession = Depends(get_db),
):
    view = await _history_view(db, None, current, previous)
    return api_response(data=view, message="Test history retrieved")


@router.get("/history/{url:path}", summary="Test history for a URL")
async def get_url_history(
    url: str,
    current: Optional[date] = Query(None),
    previous: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    url matches case-insensitively as a substring of stored URLs. The router
    has already percent-decoded the path, so it is used as is.
    """
    view = await _history_view(db, url.strip() or None, current, previous)
    return api_response(data=view, message="Test history retrieved")


@router.get("/{record_id}", summary="Get a test result")
async def get_test_result(record_id: str, db: AsyncSession = Depends(get_db)):
    record = await record_store.get_record(db, record_id)
    if record is None:
        return api_response(message="Test result not found", status_code=status.HTTP_404_NOT_FOUND)
    return api_response(data=record, message="Test result retrieved")
