"""
Scan orchestration.

Fans a URL out to the requested scanners concurrently, waits for all of them
to settle and folds whatever succeeded into one unsaved record. A scanner that
fails never cancels its siblings; only when every requested scanner fails does
the run itself fail.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Dict, List, Optional, Union

from app.features.scan.schemas.record import (
    EngineInfo,
    EngineVersion,
    NewTestRecord,
    NOT_APPLICABLE,
    RecordKind,
    UNKNOWN_VERSION,
)
from app.features.scan.schemas.scan import AnalysisFlags, ScanOptions
from app.features.scan.services.scanners.accessibility import AccessibilityScanner
from app.features.scan.services.scanners.base import AccessibilityReport, PerformanceReport, ScanReport, Scanner
from app.features.scan.services.scanners.performance import PerformanceScanner
from app.features.scan.services.scanners.wcag import enrich_violation
from app.platform.exceptions import CombinedScanFailure, ScanFailure, ScanValidationError
from app.platform.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Settle-all
# ============================================================================

@dataclass
class Success:
    scanner: str
    report: ScanReport


@dataclass
class Failure:
    scanner: str
    error: ScanFailure


ScanResult = Union[Success, Failure]


async def settle_all(runs: Dict[str, Awaitable[ScanReport]]) -> List[ScanResult]:
    """
    Await every run and return one Success/Failure per run, in input order.
    Exceptions are captured, not propagated; cancellation still propagates.
    """
    names = list(runs)
    outcomes = await asyncio.gather(*runs.values(), return_exceptions=True)

    results: List[ScanResult] = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, ScanFailure):
            if outcome.scanner is None:
                outcome.scanner = name
            results.append(Failure(scanner=name, error=outcome))
        elif isinstance(outcome, Exception):
            results.append(Failure(scanner=name, error=ScanFailure(str(outcome) or type(outcome).__name__, scanner=name)))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append(Success(scanner=name, report=outcome))
    return results


# ============================================================================
# Scanner wiring
# ============================================================================

class ScannerSet:
    """Builds the scanners for one run. Overridden in tests."""

    def accessibility(self, enhanced: bool = False) -> Scanner:
        return AccessibilityScanner(enrichment=enrich_violation if enhanced else None)

    def performance(self) -> Scanner:
        return PerformanceScanner()


def get_scanner_set() -> ScannerSet:
    return ScannerSet()


# ============================================================================
# Fan-in
# ============================================================================

@dataclass
class AnalysisResult:
    record: NewTestRecord
    failures: List[ScanFailure] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)


def determine_kind(accessibility: Optional[AccessibilityReport], performance: Optional[PerformanceReport]) -> RecordKind:
    if accessibility is not None and performance is not None:
        return RecordKind.combined
    if accessibility is not None:
        return RecordKind.accessibility
    return RecordKind.performance


def _engine_version(name: str, requested: bool, report: Optional[ScanReport]) -> EngineVersion:
    if report is not None:
        return report.engine
    return EngineVersion(name=name, version=UNKNOWN_VERSION if requested else NOT_APPLICABLE)


def build_record(
    url: str,
    flags: AnalysisFlags,
    accessibility: Optional[AccessibilityReport],
    performance: Optional[PerformanceReport],
) -> NewTestRecord:
    return NewTestRecord(
        url=url,
        kind=determine_kind(accessibility, performance),
        accessibility_summary=accessibility.summary if accessibility else None,
        accessibility_detail=accessibility.detail if accessibility else None,
        performance_scores=performance.scores if performance else None,
        performance_metrics=performance.metrics if performance else None,
        engine_info=EngineInfo(
            accessibility=_engine_version("axe-core", flags.accessibility, accessibility),
            performance=_engine_version("lighthouse", flags.performance, performance),
        ),
    )


async def run_analysis(
    url: str,
    flags: AnalysisFlags,
    options: Optional[ScanOptions] = None,
    scanners: Optional[ScannerSet] = None,
) -> AnalysisResult:
    """
    Run the enabled scanners against url concurrently.

    Raises:
        ScanValidationError: no scanner enabled
        CombinedScanFailure: every enabled scanner failed
    """
    if not flags.accessibility and not flags.performance:
        raise ScanValidationError("At least one scanner (axe or lighthouse) must be enabled")

    scanners = scanners or get_scanner_set()
    options = options or ScanOptions()

    runs: Dict[str, Awaitable[ScanReport]] = {}
    if flags.accessibility:
        runs[RecordKind.accessibility.value] = scanners.accessibility(flags.enhanced).scan(url, options)
    if flags.performance:
        runs[RecordKind.performance.value] = scanners.performance().scan(url, options)

    logger.info(f"Starting analysis of {url} with {', '.join(runs)}")
    results = await settle_all(runs)

    reports = {r.scanner: r.report for r in results if isinstance(r, Success)}
    failures = [r.error for r in results if isinstance(r, Failure)]

    for failure in failures:
        logger.warning(f"Scanner failed for {url}: {failure}")

    if not reports:
        combined = CombinedScanFailure(failures)
        logger.error(f"Analysis of {url} failed: {combined}")
        raise combined

    record = build_record(
        url,
        flags,
        accessibility=reports.get(RecordKind.accessibility.value),
        performance=reports.get(RecordKind.performance.value),
    )
    logger.info(f"Analysis of {url} produced a {record.kind.value} record ({len(failures)} scanner failures)")
    return AnalysisResult(record=record, failures=failures)
