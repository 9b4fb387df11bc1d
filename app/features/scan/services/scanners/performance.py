import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.features.scan.schemas.record import (
    EngineVersion,
    PerformanceMetrics,
    PerformanceScores,
    RecordKind,
    ResourceBreakdown,
    ResourceTypeUsage,
    TimingMetrics,
    UNKNOWN_VERSION,
)
from app.features.scan.schemas.scan import ScanOptions
from app.features.scan.services.scanners.accessibility import round_half_up
from app.features.scan.services.scanners.base import PerformanceReport
from app.platform.config import settings
from app.platform.exceptions import ScanFailure
from app.platform.logger import get_logger

logger = get_logger(__name__)

ENGINE_NAME = "lighthouse"

CATEGORIES = {
    "performance": "performance",
    "accessibility": "accessibility",
    "seo": "seo",
    "best_practices": "best-practices",
}

TIMING_AUDITS = {
    "first_contentful_paint": "first-contentful-paint",
    "largest_contentful_paint": "largest-contentful-paint",
    "time_to_interactive": "interactive",
    "speed_index": "speed-index",
    "total_blocking_time": "total-blocking-time",
    "cumulative_layout_shift": "cumulative-layout-shift",
}

# Rows of resource-summary that aggregate other rows
AGGREGATE_RESOURCE_TYPES = {"total", "third-party"}

CHROME_FLAGS = "--headless --disable-gpu --no-sandbox --disable-dev-shm-usage"

RawRunner = Callable[[str, ScanOptions], Awaitable[Dict[str, Any]]]


def category_score(categories: Dict[str, Any], key: str) -> int:
    """0-1 fraction to 0-100; null or missing category counts as 0."""
    score = (categories.get(key) or {}).get("score")
    if score is None:
        return 0
    return max(0, min(100, round_half_up(float(score) * 100)))


def extract_timing(audits: Dict[str, Any]) -> TimingMetrics:
    values = {}
    for field, audit_id in TIMING_AUDITS.items():
        values[field] = (audits.get(audit_id) or {}).get("numericValue") or 0
    return TimingMetrics(**values)


def extract_resources(audits: Dict[str, Any]) -> ResourceBreakdown:
    items: List[Dict[str, Any]] = ((audits.get("resource-summary") or {}).get("details") or {}).get("items") or []

    breakdown = ResourceBreakdown()
    for item in items:
        resource_type = item.get("resourceType")
        if not resource_type or resource_type in AGGREGATE_RESOURCE_TYPES:
            continue

        count = int(item.get("requestCount") or 0)
        transfer_size = int(item.get("transferSize") or 0)

        usage = breakdown.by_type.setdefault(resource_type, ResourceTypeUsage())
        usage.count += count
        usage.transfer_size += transfer_size
        breakdown.total_requests += count
        breakdown.total_transfer_size += transfer_size

    return breakdown


def normalize_lighthouse_report(url: str, lhr: Dict[str, Any]) -> PerformanceReport:
    if not isinstance(lhr, dict) or not isinstance(lhr.get("categories"), dict):
        raise ScanFailure("Lighthouse returned invalid results", scanner=ENGINE_NAME)

    categories = lhr["categories"]
    audits = lhr.get("audits") or {}

    scores = PerformanceScores(
        **{field: category_score(categories, key) for field, key in CATEGORIES.items()}
    )
    metrics = PerformanceMetrics(
        final_url=lhr.get("finalDisplayedUrl") or lhr.get("finalUrl") or url,
        timing=extract_timing(audits),
        resources=extract_resources(audits),
    )

    return PerformanceReport(
        url=url,
        scores=scores,
        metrics=metrics,
        engine=EngineVersion(name=ENGINE_NAME, version=lhr.get("lighthouseVersion") or UNKNOWN_VERSION),
    )


def build_command(url: str, options: ScanOptions) -> List[str]:
    timeout_ms = options.timeout or settings.SCAN_NAVIGATION_TIMEOUT_MS
    return [
        settings.LIGHTHOUSE_BINARY,
        url,
        "--output=json",
        "--output-path=stdout",
        "--quiet",
        f"--only-categories={','.join(CATEGORIES.values())}",
        f"--max-wait-for-load={timeout_ms}",
        f"--chrome-flags={CHROME_FLAGS}",
    ]


async def run_lighthouse(url: str, options: ScanOptions) -> Dict[str, Any]:
    """
    Run the audit engine CLI. Lighthouse launches and closes its own Chrome;
    the process itself is killed if it outlives the analysis timeout or the
    caller goes away.
    """
    command = build_command(url, options)
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ScanFailure(f"could not launch {command[0]}: {e}", scanner=ENGINE_NAME) from e

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(), timeout=settings.SCAN_ANALYSIS_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError as e:
        raise ScanFailure(
            f"audit did not finish within {settings.SCAN_ANALYSIS_TIMEOUT_SECONDS}s", scanner=ENGINE_NAME
        ) from e
    finally:
        if process.returncode is None:
            process.kill()
            await process.wait()

    if process.returncode != 0:
        detail = stderr.decode(errors="replace").strip().splitlines()
        message = detail[-1] if detail else f"exit code {process.returncode}"
        raise ScanFailure(message, scanner=ENGINE_NAME)

    try:
        return json.loads(stdout)
    except ValueError as e:
        raise ScanFailure("Lighthouse output is not valid JSON", scanner=ENGINE_NAME) from e


class PerformanceScanner:
    name = ENGINE_NAME
    kind = RecordKind.performance

    def __init__(self, runner: Optional[RawRunner] = None):
        self.runner = runner or run_lighthouse

    async def scan(self, url: str, options: Optional[ScanOptions] = None) -> PerformanceReport:
        options = options or ScanOptions()
        logger.info(f"Running performance audit for {url}")

        try:
            lhr = await self.runner(url, options)
        except ScanFailure:
            raise
        except Exception as e:
            logger.warning(f"Performance audit failed for {url}: {e}")
            raise ScanFailure(str(e) or type(e).__name__, scanner=self.name) from e

        report = normalize_lighthouse_report(url, lhr)
        logger.info(f"Performance audit finished for {url}: scores={report.scores.model_dump()}")
        return report
