import asyncio
import json
import math
from typing import Any, Callable, Dict, List, Optional

from axe_selenium_python import Axe

from app.features.scan.schemas.record import (
    AccessibilityDetail,
    AffectedNode,
    EngineVersion,
    Impact,
    IssueRecord,
    NodeChecks,
    RecordKind,
    ScanSummary,
    UNKNOWN_VERSION,
)
from app.features.scan.schemas.scan import ScanOptions
from app.features.scan.services.scanners.base import AccessibilityReport
from app.features.scan.services.scanners.browser import BrowserSession
from app.platform.exceptions import ScanFailure
from app.platform.logger import get_logger

logger = get_logger(__name__)

ENGINE_NAME = "axe-core"
BUCKETS = ("violations", "passes", "incomplete", "inapplicable")

RawRunner = Callable[[str, ScanOptions], Dict[str, Any]]
Enrichment = Callable[[IssueRecord], IssueRecord]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_summary(violations: int, passes: int, incomplete: int = 0, inapplicable: int = 0) -> ScanSummary:
    """
    score = round(100 * passes / (passes + violations)), 100 when nothing was
    evaluated either way.
    """
    evaluated = passes + violations
    score = 100 if evaluated == 0 else round_half_up(100 * passes / evaluated)
    return ScanSummary(
        violations=violations,
        passes=passes,
        incomplete=incomplete,
        inapplicable=inapplicable,
        score=score,
    )


def parse_impact(value: Any) -> Optional[Impact]:
    try:
        return Impact(str(value).lower()) if value else None
    except ValueError:
        return None


def _selector_path(target: Any) -> List[str]:
    if target is None:
        return []
    if isinstance(target, (list, tuple)):
        # Shadow DOM targets come back as nested lists
        return [" >>> ".join(map(str, t)) if isinstance(t, (list, tuple)) else str(t) for t in target]
    return [str(target)]


def normalize_node(raw: Dict[str, Any]) -> AffectedNode:
    return AffectedNode(
        html_snippet=raw.get("html") or "",
        css_selector_path=_selector_path(raw.get("target")),
        failure_summary=raw.get("failureSummary"),
        checks=NodeChecks(
            any=list(raw.get("any") or []),
            all=list(raw.get("all") or []),
            none=list(raw.get("none") or []),
        ),
    )


def normalize_issue(raw: Dict[str, Any]) -> IssueRecord:
    if not isinstance(raw, dict):
        raise ScanFailure(f"invalid report shape: issue entry is {type(raw).__name__}", scanner=ENGINE_NAME)

    return IssueRecord(
        rule_id=str(raw.get("id") or raw.get("rule_id") or "unknown"),
        impact=parse_impact(raw.get("impact")),
        description=raw.get("description") or "",
        help_text=raw.get("help") or raw.get("help_text") or "",
        help_url=raw.get("helpUrl") or raw.get("help_url") or "",
        tags=[str(tag) for tag in raw.get("tags") or []],
        affected_nodes=[normalize_node(node) for node in raw.get("nodes") or [] if isinstance(node, dict)],
    )


def normalize_axe_results(
    url: str,
    raw: Dict[str, Any],
    enrichment: Optional[Enrichment] = None,
) -> AccessibilityReport:
    """
    Turn the rule engine's four buckets into an AccessibilityReport.
    When enrichment is given it is applied to every violation.
    """
    if not isinstance(raw, dict):
        raise ScanFailure("invalid report shape: expected an object", scanner=ENGINE_NAME)

    buckets: Dict[str, List[IssueRecord]] = {}
    for bucket in BUCKETS:
        items = raw.get(bucket)
        if not isinstance(items, list):
            raise ScanFailure(f"invalid report shape: '{bucket}' is missing", scanner=ENGINE_NAME)
        buckets[bucket] = [normalize_issue(item) for item in items]

    if enrichment is not None:
        buckets["violations"] = [enrichment(issue) for issue in buckets["violations"]]

    summary = compute_summary(
        violations=len(buckets["violations"]),
        passes=len(buckets["passes"]),
        incomplete=len(buckets["incomplete"]),
        inapplicable=len(buckets["inapplicable"]),
    )

    test_engine = raw.get("testEngine") or {}
    engine = EngineVersion(
        name=test_engine.get("name") or ENGINE_NAME,
        version=test_engine.get("version") or UNKNOWN_VERSION,
    )

    return AccessibilityReport(
        url=raw.get("url") or url,
        summary=summary,
        detail=AccessibilityDetail(**buckets),
        engine=engine,
    )


def build_axe_options(options: ScanOptions) -> Optional[Dict[str, Any]]:
    if options.rules:
        return {"runOnly": {"type": "rule", "values": list(options.rules)}}
    if options.tags:
        return {"runOnly": {"type": "tag", "values": list(options.tags)}}
    return None


def run_axe(url: str, options: ScanOptions) -> Dict[str, Any]:
    """
    Blocking: open a browser, load the page, inject axe and run it.
    The session is closed whatever happens.
    """
    axe_options = build_axe_options(options)

    with BrowserSession(navigation_timeout_ms=options.timeout) as session:
        session.load_page(url)
        axe = Axe(session.driver)
        axe.inject()
        if axe_options:
            return axe.run(options=json.dumps(axe_options))
        return axe.run()


class AccessibilityScanner:
    """Rule-engine scanner with an optional per-violation enrichment step."""

    name = ENGINE_NAME
    kind = RecordKind.accessibility

    def __init__(self, runner: Optional[RawRunner] = None, enrichment: Optional[Enrichment] = None):
        self.runner = runner or run_axe
        self.enrichment = enrichment

    async def scan(self, url: str, options: Optional[ScanOptions] = None) -> AccessibilityReport:
        options = options or ScanOptions()
        logger.info(f"Running accessibility scan for {url} (enhanced={self.enrichment is not None})")

        try:
            raw = await asyncio.to_thread(self.runner, url, options)
        except ScanFailure:
            raise
        except Exception as e:
            logger.warning(f"Accessibility scan failed for {url}: {e}")
            raise ScanFailure(str(e) or type(e).__name__, scanner=self.name) from e

        report = normalize_axe_results(url, raw, enrichment=self.enrichment)
        logger.info(
            f"Accessibility scan finished for {url}: score={report.summary.score} "
            f"violations={report.summary.violations} passes={report.summary.passes}"
        )
        return report
