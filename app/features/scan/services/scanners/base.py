from typing import Optional, Protocol, Union

from pydantic import BaseModel

from app.features.scan.schemas.record import (
    AccessibilityDetail,
    EngineVersion,
    PerformanceMetrics,
    PerformanceScores,
    RecordKind,
    ScanSummary,
)
from app.features.scan.schemas.scan import ScanOptions


class AccessibilityReport(BaseModel):
    """Normalized output of the rule engine."""
    url: str
    summary: ScanSummary
    detail: AccessibilityDetail
    engine: EngineVersion


class PerformanceReport(BaseModel):
    """Normalized output of the audit engine."""
    url: str
    scores: PerformanceScores
    metrics: PerformanceMetrics
    engine: EngineVersion


ScanReport = Union[AccessibilityReport, PerformanceReport]


class Scanner(Protocol):
    """
    One scanning capability. Every call owns its own browser session and
    releases it before returning; engine errors surface as ScanFailure.
    """

    name: str
    kind: RecordKind

    async def scan(self, url: str, options: Optional[ScanOptions] = None) -> ScanReport:
        ...
