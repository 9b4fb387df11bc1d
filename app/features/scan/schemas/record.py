"""
Record Schemas

The current (versionless) shape of a persisted scan and its parts.
Every read path returns TestRecord, whatever layout the row was written in.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


NOT_APPLICABLE = "not-applicable"
UNKNOWN_VERSION = "unknown"


class RecordKind(str, Enum):
    accessibility = "accessibility"
    performance = "performance"
    combined = "combined"


class Impact(str, Enum):
    minor = "minor"
    moderate = "moderate"
    serious = "serious"
    critical = "critical"


# ============================================================================
# Accessibility
# ============================================================================

class ScanSummary(BaseModel):
    """Bucket counts of one rule-engine run plus the derived 0-100 score."""
    violations: int = 0
    passes: int = 0
    incomplete: int = 0
    inapplicable: int = 0
    score: int = Field(default=100, ge=0, le=100)


class NodeChecks(BaseModel):
    any: List[dict] = Field(default_factory=list)
    all: List[dict] = Field(default_factory=list)
    none: List[dict] = Field(default_factory=list)


class AffectedNode(BaseModel):
    html_snippet: str = ""
    css_selector_path: List[str] = Field(default_factory=list)
    failure_summary: Optional[str] = None
    checks: NodeChecks = Field(default_factory=NodeChecks)


class IssueRecord(BaseModel):
    rule_id: str
    impact: Optional[Impact] = None
    description: str = ""
    help_text: str = ""
    help_url: str = ""
    tags: List[str] = Field(default_factory=list)
    affected_nodes: List[AffectedNode] = Field(default_factory=list)

    # Only set by enhanced scans
    wcag_criteria: Optional[List[str]] = None
    priority_score: Optional[int] = None


class AccessibilityDetail(BaseModel):
    violations: List[IssueRecord] = Field(default_factory=list)
    passes: List[IssueRecord] = Field(default_factory=list)
    incomplete: List[IssueRecord] = Field(default_factory=list)
    inapplicable: List[IssueRecord] = Field(default_factory=list)


# ============================================================================
# Performance
# ============================================================================

class PerformanceScores(BaseModel):
    performance: int = Field(default=0, ge=0, le=100)
    accessibility: int = Field(default=0, ge=0, le=100)
    seo: int = Field(default=0, ge=0, le=100)
    best_practices: int = Field(default=0, ge=0, le=100)


class TimingMetrics(BaseModel):
    first_contentful_paint: float = 0
    largest_contentful_paint: float = 0
    time_to_interactive: float = 0
    speed_index: float = 0
    total_blocking_time: float = 0
    cumulative_layout_shift: float = 0


class ResourceTypeUsage(BaseModel):
    count: int = 0
    transfer_size: int = 0


class ResourceBreakdown(BaseModel):
    total_requests: int = 0
    total_transfer_size: int = 0
    by_type: Dict[str, ResourceTypeUsage] = Field(default_factory=dict)


class PerformanceMetrics(BaseModel):
    final_url: Optional[str] = None
    timing: TimingMetrics = Field(default_factory=TimingMetrics)
    resources: ResourceBreakdown = Field(default_factory=ResourceBreakdown)


# ============================================================================
# Record
# ============================================================================

class EngineVersion(BaseModel):
    name: str
    version: str = UNKNOWN_VERSION


class EngineInfo(BaseModel):
    accessibility: EngineVersion = Field(
        default_factory=lambda: EngineVersion(name="axe-core", version=NOT_APPLICABLE)
    )
    performance: EngineVersion = Field(
        default_factory=lambda: EngineVersion(name="lighthouse", version=NOT_APPLICABLE)
    )


class NewTestRecord(BaseModel):
    """A record ready to be written; the store assigns id and created_at."""
    __test__ = False

    url: str
    kind: RecordKind
    accessibility_summary: Optional[ScanSummary] = None
    accessibility_detail: Optional[AccessibilityDetail] = None
    performance_scores: Optional[PerformanceScores] = None
    performance_metrics: Optional[PerformanceMetrics] = None
    engine_info: EngineInfo = Field(default_factory=EngineInfo)


class TestRecord(NewTestRecord):
    __test__ = False

    id: str
    created_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "01929c3e-7a2b-7cc1-9f52-3a4d7b1e2f10",
                "url": "https://example.com",
                "created_at": "2026-10-19T09:30:00Z",
                "kind": "accessibility",
                "accessibility_summary": {
                    "violations": 3,
                    "passes": 27,
                    "incomplete": 1,
                    "inapplicable": 40,
                    "score": 90,
                },
                "accessibility_detail": {
                    "violations": [],
                    "passes": [],
                    "incomplete": [],
                    "inapplicable": [],
                },
                "performance_scores": None,
                "performance_metrics": None,
                "engine_info": {
                    "accessibility": {"name": "axe-core", "version": "4.9.1"},
                    "performance": {"name": "lighthouse", "version": "not-applicable"},
                },
            }
        }
    )
