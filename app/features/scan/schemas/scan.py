"""
Scan Schemas

Request and response models for the scan API endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.features.scan.schemas.record import TestRecord


# ============================================================================
# Requests
# ============================================================================

class ScanOptions(BaseModel):
    """Per-scanner configuration. Unknown keys are kept and ignored."""
    model_config = ConfigDict(extra="allow")

    rules: Optional[List[str]] = None  # restrict the rule engine to these rule ids
    tags: Optional[List[str]] = None  # or to these tags (e.g. wcag2aa)
    timeout: Optional[int] = Field(default=None, gt=0)  # navigation timeout in ms


class ScanRequest(BaseModel):
    """Body of the scan endpoints. url is checked by the route, not here, so a
    missing or malformed url is answered with 400."""
    url: Optional[str] = None
    options: ScanOptions = Field(default_factory=ScanOptions)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://example.com",
                "options": {"rules": ["color-contrast", "image-alt"], "timeout": 30000},
            }
        }
    )


class AnalysisFlags(BaseModel):
    """Which scanners a combined run launches."""
    accessibility: bool = True
    performance: bool = True
    enhanced: bool = False


# ============================================================================
# Responses
# ============================================================================

class ScannerFailureInfo(BaseModel):
    scanner: str
    message: str


class ScanResponse(TestRecord):
    """A freshly created record plus the scanners that failed in the same run."""
    failures: List[ScannerFailureInfo] = Field(default_factory=list)
