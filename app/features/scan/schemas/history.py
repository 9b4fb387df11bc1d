"""
History Schemas

Reconciled per-day entries and the two-date comparison built from them.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from app.features.scan.schemas.record import TestRecord


class HistoryEntry(BaseModel):
    """Best known scores for one URL on one calendar day (UTC)."""
    url: str
    date: date
    accessibility_score: Optional[int] = None
    performance_score: Optional[int] = None
    seo_score: Optional[int] = None
    best_practices_score: Optional[int] = None
    issues_count: Optional[int] = None
    record_ids: List[str] = Field(default_factory=list)


class ComparisonRow(BaseModel):
    category: str
    current: int = 0
    previous: int = 0


class HistoryView(BaseModel):
    records: List[TestRecord] = Field(default_factory=list)
    history: List[HistoryEntry] = Field(default_factory=list)
    current_date: Optional[date] = None
    previous_date: Optional[date] = None
    comparison: List[ComparisonRow] = Field(default_factory=list)
