"""
Standards mapping and prioritisation for rule-engine violations.

Used by enhanced scans only: each violation gets the WCAG criteria its tags
point at and a priority score = impact weight x affected elements.
"""
from typing import Dict, List, Optional

from app.features.scan.schemas.record import IssueRecord

WCAG_TAG_PREFIX = "wcag"

WCAG_MAPPING: Dict[str, str] = {
    # Conformance levels
    "wcag2a": "WCAG 2.0 Level A",
    "wcag2aa": "WCAG 2.0 Level AA",
    "wcag2aaa": "WCAG 2.0 Level AAA",
    "wcag21a": "WCAG 2.1 Level A",
    "wcag21aa": "WCAG 2.1 Level AA",
    "wcag22a": "WCAG 2.2 Level A",
    "wcag22aa": "WCAG 2.2 Level AA",
    # Success criteria
    "wcag111": "1.1.1 Non-text Content",
    "wcag121": "1.2.1 Audio-only and Video-only (Prerecorded)",
    "wcag122": "1.2.2 Captions (Prerecorded)",
    "wcag131": "1.3.1 Info and Relationships",
    "wcag132": "1.3.2 Meaningful Sequence",
    "wcag135": "1.3.5 Identify Input Purpose",
    "wcag141": "1.4.1 Use of Color",
    "wcag142": "1.4.2 Audio Control",
    "wcag143": "1.4.3 Contrast (Minimum)",
    "wcag144": "1.4.4 Resize Text",
    "wcag146": "1.4.6 Contrast (Enhanced)",
    "wcag1410": "1.4.10 Reflow",
    "wcag1411": "1.4.11 Non-text Contrast",
    "wcag1412": "1.4.12 Text Spacing",
    "wcag211": "2.1.1 Keyboard",
    "wcag212": "2.1.2 No Keyboard Trap",
    "wcag221": "2.2.1 Timing Adjustable",
    "wcag222": "2.2.2 Pause, Stop, Hide",
    "wcag241": "2.4.1 Bypass Blocks",
    "wcag242": "2.4.2 Page Titled",
    "wcag243": "2.4.3 Focus Order",
    "wcag244": "2.4.4 Link Purpose (In Context)",
    "wcag246": "2.4.6 Headings and Labels",
    "wcag247": "2.4.7 Focus Visible",
    "wcag253": "2.5.3 Label in Name",
    "wcag258": "2.5.8 Target Size (Minimum)",
    "wcag311": "3.1.1 Language of Page",
    "wcag312": "3.1.2 Language of Parts",
    "wcag321": "3.2.1 On Focus",
    "wcag332": "3.3.2 Labels or Instructions",
    "wcag412": "4.1.2 Name, Role, Value",
    "wcag413": "4.1.3 Status Messages",
}

IMPACT_WEIGHTS: Dict[str, int] = {
    "minor": 1,
    "moderate": 2,
    "serious": 3,
    "critical": 4,
}

# Unrecognised or missing impact contributes nothing to the priority
UNKNOWN_IMPACT_WEIGHT = 0


def map_wcag_criteria(tags: List[str]) -> List[str]:
    """Translate wcag* tags through WCAG_MAPPING, keeping unmapped tags verbatim."""
    return [WCAG_MAPPING.get(tag, tag) for tag in tags if tag.startswith(WCAG_TAG_PREFIX)]


def impact_weight(impact: Optional[str]) -> int:
    if impact is None:
        return UNKNOWN_IMPACT_WEIGHT
    value = getattr(impact, "value", impact)
    return IMPACT_WEIGHTS.get(str(value).lower(), UNKNOWN_IMPACT_WEIGHT)


def priority_score(issue: IssueRecord) -> int:
    return impact_weight(issue.impact) * len(issue.affected_nodes)


def enrich_violation(issue: IssueRecord) -> IssueRecord:
    """Return a copy of the violation with wcag_criteria and priority_score set."""
    return issue.model_copy(
        update={
            "wcag_criteria": map_wcag_criteria(issue.tags),
            "priority_score": priority_score(issue),
        }
    )
