"""
Test configuration and fixtures for the scan API.

The database is pointed at a throwaway SQLite file before the app is
imported; browser engines are never launched, the scanners are fed canned
raw reports instead.
"""

import os
import tempfile
from typing import Any, Dict, Generator, List, Optional

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    if "postgresql://" in test_db_url and "asyncpg" not in test_db_url:
        test_db_url = test_db_url.replace("postgresql://", "postgresql+asyncpg://")
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = os.path.join(tempfile.mkdtemp(), "scan_test.db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

from app.features.scan.services.orchestration.orchestrator import ScannerSet, get_scanner_set  # noqa: E402
from app.features.scan.services.scanners.accessibility import AccessibilityScanner  # noqa: E402
from app.features.scan.services.scanners.performance import PerformanceScanner  # noqa: E402
from app.features.scan.services.scanners.wcag import enrich_violation  # noqa: E402


# ============================================================================
# Raw engine output builders
# ============================================================================

def make_issue(rule_id: str, impact: Optional[str] = "serious", nodes: int = 1, tags: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "id": rule_id,
        "impact": impact,
        "tags": tags if tags is not None else ["cat.color", "wcag2aa", "wcag143"],
        "description": f"Checks {rule_id}",
        "help": f"Fix {rule_id}",
        "helpUrl": f"https://dequeuniversity.com/rules/axe/4.9/{rule_id}",
        "nodes": [
            {
                "html": f'<div class="{rule_id}-{i}">text</div>',
                "target": [f".{rule_id}-{i}"],
                "failureSummary": "Fix any of the following",
                "any": [{"id": rule_id, "message": "failed"}],
                "all": [],
                "none": [],
            }
            for i in range(nodes)
        ],
    }


def make_axe_results(
    violations: int = 3,
    passes: int = 27,
    incomplete: int = 0,
    inapplicable: int = 0,
    impact: Optional[str] = "serious",
    version: str = "4.9.1",
) -> Dict[str, Any]:
    return {
        "url": "https://example.com",
        "violations": [make_issue(f"violation-{i}", impact=impact) for i in range(violations)],
        "passes": [make_issue(f"pass-{i}", impact=None, nodes=0) for i in range(passes)],
        "incomplete": [make_issue(f"incomplete-{i}", impact="moderate") for i in range(incomplete)],
        "inapplicable": [make_issue(f"inapplicable-{i}", impact=None, nodes=0) for i in range(inapplicable)],
        "testEngine": {"name": "axe-core", "version": version},
    }


def make_lhr(
    performance: Optional[float] = 0.92,
    accessibility: Optional[float] = 0.88,
    seo: Optional[float] = 1.0,
    best_practices: Optional[float] = 0.75,
    version: str = "12.1.0",
) -> Dict[str, Any]:
    return {
        "lighthouseVersion": version,
        "finalDisplayedUrl": "https://example.com/",
        "categories": {
            "performance": {"score": performance},
            "accessibility": {"score": accessibility},
            "seo": {"score": seo},
            "best-practices": {"score": best_practices},
        },
        "audits": {
            "first-contentful-paint": {"numericValue": 812.5},
            "largest-contentful-paint": {"numericValue": 1630.2},
            "interactive": {"numericValue": 2100.0},
            "speed-index": {"numericValue": 1200.0},
            "total-blocking-time": {"numericValue": 40.0},
            "resource-summary": {
                "details": {
                    "items": [
                        {"resourceType": "total", "requestCount": 12, "transferSize": 50000},
                        {"resourceType": "script", "requestCount": 5, "transferSize": 30000},
                        {"resourceType": "image", "requestCount": 6, "transferSize": 15000},
                        {"resourceType": "document", "requestCount": 1, "transferSize": 5000},
                        {"resourceType": "third-party", "requestCount": 3, "transferSize": 9000},
                    ]
                }
            },
        },
    }


# ============================================================================
# Scanner stubs
# ============================================================================

class StubScannerSet(ScannerSet):
    """Real scanners with canned engine output in place of the browser."""

    def __init__(
        self,
        axe_raw: Optional[Dict[str, Any]] = None,
        axe_error: Optional[Exception] = None,
        lhr: Optional[Dict[str, Any]] = None,
        lighthouse_error: Optional[Exception] = None,
    ):
        self.axe_raw = axe_raw if axe_raw is not None else make_axe_results()
        self.axe_error = axe_error
        self.lhr = lhr if lhr is not None else make_lhr()
        self.lighthouse_error = lighthouse_error
        self.calls: List[str] = []

    def accessibility(self, enhanced: bool = False):
        def runner(url, options):
            self.calls.append("accessibility")
            if self.axe_error:
                raise self.axe_error
            return self.axe_raw

        return AccessibilityScanner(runner=runner, enrichment=enrich_violation if enhanced else None)

    def performance(self):
        async def runner(url, options):
            self.calls.append("performance")
            if self.lighthouse_error:
                raise self.lighthouse_error
            return self.lhr

        return PerformanceScanner(runner=runner)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def axe_results():
    return make_axe_results


@pytest.fixture
def lhr_factory():
    return make_lhr


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Fresh TestClient per test; entering it runs the lifespan (table creation),
    leaving it disposes the engine.
    """
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def stub_scanners(test_app):
    """Install a StubScannerSet for the scan routes. Call it with StubScannerSet kwargs."""

    def install(**kwargs) -> StubScannerSet:
        scanners = StubScannerSet(**kwargs)
        test_app.dependency_overrides[get_scanner_set] = lambda: scanners
        return scanners

    yield install

    test_app.dependency_overrides.pop(get_scanner_set, None)


@pytest.fixture
def stub_scanner_set():
    """The StubScannerSet class, for tests that drive the orchestrator directly."""
    return StubScannerSet
