import asyncio

import pytest

from app.features.scan.schemas.record import RecordKind
from app.features.scan.schemas.scan import AnalysisFlags
from app.features.scan.services.orchestration.orchestrator import (
    Failure,
    ScannerSet,
    Success,
    run_analysis,
    settle_all,
)
from app.features.scan.services.scanners.accessibility import normalize_axe_results
from app.platform.exceptions import CombinedScanFailure, ScanFailure, ScanValidationError



class TestSettleAll:
    @pytest.mark.asyncio
    async def test_captures_failures_without_cancelling_siblings(self, axe_results):
        finished = []

        async def ok():
            await asyncio.sleep(0.01)
            finished.append("ok")
            return normalize_axe_results("https://example.com", axe_results())

        async def boom():
            raise ScanFailure("launch failed")

        results = await settle_all({"accessibility": ok(), "performance": boom()})

        assert finished == ["ok"]
        assert isinstance(results[0], Success)
        assert isinstance(results[1], Failure)
        assert results[1].error.scanner == "performance"
        assert results[1].error.message == "launch failed"

    @pytest.mark.asyncio
    async def test_wraps_unexpected_exceptions(self):
        async def crash():
            raise KeyError("lhr")

        results = await settle_all({"performance": crash()})
        assert isinstance(results[0], Failure)
        assert isinstance(results[0].error, ScanFailure)

    @pytest.mark.asyncio
    async def test_runs_concurrently(self):
        started = asyncio.Event()

        async def first():
            started.set()
            return "first"

        async def second():
            # Only completes if first() is running at the same time
            await asyncio.wait_for(started.wait(), timeout=1)
            return "second"

        results = await settle_all({"a": second(), "b": first()})
        assert [r.report for r in results] == ["second", "first"]


class TestRunAnalysis:
    @pytest.mark.asyncio
    async def test_both_succeed_gives_combined_record(self, stub_scanner_set):
        result = await run_analysis("https://example.com", AnalysisFlags(), scanners=stub_scanner_set())

        record = result.record
        assert record.kind == RecordKind.combined
        assert record.accessibility_summary.score == 90
        assert record.performance_scores.performance == 92
        assert record.engine_info.accessibility.version == "4.9.1"
        assert record.engine_info.performance.version == "12.1.0"
        assert result.failures == []
        assert not result.is_partial

    @pytest.mark.asyncio
    async def test_performance_failure_keeps_accessibility(self, stub_scanner_set):
        scanners = stub_scanner_set(lighthouse_error=RuntimeError("Chrome crashed"))
        result = await run_analysis("https://example.com", AnalysisFlags(), scanners=scanners)

        assert result.record.kind == RecordKind.accessibility
        assert result.record.accessibility_summary is not None
        assert result.record.performance_scores is None
        assert result.record.engine_info.performance.version == "unknown"
        assert result.is_partial
        assert "Chrome crashed" in result.failures[0].message

    @pytest.mark.asyncio
    async def test_accessibility_failure_keeps_performance(self, stub_scanner_set):
        scanners = stub_scanner_set(axe_error=RuntimeError("Navigation timeout"))
        result = await run_analysis("https://example.com", AnalysisFlags(), scanners=scanners)

        assert result.record.kind == RecordKind.performance
        assert result.record.accessibility_summary is None
        assert result.record.accessibility_detail is None
        assert result.record.performance_metrics is not None

    @pytest.mark.asyncio
    async def test_all_failing_raises_combined_failure(self, stub_scanner_set):
        scanners = stub_scanner_set(
            axe_error=RuntimeError("Navigation timeout"),
            lighthouse_error=RuntimeError("Chrome crashed"),
        )
        with pytest.raises(CombinedScanFailure) as exc:
            await run_analysis("https://example.com", AnalysisFlags(), scanners=scanners)

        assert len(exc.value.failures) == 2
        assert "Navigation timeout" in exc.value.message
        assert "Chrome crashed" in exc.value.message

    @pytest.mark.asyncio
    async def test_disabled_scanner_is_skipped(self, stub_scanner_set):
        scanners = stub_scanner_set(lighthouse_error=RuntimeError("should not run"))
        result = await run_analysis(
            "https://example.com",
            AnalysisFlags(accessibility=True, performance=False),
            scanners=scanners,
        )

        assert scanners.calls == ["accessibility"]
        assert result.record.kind == RecordKind.accessibility
        assert result.failures == []
        assert result.record.engine_info.performance.version == "not-applicable"

    @pytest.mark.asyncio
    async def test_enhanced_flag_enriches_violations(self, stub_scanner_set):
        result = await run_analysis(
            "https://example.com",
            AnalysisFlags(performance=False, enhanced=True),
            scanners=stub_scanner_set(),
        )
        violation = result.record.accessibility_detail.violations[0]
        assert violation.priority_score == 3
        assert "1.4.3 Contrast (Minimum)" in violation.wcag_criteria

    @pytest.mark.asyncio
    async def test_no_scanner_enabled_is_a_validation_error(self):
        with pytest.raises(ScanValidationError):
            await run_analysis(
                "https://example.com",
                AnalysisFlags(accessibility=False, performance=False),
                scanners=ScannerSet(),
            )
