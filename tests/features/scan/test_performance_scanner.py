import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.features.scan.schemas.scan import ScanOptions
from app.features.scan.services.scanners.performance import (
    PerformanceScanner,
    build_command,
    normalize_lighthouse_report,
    run_lighthouse,
)
from app.platform.exceptions import ScanFailure


class TestNormalizeLighthouseReport:
    def test_category_scores_are_rounded_percentages(self, lhr_factory):
        report = normalize_lighthouse_report("https://example.com", lhr_factory(performance=0.926, accessibility=0.88, seo=1.0, best_practices=0.754))
        assert report.scores.model_dump() == {
            "performance": 93,
            "accessibility": 88,
            "seo": 100,
            "best_practices": 75,
        }

    def test_null_or_missing_category_scores_zero(self, lhr_factory):
        lhr = lhr_factory(seo=None)
        del lhr["categories"]["best-practices"]
        report = normalize_lighthouse_report("https://example.com", lhr)
        assert report.scores.seo == 0
        assert report.scores.best_practices == 0

    def test_timing_metrics_default_to_zero(self, lhr_factory):
        report = normalize_lighthouse_report("https://example.com", lhr_factory())
        timing = report.metrics.timing

        assert timing.first_contentful_paint == 812.5
        assert timing.largest_contentful_paint == 1630.2
        assert timing.time_to_interactive == 2100.0
        assert timing.speed_index == 1200.0
        assert timing.total_blocking_time == 40.0
        assert timing.cumulative_layout_shift == 0

    def test_resource_breakdown_skips_aggregate_rows(self, lhr_factory):
        resources = normalize_lighthouse_report("https://example.com", lhr_factory()).metrics.resources

        assert set(resources.by_type) == {"script", "image", "document"}
        assert resources.by_type["script"].count == 5
        assert resources.by_type["script"].transfer_size == 30000
        assert resources.total_requests == 12
        assert resources.total_transfer_size == 50000

    def test_engine_and_final_url(self, lhr_factory):
        report = normalize_lighthouse_report("https://example.com", lhr_factory(version="12.1.0"))
        assert report.engine.name == "lighthouse"
        assert report.engine.version == "12.1.0"
        assert report.metrics.final_url == "https://example.com/"

    def test_missing_categories_is_a_scan_failure(self):
        with pytest.raises(ScanFailure) as exc:
            normalize_lighthouse_report("https://example.com", {"audits": {}})
        assert "invalid results" in exc.value.message


class TestBuildCommand:
    def test_command_targets_url_and_categories(self):
        command = build_command("https://example.com", ScanOptions(timeout=15000))

        assert command[1] == "https://example.com"
        assert "--output=json" in command
        assert "--output-path=stdout" in command
        assert "--only-categories=performance,accessibility,seo,best-practices" in command
        assert "--max-wait-for-load=15000" in command
        assert any(part.startswith("--chrome-flags=") and "--headless" in part for part in command)


def _process(returncode: int, stdout: bytes = b"", stderr: bytes = b""):
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    return process


class TestRunLighthouse:
    @pytest.mark.asyncio
    async def test_parses_json_output(self, lhr_factory):
        process = _process(0, stdout=json.dumps(lhr_factory()).encode())
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            lhr = await run_lighthouse("https://example.com", ScanOptions())

        assert lhr["lighthouseVersion"] == "12.1.0"
        process.kill.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_a_scan_failure(self):
        process = _process(1, stderr=b"Runtime error encountered: Chrome prevented page load")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ScanFailure) as exc:
                await run_lighthouse("https://example.com", ScanOptions())

        assert "Chrome prevented page load" in exc.value.message

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_scan_failure(self):
        process = _process(0, stdout=b"not json")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ScanFailure):
                await run_lighthouse("https://example.com", ScanOptions())

    @pytest.mark.asyncio
    async def test_missing_binary_is_a_scan_failure(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("lighthouse"))):
            with pytest.raises(ScanFailure) as exc:
                await run_lighthouse("https://example.com", ScanOptions())

        assert "could not launch" in exc.value.message

    @pytest.mark.asyncio
    async def test_process_is_killed_on_timeout(self):
        process = _process(None)
        process.communicate = AsyncMock(side_effect=asyncio.TimeoutError())
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ScanFailure) as exc:
                await run_lighthouse("https://example.com", ScanOptions())

        assert "did not finish" in exc.value.message
        process.kill.assert_called_once()


class TestPerformanceScanner:
    @pytest.mark.asyncio
    async def test_scan_normalizes_runner_output(self, lhr_factory):
        async def runner(url, options):
            return lhr_factory(performance=0.5)

        report = await PerformanceScanner(runner=runner).scan("https://example.com")
        assert report.scores.performance == 50

    @pytest.mark.asyncio
    async def test_runner_error_becomes_scan_failure(self):
        async def runner(url, options):
            raise RuntimeError("Unable to connect to Chrome")

        with pytest.raises(ScanFailure) as exc:
            await PerformanceScanner(runner=runner).scan("https://example.com")

        assert exc.value.scanner == "lighthouse"
        assert "Unable to connect to Chrome" in str(exc.value)
