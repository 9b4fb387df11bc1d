"""
Async client for the scan API, used by the dashboard and scripts.

Server-side failures (5xx, dropped connections) are retried with exponential
backoff; anything the server rejected as invalid (4xx) is raised at once.
"""
import asyncio
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from app.platform.logger import get_logger

logger = get_logger(__name__)


class DashboardApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_server_error(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class ScanDashboardClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001/api/v1",
        max_attempts: int = 2,
        backoff_base: float = 1.0,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ScanDashboardClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        last_error: Optional[DashboardApiError] = None

        for attempt in range(self.max_attempts):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                last_error = DashboardApiError(f"Network error: {e}")
            else:
                if response.status_code < 400:
                    return response.json()
                last_error = DashboardApiError(self._error_message(response), status_code=response.status_code)

            if not last_error.is_server_error or attempt == self.max_attempts - 1:
                break

            wait_time = self.backoff_base * (2 ** attempt)  # 1s, 2s, ...
            logger.warning(
                f"API call {method} {path} failed (attempt {attempt + 1}/{self.max_attempts}): "
                f"{last_error.message}. Retrying in {wait_time}s"
            )
            await asyncio.sleep(wait_time)

        logger.warning(f"API error: {last_error.message}")
        raise last_error

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return f"API error: {response.status_code}"
        return payload.get("error") or payload.get("message") or f"API error: {response.status_code}"

    # ── Scans ───────────────────────────────────

    async def run_accessibility_test(self, url: str, rules: Optional[list] = None, enhanced: bool = False) -> Dict[str, Any]:
        payload = {"url": url, "options": {"rules": rules} if rules else {}}
        body = await self._request("POST", "/test", params={"enhanced": str(enhanced).lower()}, json=payload)
        return body["data"]

    async def run_lighthouse_test(self, url: str) -> Dict[str, Any]:
        body = await self._request("POST", "/test/lighthouse", json={"url": url})
        return body["data"]

    async def run_analysis(
        self,
        url: str,
        axe: bool = True,
        lighthouse: bool = True,
        enhanced: bool = False,
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        params = {
            "axe": str(axe).lower(),
            "lighthouse": str(lighthouse).lower(),
            "enhanced": str(enhanced).lower(),
        }
        body = await self._request("POST", "/test/analyze", params=params, json={"url": url, "options": options or {}})
        return body["data"]

    # ── Reads ───────────────────────────────────

    async def get_test_result(self, record_id: str) -> Dict[str, Any]:
        body = await self._request("GET", f"/test/{record_id}")
        return body["data"]

    async def get_history(self, url: Optional[str] = None) -> Dict[str, Any]:
        path = f"/test/history/{quote(url, safe='')}" if url else "/test/history"
        body = await self._request("GET", path)
        return body["data"]


def latest_scores(record: Dict[str, Any]) -> Dict[str, int]:
    """
    Score cards for one record. Sections a partially failed scan did not
    produce show as 0 instead of hiding the rest of the results.
    """
    summary = record.get("accessibility_summary") or {}
    scores = record.get("performance_scores") or {}
    return {
        "accessibility": summary.get("score", scores.get("accessibility", 0)) or 0,
        "performance": scores.get("performance") or 0,
        "seo": scores.get("seo") or 0,
        "best_practices": scores.get("best_practices") or 0,
    }
