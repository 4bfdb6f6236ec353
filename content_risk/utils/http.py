from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class ExternalServiceError(RuntimeError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class HttpClient:
    """Thin async wrapper over httpx for calls to external providers.

    Retries default to zero: callers degrade to heuristic-only results instead.
    """

    def __init__(self, timeout_seconds: float = 9.0, retries: int = 0) -> None:
        self.timeout = httpx.Timeout(timeout_seconds)
        self.retries = retries
        self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=False)

    async def close(self) -> None:
        await self._client.aclose()

    async def post(
        self,
        url: str,
        json: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout_seconds: Optional[float] = None,
    ) -> httpx.Response:
        return await self.request("POST", url, json=json, headers=headers, timeout_seconds=timeout_seconds)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        json: Optional[dict] = None,
        timeout_seconds: Optional[float] = None,
    ) -> httpx.Response:
        method = method.upper()
        timeout = httpx.Timeout(timeout_seconds) if timeout_seconds else self.timeout
        host = httpx.URL(url).host or ""

        last_exc: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            start = time.monotonic()
            try:
                response = await self._client.request(method, url, headers=headers, json=json, timeout=timeout)
                logger.debug(
                    "http call",
                    extra={
                        "host": host,
                        "status": response.status_code,
                        "duration_ms": int((time.monotonic() - start) * 1000),
                    },
                )
                return response
            except httpx.TimeoutException as exc:
                last_exc = ExternalServiceError(504, f"Request to {host} timed out.")
                logger.debug("http timeout", extra={"host": host, "error": str(exc), "attempt": attempt})
            except httpx.HTTPError as exc:
                last_exc = ExternalServiceError(502, f"Request to {host} failed: {exc}")
                logger.debug("http error", extra={"host": host, "error": str(exc), "attempt": attempt})
            if attempt < self.retries:
                await asyncio.sleep(0.2 * (attempt + 1))
        if last_exc:
            raise last_exc
        raise RuntimeError("http request failed")
