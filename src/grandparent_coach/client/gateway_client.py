from __future__ import annotations

import httpx
from loguru import logger


class GatewayError(Exception):
    pass


class GatewayUnavailableError(GatewayError):
    """Gateway unreachable, timed out, or replied with a non-success status."""


class GatewayRateLimitedError(GatewayError):
    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class GatewayClient:
    """Thin async client for the coaching gateway. No automatic retries."""

    def __init__(
        self,
        base_url: str,
        *,
        caller_id: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if caller_id:
            headers["X-Caller-Id"] = caller_id
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def coach(self, messages: list[dict], context: dict | None = None) -> str:
        payload = {"messages": messages, "context": context or {}}
        data = await self._post("/coach", payload)
        return str(data.get("content", ""))

    async def summarize(
        self,
        *,
        messages: list[dict] | None = None,
        transcript: str | None = None,
        audience: str | None = None,
    ) -> str:
        payload: dict = {}
        if messages is not None:
            payload["messages"] = messages
        if transcript is not None:
            payload["transcript"] = transcript
        if audience is not None:
            payload["audience"] = audience
        data = await self._post("/summarize", payload)
        return str(data.get("content", ""))

    async def _post(self, path: str, payload: dict) -> dict:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as ex:
            logger.warning(f"Gateway unreachable ({path}): {type(ex).__name__}: {ex}")
            raise GatewayUnavailableError("Gateway unreachable") from ex

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.info(f"Gateway rate limited ({path}), retry after {retry_after}s")
            raise GatewayRateLimitedError("Too many requests", retry_after=retry_after)

        if response.is_error:
            logger.warning(f"Gateway error ({path}): HTTP {response.status_code}")
            raise GatewayUnavailableError(f"Gateway error: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as ex:
            raise GatewayUnavailableError("Gateway returned an invalid body") from ex
        if not isinstance(data, dict):
            raise GatewayUnavailableError("Gateway returned an invalid body")
        return data


def _parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return max(0, int(value))
    except ValueError:
        return None
