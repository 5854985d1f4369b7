import asyncio
import os
from types import TracebackType
from typing import Any

import httpx

from actual_installments.integration.base import LedgerStore, RemoteCallError
from actual_installments.integration.query import Query
from actual_installments.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


def _parse_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %.2f.", name, raw, default)
        return default


class ActualClient(LedgerStore):
    """Talks to an HTTP bridge that exposes the Actual Budget API one call per endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        base_value = base_url or os.getenv("ACTUAL_BRIDGE_URL") or ""
        self.base_url = base_value.rstrip("/") or None
        self.api_key = api_key or os.getenv("ACTUAL_BRIDGE_API_KEY")
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            self.headers["x-api-key"] = self.api_key
        self._client = client
        self._client_lock = asyncio.Lock()
        if timeout is None:
            timeout = _parse_env_float("REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
        self.timeout = max(0.0, timeout) or None

    async def __aenter__(self) -> "ActualClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            # Another task may have created it while we waited
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient()
                self._client = client
            return client

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.base_url:
            logger.error("[ACTUAL] Bridge URL missing.")
            raise RemoteCallError("ACTUAL_BRIDGE_URL is not configured")

        client = await self._get_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(
                method,
                url,
                headers=self.headers,
                json=payload if payload is not None else {},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:200]
            logger.error("[ACTUAL] %s %s failed with %s: %s", method, path, exc.response.status_code, detail)
            raise RemoteCallError(
                f"{method} {path} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("[ACTUAL] %s %s failed: %s", method, path, exc)
            raise RemoteCallError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return {}
        body = response.json()
        if isinstance(body, dict) and body.get("error"):
            logger.error("[ACTUAL] %s %s returned error: %s", method, path, body["error"])
            raise RemoteCallError(f"{method} {path} returned error: {body['error']}")
        return body if isinstance(body, dict) else {"data": body}

    async def init(self, data_dir: str, server_url: str | None, password: str | None) -> None:
        logger.info("[ACTUAL] Initialising session against %s.", server_url or "<bridge default>")
        await self._request(
            "POST",
            "/init",
            {"dataDir": data_dir, "serverURL": server_url, "password": password},
        )

    async def download_budget(self, budget_id: str, password: str | None = None) -> None:
        logger.info("[ACTUAL] Downloading budget %s.", budget_id)
        payload: dict[str, Any] = {}
        if password:
            payload["password"] = password
        await self._request("POST", f"/budgets/{budget_id}/download", payload)

    async def run_query(self, query: Query) -> dict[str, Any]:
        body = await self._request("POST", "/query", {"query": query.serialize()})
        data = body.get("data")
        if data is None:
            data = []
        elif isinstance(data, dict):
            data = list(data.values())
        logger.debug("[ACTUAL] Query on '%s' returned %d rows.", query.table, len(data))
        return {"data": data}

    async def create_schedule(
        self,
        fields: dict[str, Any],
        conditions: list[dict[str, Any]],
    ) -> str:
        body = await self._request(
            "POST",
            "/schedules",
            {"schedule": fields, "conditions": conditions},
        )
        schedule_id = body.get("data")
        if not schedule_id:
            raise RemoteCallError(f"Schedule '{fields.get('name')}' was created without an id")
        return str(schedule_id)

    async def update_schedule(
        self,
        fields: dict[str, Any],
        conditions: list[dict[str, Any]] | None,
        reset_next_date: bool = False,
    ) -> None:
        schedule_id = fields.get("id")
        if not schedule_id:
            raise ValueError("update_schedule needs fields['id']")
        await self._request(
            "PATCH",
            f"/schedules/{schedule_id}",
            {"schedule": fields, "conditions": conditions, "resetNextDate": reset_next_date},
        )

    async def update_transaction(self, transaction_id: str, fields: dict[str, Any]) -> None:
        await self._request("PATCH", f"/transactions/{transaction_id}", {"fields": fields})

    async def sync(self) -> None:
        logger.info("[ACTUAL] Syncing budget.")
        await self._request("POST", "/sync")

    async def shutdown(self) -> None:
        await self._request("POST", "/shutdown")
        logger.info("[ACTUAL] Session closed.")
