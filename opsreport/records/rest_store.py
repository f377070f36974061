"""
PostgREST-backed report store (hosted Postgres table exposed over REST).

Requests:
    list    GET    /rest/v1/{table}?select=*&order=created_at.desc
    create  POST   /rest/v1/{table}                 Prefer: return=representation
    update  PATCH  /rest/v1/{table}?id=eq.{id}      Prefer: return=representation
    delete  DELETE /rest/v1/{table}?id=eq.{id}      Prefer: return=representation

An empty representation on PATCH/DELETE means no row matched the id.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from opsreport.engine.errors import NotFound, SessionError, StoreUnavailable, ValidationRejected
from opsreport.records.store import ReportStore

logger = logging.getLogger("opsreport.records.rest_store")

# Status codes that mean "fix the input"
_REJECTED = {400, 409, 422}


class RestReportStore(ReportStore):
    """
    Report store over a PostgREST endpoint using a pooled ``httpx.AsyncClient``.

    Args:
        base_url: Project URL, e.g. ``https://abc.supabase.co``.
        api_key: Anonymous / service key sent as ``apikey``.
        table: Table name (default ``reports``).
        timeout: Per-request timeout in seconds.
        access_token: Optional coroutine function returning the signed-in
            user's bearer token (refreshed when expired); falls back to the api key.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    backend_name = "rest"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "reports",
        timeout: int = 15,
        access_token: Optional[Callable[[], Awaitable[Optional[str]]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._table = table
        self._api_key = api_key
        self._access_token = access_token
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/rest/v1",
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    def _headers(self, token: Optional[str], prefer: Optional[str] = None) -> Dict[str, str]:
        token = token or self._api_key
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _bearer(self, operation: str, record_id: Optional[str]) -> Optional[str]:
        if self._access_token is None:
            return None
        try:
            return await self._access_token()
        except SessionError as e:
            raise StoreUnavailable(
                f"Could not obtain a session token: {e.message}",
                operation=operation,
                record_id=record_id,
            ) from e

    async def _request(
        self,
        method: str,
        operation: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        record_id: Optional[str] = None,
    ) -> Any:
        token = await self._bearer(operation, record_id)
        try:
            response = await self._client.request(
                method,
                f"/{self._table}",
                params=params,
                json=json,
                headers=self._headers(token, "return=representation" if method != "GET" else None),
            )
        except httpx.HTTPError as e:
            raise StoreUnavailable(
                f"Store request failed: {e}",
                operation=operation,
                record_id=record_id,
                cause=type(e).__name__,
            ) from e

        self._raise_for_status(response, operation, record_id)
        try:
            return response.json() if response.content else []
        except ValueError as e:
            raise StoreUnavailable(
                "Store returned a non-JSON body",
                operation=operation,
                record_id=record_id,
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str, record_id: Optional[str]) -> None:
        status = response.status_code
        if status < 400:
            return

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        detail = body.get("message") if isinstance(body, dict) else str(body)

        context = dict(operation=operation, record_id=record_id, status_code=status)
        if status in _REJECTED:
            raise ValidationRejected(
                f"Store rejected {operation}: {detail}",
                validation_errors=[body] if body else [],
                **context,
            )
        if status == 404:
            raise NotFound(f"Store could not find target of {operation}: {detail}", **context)
        raise StoreUnavailable(f"Store {operation} failed with HTTP {status}: {detail}", **context)

    # -----------------------------------------------------------------------
    # Primitives
    # -----------------------------------------------------------------------

    async def _fetch_all(self) -> List[Dict[str, Any]]:
        rows = await self._request(
            "GET", "list", params={"select": "*", "order": "created_at.desc"}
        )
        if not isinstance(rows, list):
            raise StoreUnavailable("Store list did not return an array", operation="list")
        return rows

    async def _insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._request("POST", "create", json=payload)
        if isinstance(rows, list):
            if not rows:
                raise StoreUnavailable("Store accepted create but returned no row", operation="create")
            return rows[0]
        return rows

    async def _patch(self, report_id: str, payload: Dict[str, Any]) -> bool:
        rows = await self._request(
            "PATCH", "update", params={"id": f"eq.{report_id}"}, json=payload, record_id=report_id
        )
        return bool(rows)

    async def _remove(self, report_id: str) -> bool:
        rows = await self._request(
            "DELETE", "delete", params={"id": f"eq.{report_id}"}, record_id=report_id
        )
        return bool(rows)

    async def close(self) -> None:
        await self._client.aclose()
