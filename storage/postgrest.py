"""
PostgREST (Supabase REST) record store.

GOVERNANCE:
- One owned HTTP client per store, no re-creation on failure
- Transport errors and 5xx answers become TransientStorageError
- No retries here; callers fall back to cached state
"""

import json
from typing import Any, Optional

import httpx
from httpx import Timeout

from core import DataIntegrityError, TransientStorageError, get_logger
from storage.base import RecordStore

logger = get_logger(__name__)


class PostgrestRecordStore(RecordStore):
    """Record store backed by a PostgREST endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_s: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=Timeout(timeout_s),
            transport=transport,
        )
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def check_connection(self) -> bool:
        """Probe the REST root and record the outcome."""
        try:
            response = self._client.get("/")
            self._connected = response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning(f"Record store probe failed: {e}")
            self._connected = False
        return self._connected

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _filters(match: Optional[dict[str, Any]]) -> dict[str, str]:
        return {k: f"eq.{v}" for k, v in (match or {}).items()}

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        body: Any = None,
        prefer: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else None
        content = json.dumps(body) if body is not None else None
        try:
            response = self._client.request(
                method, f"/{table}", params=params, content=content, headers=headers
            )
        except httpx.HTTPError as e:
            self._connected = False
            raise TransientStorageError(
                f"Record store request failed: {e}", table=table
            ) from e

        if response.status_code >= 500:
            self._connected = False
            raise TransientStorageError(
                f"Record store answered {response.status_code}",
                table=table,
                details={"status_code": response.status_code},
            )

        self._connected = True
        if response.status_code >= 400:
            raise DataIntegrityError(
                f"Record store rejected {method} on {table}: {response.text[:200]}",
                entity=table,
                details={"status_code": response.status_code},
            )

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        rows = self._request("POST", table, body=[record], prefer="return=representation")
        return rows[0] if rows else record

    def upsert(self, table: str, record: dict[str, Any], key: str) -> dict[str, Any]:
        rows = self._request(
            "POST",
            table,
            params={"on_conflict": key},
            body=[record],
            prefer="resolution=merge-duplicates,return=representation",
        )
        return rows[0] if rows else record

    def update(
        self, table: str, values: dict[str, Any], match: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return self._request(
            "PATCH",
            table,
            params=self._filters(match),
            body=values,
            prefer="return=representation",
        )

    def select(
        self,
        table: str,
        match: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", **self._filters(match)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", table, params=params)
