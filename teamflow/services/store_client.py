# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""HTTP client for one keyed record collection of a backing store."""
import time
from typing import Any, Optional

import httpx

from teamflow.core.errors import (
    ConflictError,
    NotFoundError,
    StoreTimeoutError,
    StoreUnavailableError,
    TeamflowError,
    ValidationFailedError,
)
from teamflow.core.logging import get_logger, request_id_var
from teamflow.metrics.prometheus import STORE_CALL_FAILURES, STORE_CALL_LATENCY

logger = get_logger(__name__)


def _error_message(resp: httpx.Response) -> tuple[str, Optional[str]]:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}", None
    if isinstance(body, dict):
        message = body.get("detail") or body.get("message") or str(body)
        return str(message), body.get("reason")
    return str(body), None


class HttpRecordStore:
    """CRUD over ``{base_url}/api/v1/{collection}`` with a bounded timeout.

    Every call either returns the store's answer or raises a ``TeamflowError``;
    transport failures and timeouts become ``StoreUnavailableError`` /
    ``StoreTimeoutError`` so callers can run their compensation path.
    """

    def __init__(
        self,
        store: str,
        base_url: str,
        collection: str,
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.name = f"{store}.{collection}"
        self._store = store
        self._path = f"/api/v1/{collection}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport,
        )

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        request_id = request_id_var.get()
        if request_id:
            headers["X-Request-ID"] = request_id
        if extra:
            headers.update(extra)
        return headers

    def _raise_for_status(self, method: str, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        message, reason = _error_message(resp)
        if resp.status_code == 404:
            raise NotFoundError(message)
        if resp.status_code in (409, 412):
            raise ConflictError(message, reason=reason or "version_mismatch")
        if resp.status_code in (400, 422):
            raise ValidationFailedError(message, reason=reason)
        STORE_CALL_FAILURES.labels(store=self._store, method=method, kind="server_error").inc()
        if resp.status_code >= 500:
            raise StoreUnavailableError(
                f"{self.name} answered {resp.status_code}: {message}", store=self._store,
            )
        raise TeamflowError(f"{self.name} answered {resp.status_code}: {message}")

    def _request(self, method: str, path: str, headers: Optional[dict[str, str]] = None,
                 **kwargs) -> httpx.Response:
        start = time.time()
        try:
            resp = self._client.request(method, path, headers=self._headers(headers), **kwargs)
        except httpx.TimeoutException as exc:
            STORE_CALL_FAILURES.labels(store=self._store, method=method, kind="timeout").inc()
            logger.warning("Store call timed out: %s %s%s", method, self.name, path)
            raise StoreTimeoutError(
                f"{self.name} did not answer {method} in time", store=self._store,
            ) from exc
        except httpx.HTTPError as exc:
            STORE_CALL_FAILURES.labels(store=self._store, method=method, kind="transport").inc()
            logger.warning("Store unreachable: %s %s: %s", method, self.name, exc)
            raise StoreUnavailableError(
                f"{self.name} unreachable: {exc}", store=self._store,
            ) from exc
        finally:
            STORE_CALL_LATENCY.labels(store=self._store, method=method).observe(time.time() - start)
        self._raise_for_status(method, resp)
        return resp

    # ── Read ──

    def get(self, record_id: int) -> dict[str, Any]:
        return self._request("GET", f"{self._path}/{record_id}").json()

    def list(self, **filters: Any) -> list[dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v is not None}
        body = self._request("GET", self._path, params=params).json()
        if isinstance(body, dict):
            return body.get("items", [])
        return body

    def ping(self) -> bool:
        try:
            resp = self._client.get("/health", headers=self._headers())
        except httpx.HTTPError:
            return False
        return resp.status_code == 200

    # ── Write ──

    def create(self, record: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", self._path, json=record).json()

    def update(self, record_id: int, patch: dict[str, Any],
               expected_version: Optional[int] = None) -> dict[str, Any]:
        headers = None
        if expected_version is not None:
            headers = {"If-Match": str(expected_version)}
        return self._request(
            "PATCH", f"{self._path}/{record_id}", headers=headers, json=patch,
        ).json()

    def delete(self, record_id: int) -> None:
        self._request("DELETE", f"{self._path}/{record_id}")

    def close(self) -> None:
        self._client.close()
