# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""HTTP client for the external attachment blob store (streaming)."""
from typing import Iterator, Optional
from urllib.parse import quote

import httpx

from teamflow.core.errors import (
    NotFoundError,
    StoreTimeoutError,
    StoreUnavailableError,
    ValidationFailedError,
)
from teamflow.core.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024


def _object_path(object_name: str) -> str:
    """Percent-encode an object name into a path under ``/objects/``."""
    segments = object_name.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise ValidationFailedError(
            f"Invalid object name '{object_name}'", reason="invalid_object_name",
        )
    return "/objects/" + "/".join(quote(segment, safe="") for segment in segments)


class BlobStoreClient:
    """PUT/GET/DELETE ``{base_url}/objects/{name}``; never part of compensation."""

    def __init__(self, base_url: str, timeout: float,
                 transport: Optional[httpx.BaseTransport] = None) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport,
        )

    def upload(self, object_name: str, content: bytes, content_type: str) -> None:
        try:
            resp = self._client.put(
                _object_path(object_name),
                content=content,
                headers={"Content-Type": content_type},
            )
        except httpx.TimeoutException as exc:
            raise StoreTimeoutError(f"Blob upload of '{object_name}' timed out", store="blob") from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Blob store unreachable: {exc}", store="blob") from exc
        if resp.status_code >= 400:
            raise StoreUnavailableError(
                f"Blob store answered {resp.status_code} for '{object_name}'", store="blob",
            )

    def download(self, object_name: str) -> Iterator[bytes]:
        """Open the object and return an iterator over its chunks."""
        request = self._client.build_request("GET", _object_path(object_name))
        try:
            resp = self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise StoreTimeoutError(f"Blob download of '{object_name}' timed out", store="blob") from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Blob store unreachable: {exc}", store="blob") from exc
        if resp.status_code == 404:
            resp.close()
            raise NotFoundError(f"Blob '{object_name}' not found")
        if resp.status_code >= 400:
            resp.close()
            raise StoreUnavailableError(
                f"Blob store answered {resp.status_code} for '{object_name}'", store="blob",
            )
        return self._iter_and_close(resp)

    @staticmethod
    def _iter_and_close(resp: httpx.Response) -> Iterator[bytes]:
        try:
            yield from resp.iter_bytes(CHUNK_SIZE)
        finally:
            resp.close()

    def delete(self, object_name: str) -> None:
        try:
            self._client.delete(_object_path(object_name))
        except httpx.HTTPError as exc:
            logger.warning("Blob delete failed for %s: %s", object_name, exc)

    def ping(self) -> bool:
        try:
            return self._client.get("/health").status_code == 200
        except httpx.HTTPError:
            return False

    def close(self) -> None:
        self._client.close()
