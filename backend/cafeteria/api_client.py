"""
HTTP client for the external cafeteria backend.

Every response may come wrapped as {success, data, token, count, message};
list payloads arrive bare or under "data"/"items". unwrap() and as_list()
normalize both so callers only ever see the payload.

Failure mapping:
- 401                         -> SessionExpired
- any other non-2xx           -> BackendError (status + backend message)
- timeout / connection error  -> BackendUnavailable
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for failures talking to the backend."""
    pass


class BackendError(ApiError):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class BackendUnavailable(ApiError):
    pass


class SessionExpired(ApiError):
    pass


@dataclass
class Envelope:
    data: Any
    token: Optional[str] = None
    count: Optional[int] = None
    message: Optional[str] = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return f"Backend responded with HTTP {response.status_code}"


def unwrap(body: Any) -> Envelope:
    if isinstance(body, dict) and "success" in body:
        return Envelope(
            data=body.get("data"),
            token=body.get("token"),
            count=body.get("count"),
            message=body.get("message"),
        )
    return Envelope(data=body)


def as_list(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("data", "items"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


class ApiClient:
    """
    Thin wrapper over httpx.Client with bearer auth and envelope handling.

    with_token() returns a client sharing the same connection pool, so a
    per-request client costs nothing.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        *,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        self.client = client or httpx.Client(timeout=timeout, transport=transport)

    def with_token(self, token: Optional[str]) -> "ApiClient":
        return ApiClient(self.base_url, self.timeout, token=token, client=self.client)

    def close(self) -> None:
        self.client.close()

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Perform a request and raise the mapped error on failure."""
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, url, exc)
            raise BackendUnavailable("The backend did not respond in time")
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise BackendUnavailable("Could not reach the backend")

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if response.status_code == 401:
            raise SessionExpired(_error_message(response))
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("%s %s -> %s: %s", method, url, response.status_code, message)
            raise BackendError(response.status_code, message)
        return response

    def call(self, method: str, path: str, **kwargs) -> Envelope:
        response = self.send(method, path, **kwargs)
        if not response.content:
            return Envelope(data=None)
        try:
            body = response.json()
        except ValueError:
            raise BackendError(response.status_code, "Backend returned a non-JSON response")
        if isinstance(body, dict) and body.get("success") is False:
            raise BackendError(response.status_code, body.get("message") or body.get("error") or "Request failed")
        return unwrap(body)

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.call("GET", path, params=params).data

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> Any:
        return self.call("POST", path, json=json, **kwargs).data

    def put(self, path: str, json: Optional[Dict] = None) -> Any:
        return self.call("PUT", path, json=json).data

    def patch(self, path: str, json: Optional[Dict] = None) -> Any:
        return self.call("PATCH", path, json=json).data

    def delete(self, path: str) -> Any:
        return self.call("DELETE", path).data

    def get_bytes(self, path: str, params: Optional[Dict] = None) -> bytes:
        return self.send("GET", path, params=params).content
