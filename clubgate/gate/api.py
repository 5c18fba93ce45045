"""HTTP client for the club's download/upload endpoints."""

from __future__ import annotations

import logging

import requests

from . import config
from .errors import MalformedRecord, SyncError
from .models import ApiResponse, parse_record

logger = logging.getLogger(__name__)


class GateApiClient:
    """Thin wrapper around the two remote endpoints.

    No retries are attempted; failures surface as :class:`SyncError` so staff
    can retry by hand.
    """

    def __init__(
        self,
        base_url: str = config.GATE_API_BASE_URL,
        api_key: str = config.GATE_API_KEY,
        timeout: float | None = config.GATE_API_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Api-Key": api_key,
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise SyncError(f"Network error: {exc}") from exc
        if not response.ok:
            logger.error("%s %s returned HTTP %s", method, url, response.status_code)
            raise SyncError(f"HTTP error! Status: {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise SyncError("Server returned a non-JSON response") from exc
        if not isinstance(body, dict) or body.get("status") != 200:
            message = body.get("message") if isinstance(body, dict) else None
            raise SyncError(message or "Server rejected the request")
        return body

    def download(self) -> ApiResponse:
        body = self._request("GET", "download.php")
        try:
            return parse_record(ApiResponse, body)
        except MalformedRecord as exc:
            raise SyncError(f"Downloaded member data is malformed: {exc}") from exc

    def upload(self, payload: dict) -> dict:
        return self._request("POST", "upload.php", json=payload)
