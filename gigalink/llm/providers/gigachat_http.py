"""
HTTP client for the GigaChat REST API.

Speaks GigaChat's OpenAI-like ``/chat/completions`` and ``/embeddings``
endpoints, performs the OAuth client-credentials exchange, retries transient
failures, and delivers Server-Sent Events to a per-chunk callback.

Dependencies: ``httpx``.  No vendor SDK needed.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable

import httpx

from gigalink.llm.providers.base import ChatClient

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://gigachat.devices.sberbank.ru/api/v1"
DEFAULT_AUTH_URL = "https://ngw.devices.sberbank.ru:9443/api/v2/oauth"
DEFAULT_SCOPE = "GIGACHAT_API_PERS"

# Refresh the token this long before GigaChat says it expires.
_TOKEN_EXPIRY_MARGIN_MS = 60_000


class GigaChatHTTPClient(ChatClient):
    """
    Blocking ``httpx`` transport for GigaChat.

    Parameters
    ----------
    credentials:
        Base64 authorization key used for the OAuth exchange.  May be empty
        when *access_token* is given.
    base_url:
        Base URL of the API.
    auth_url:
        OAuth endpoint that issues access tokens.
    scope:
        OAuth scope (``GIGACHAT_API_PERS``, ``GIGACHAT_API_B2B``, ...).
    access_token:
        Pre-issued bearer token.  Skips the OAuth exchange entirely.
    timeout:
        HTTP request timeout in seconds.
    max_retries:
        Number of automatic retries on transient HTTP errors (5xx, 429) and
        transport failures that happen before any data was delivered.
    verify_ssl:
        Verify TLS certificates.  GigaChat's endpoints use a national CA that
        is often missing from default trust stores.
    log_errors:
        Log every vendor error body at ERROR level.
    """

    def __init__(
        self,
        credentials: str = "",
        base_url: str = DEFAULT_BASE_URL,
        auth_url: str = DEFAULT_AUTH_URL,
        scope: str = DEFAULT_SCOPE,
        access_token: str | None = None,
        timeout: float = 120.0,
        max_retries: int = 2,
        verify_ssl: bool = True,
        log_errors: bool = False,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_url = auth_url
        self.scope = scope
        self.log_errors = log_errors
        self._credentials = credentials
        self._static_token = access_token
        self._token: str | None = None
        self._token_expires_at: int | None = None
        self._timeout = timeout
        self._max_retries = max_retries
        self._verify_ssl = verify_ssl

    # ------------------------------------------------------------------
    # ChatClient interface
    # ------------------------------------------------------------------

    def chat(self, parameters: dict[str, Any]) -> dict[str, Any] | None:
        callback = parameters.get("stream")
        if callable(callback):
            body = {k: v for k, v in parameters.items() if k != "stream"}
            body["stream"] = True
            return self._stream_request("/chat/completions", body, callback)
        return self._sync_request("/chat/completions", parameters)

    def embeddings(self, parameters: dict[str, Any]) -> dict[str, Any]:
        return self._sync_request("/embeddings", parameters)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _http(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, verify=self._verify_ssl)

    def _access_token(self) -> str | None:
        if self._static_token:
            return self._static_token
        if self._token and not self._token_expired():
            return self._token
        if not self._credentials:
            return None

        with self._http() as client:
            resp = client.post(
                self.auth_url,
                headers={
                    "Authorization": f"Basic {self._credentials}",
                    "RqUID": str(uuid.uuid4()),
                    "Accept": "application/json",
                },
                data={"scope": self.scope},
            )
            resp.raise_for_status()
            data = resp.json()

        self._token = data["access_token"]
        self._token_expires_at = data.get("expires_at")
        logger.debug("Obtained GigaChat access token (expires_at=%s)", self._token_expires_at)
        return self._token

    def _token_expired(self) -> bool:
        if self._token_expires_at is None:
            return False
        now_ms = int(time.time() * 1000)
        return now_ms >= self._token_expires_at - _TOKEN_EXPIRY_MARGIN_MS

    def _build_headers(self, stream: bool = False) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        token = self._access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    # ------------------------------------------------------------------
    # Error bodies
    # ------------------------------------------------------------------

    def _decode(self, resp: httpx.Response) -> dict[str, Any]:
        """Decode a reply, folding the HTTP status into error bodies."""
        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.is_success and isinstance(data, dict):
            if "status" in data:
                self._log_error_body(data)
            return data

        if not isinstance(data, dict):
            data = {"message": resp.text}
        data.setdefault("status", resp.status_code)
        self._log_error_body(data)
        return data

    def _log_error_body(self, data: dict[str, Any]) -> None:
        if self.log_errors:
            logger.error("GigaChat error reply: %s", data)

    @staticmethod
    def _retryable(status_code: int) -> bool:
        return status_code == 429 or status_code >= 500

    # ------------------------------------------------------------------
    # Non-streaming request
    # ------------------------------------------------------------------

    def _sync_request(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"

        attempt = 0
        refreshed = False
        while True:
            try:
                with self._http() as client:
                    resp = client.post(url, json=body, headers=self._build_headers())
            except httpx.TransportError as exc:
                if attempt < self._max_retries:
                    attempt += 1
                    logger.warning("GigaChat transport error (attempt %d): %s", attempt, exc)
                    continue
                raise

            if self._retryable(resp.status_code) and attempt < self._max_retries:
                attempt += 1
                logger.warning("GigaChat HTTP %d (attempt %d), retrying", resp.status_code, attempt)
                continue
            if resp.status_code == 401 and not refreshed and self._drop_token():
                refreshed = True
                logger.debug("GigaChat rejected the access token; requesting a new one")
                continue
            return self._decode(resp)

    def _drop_token(self) -> bool:
        """Forget an OAuth token the server rejected.  Returns whether one was dropped."""
        if self._token is None or self._static_token:
            return False
        self._token = None
        self._token_expires_at = None
        return True

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    def _stream_request(
        self,
        path: str,
        body: dict[str, Any],
        callback: Callable[[dict[str, Any]], Any],
    ) -> dict[str, Any] | None:
        url = f"{self.base_url}{path}"

        attempt = 0
        refreshed = False
        while True:
            delivered = 0
            try:
                with self._http() as client:
                    with client.stream(
                        "POST", url, json=body, headers=self._build_headers(stream=True)
                    ) as response:
                        if not response.is_success:
                            # Read the body so the connection is released.
                            response.read()
                            retryable = self._retryable(response.status_code)
                            if retryable and attempt < self._max_retries:
                                attempt += 1
                                logger.warning(
                                    "GigaChat HTTP %d (attempt %d), retrying",
                                    response.status_code,
                                    attempt,
                                )
                                continue
                            if response.status_code == 401 and not refreshed and self._drop_token():
                                refreshed = True
                                continue
                            return self._decode(response)

                        for chunk in self._parse_sse_stream(response):
                            delivered += 1
                            callback(chunk)
                        return None
            except httpx.TransportError as exc:
                # Replaying a half-delivered stream would duplicate chunks.
                if delivered == 0 and attempt < self._max_retries:
                    attempt += 1
                    logger.warning("GigaChat transport error (attempt %d): %s", attempt, exc)
                    continue
                raise

    def _parse_sse_stream(self, response: httpx.Response):
        """
        Yield decoded ``data:`` payloads from an SSE response.

        Each event has the form::

            data: {json}\\n\\n

        The sentinel ``data: [DONE]`` terminates the stream.
        """
        for line in response.iter_lines():
            line = line.rstrip("\r")
            if not line or not line.startswith("data:"):
                continue

            data_str = line[len("data:"):].strip()
            if data_str == "[DONE]":
                return

            try:
                data = json.loads(data_str)
            except json.JSONDecodeError:
                logger.warning("Failed to parse SSE data: %s", data_str[:200])
                continue
            yield data
