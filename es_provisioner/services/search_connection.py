from __future__ import annotations

import base64
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, replace
from http import HTTPStatus
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from es_provisioner.services.config import SearchBackendConfig


logger = logging.getLogger(__name__)


class SearchConnectionError(RuntimeError):
    pass


# (method, url, body, headers, timeout) -> (status, payload)
Transport = Callable[[str, str, Optional[bytes], dict[str, str], float], tuple[int, bytes]]


def urllib_transport(
    method: str,
    url: str,
    body: Optional[bytes],
    headers: dict[str, str],
    timeout: float,
) -> tuple[int, bytes]:
    req = urllib.request.Request(url=url, data=body, method=method.upper(), headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return (resp.status, resp.read() or b"")
    except urllib.error.HTTPError as http_err:
        # HTTPError is also a valid response; read body for context.
        try:
            payload = http_err.read() or b""
        except OSError:
            payload = b""
        return (http_err.code, payload)


def retry_backoff(attempt: int) -> float:
    """Delay in seconds before retry number `attempt` (1-based)."""

    return float(2**attempt)


@dataclass(frozen=True)
class SearchConnectionOptions:
    addresses: tuple[str, ...]
    retries: int = 3
    username: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: float = 30.0

    @staticmethod
    def from_config(config: SearchBackendConfig) -> "SearchConnectionOptions":
        return SearchConnectionOptions(
            addresses=config.addresses,
            retries=config.retries,
            username=config.username,
            password=config.password,
            timeout_seconds=config.timeout_seconds,
        )


@dataclass(frozen=True)
class SearchResponse:
    status: int
    payload: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        if not self.payload:
            return {}
        try:
            return json.loads(self.payload.decode("utf-8"))
        except ValueError:
            return {}

    @property
    def error_type(self) -> Optional[str]:
        """The Elasticsearch `error.type`, e.g. "resource_already_exists_exception"."""

        parsed = self.json()
        if not isinstance(parsed, dict):
            return None
        error = parsed.get("error")
        if isinstance(error, dict):
            value = error.get("type")
            return value if isinstance(value, str) else None
        return None

    def details(self) -> str:
        try:
            return self.payload.decode("utf-8") if self.payload else ""
        except UnicodeDecodeError:
            return ""


class SearchConnection:
    """A client handle to the search backend.

    Requests are retried on transient HTTP statuses and transport errors with an
    exponentially growing delay, rotating through the configured addresses.
    """

    RETRY_ON_STATUS = frozenset(
        {
            HTTPStatus.TOO_MANY_REQUESTS,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            HTTPStatus.BAD_GATEWAY,
            HTTPStatus.SERVICE_UNAVAILABLE,
            HTTPStatus.GATEWAY_TIMEOUT,
        }
    )

    def __init__(
        self,
        options: SearchConnectionOptions,
        *,
        transport: Transport = urllib_transport,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._options = options
        self._transport = transport
        self._sleep = sleep

    @property
    def options(self) -> SearchConnectionOptions:
        return self._options

    def _headers(self, *, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        if self._options.username:
            token = f"{self._options.username}:{self._options.password or ''}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(token).decode("ascii")
        return headers

    def request(self, *, method: str, path: str, body: Optional[dict[str, Any]] = None) -> SearchResponse:
        if not path.startswith("/"):
            path = "/" + path

        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = self._headers(has_body=data is not None)
        addresses = self._options.addresses
        max_retries = max(self._options.retries, 0)

        last_error: Optional[str] = None
        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = retry_backoff(attempt)
                logger.warning(
                    "Backend retry %d/%d for %s %s after %s; sleeping %.0fs",
                    attempt,
                    max_retries,
                    method,
                    path,
                    last_error,
                    delay,
                )
                self._sleep(delay)

            url = f"{addresses[attempt % len(addresses)]}{path}"
            try:
                status, payload = self._transport(method.upper(), url, data, headers, self._options.timeout_seconds)
            except OSError as exc:
                last_error = f"transport error: {exc}"
                continue

            if status in self.RETRY_ON_STATUS:
                last_error = f"HTTP {status}"
                continue

            return SearchResponse(status=status, payload=payload)

        raise SearchConnectionError(
            f"Backend request failed after {max_retries + 1} attempts ({method} {path}): {last_error}"
        )

    def for_user(self, *, username: str, password: str) -> "SearchConnection":
        """Open an independent connection authenticated as another user (single attempt)."""

        options = replace(self._options, username=username, password=password, retries=1)
        return connect_with_retry(options, transport=self._transport, sleep=self._sleep)


def connect(
    options: SearchConnectionOptions,
    *,
    transport: Transport = urllib_transport,
    sleep: Callable[[float], None] = time.sleep,
) -> SearchConnection:
    if not options.addresses:
        raise SearchConnectionError("At least one backend address is required")
    for address in options.addresses:
        parsed = urlparse(address)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise SearchConnectionError(f"Invalid backend address: {address!r}")
    if options.password and not options.username:
        raise SearchConnectionError("A password was given without a username")

    logger.info("Backend connection to %s (username=%s)", ", ".join(options.addresses), options.username)
    return SearchConnection(options, transport=transport, sleep=sleep)


def connect_with_retry(
    options: SearchConnectionOptions,
    *,
    initial_delay: float = 5.0,
    transport: Transport = urllib_transport,
    sleep: Callable[[float], None] = time.sleep,
) -> SearchConnection:
    attempts = max(options.retries, 1)
    delay = initial_delay
    last_exc: Optional[SearchConnectionError] = None

    for attempt in range(attempts):
        if attempt > 0:
            logger.warning("Retrying backend connection after error: %s (attempt %d)", last_exc, attempt)
            sleep(delay)
            delay *= 2
        try:
            return connect(options, transport=transport, sleep=sleep)
        except SearchConnectionError as exc:
            last_exc = exc

    raise SearchConnectionError(f"After {attempts} attempts, last error: {last_exc}") from last_exc
