from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar, Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class SearchBackendConfig:
    """Runtime configuration for the Elasticsearch admin connection.

    `addresses` are base URLs including scheme, e.g. "https://es.internal:9200".
    Several addresses may be given in `ES_URL`, separated by commas.
    """

    addresses: tuple[str, ...]
    username: Optional[str] = None
    password: Optional[str] = None
    _DEFAULT_RETRIES: ClassVar[int] = 3
    _DEFAULT_TIMEOUT_SECONDS: ClassVar[float] = 30.0
    retries: int = _DEFAULT_RETRIES
    timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS

    @staticmethod
    def _parse_addresses(raw: str) -> tuple[str, ...]:
        addresses = tuple(a.strip().rstrip("/") for a in raw.split(",") if a.strip())
        for address in addresses:
            parsed = urlparse(address)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"Invalid backend address {address!r}; expected http(s)://host[:port]")
        return addresses

    @staticmethod
    def from_env_named(
        *,
        url_env: str = "ES_URL",
        username_env: str = "ES_USERNAME",
        password_env: str = "ES_PASSWORD",
        retries_env: str = "RETRIES",
        timeout_env: str = "ES_TIMEOUT_SECONDS",
    ) -> "SearchBackendConfig":
        raw_url = os.getenv(url_env)
        if not raw_url:
            raise ValueError(f"Missing required environment variable: {url_env}")

        addresses = SearchBackendConfig._parse_addresses(raw_url)
        if not addresses:
            raise ValueError(f"Missing required environment variable: {url_env}")

        retries = SearchBackendConfig._DEFAULT_RETRIES
        retries_raw = os.getenv(retries_env)
        if retries_raw:
            try:
                retries = int(retries_raw)
            except ValueError as exc:
                raise ValueError(f"Invalid {retries_env}; must be an integer") from exc
        if retries <= 0:
            retries = SearchBackendConfig._DEFAULT_RETRIES

        timeout_seconds = SearchBackendConfig._DEFAULT_TIMEOUT_SECONDS
        timeout_raw = os.getenv(timeout_env)
        if timeout_raw:
            try:
                timeout_seconds = float(timeout_raw)
            except ValueError as exc:
                raise ValueError(f"Invalid {timeout_env}; must be a number") from exc

        return SearchBackendConfig(
            addresses=addresses,
            username=os.getenv(username_env) or None,
            password=os.getenv(password_env) or None,
            retries=retries,
            timeout_seconds=timeout_seconds,
        )

    @staticmethod
    def from_env() -> "SearchBackendConfig":
        return SearchBackendConfig.from_env_named()
