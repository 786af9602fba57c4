from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


def load_environment(*, env: Optional[str] = None, etc_dir: Path = Path("/etc")) -> Optional[Path]:
    """Load process settings from an env file before anything reads `os.environ`.

    `/etc/{ENV}.env` wins when it exists; otherwise `./.env` is tried. Variables
    already present in the environment are never overridden.

    Returns:
        The file that was loaded, or None when neither exists.
    """

    env = env if env is not None else os.getenv("ENV", "")
    candidates: list[Path] = []
    if env:
        candidates.append(etc_dir / f"{env}.env")
    candidates.append(Path.cwd() / ".env")

    for candidate in candidates:
        if candidate.is_file() and load_dotenv(candidate, override=False):
            logger.info("Loaded environment from %s (ENV=%r)", candidate, env)
            return candidate

    logger.warning("No env file found (ENV=%r); using process environment only", env)
    return None


@dataclass(frozen=True)
class OperatorConfig:
    """Kubernetes-side wiring: which objects are watched and where credentials go.

    This is runtime configuration, not part of the custom resource schema.
    """

    group: str = "es-provisioner.com.ramos"
    version: str = "v1"
    plural: str = "indices"
    finalizer_name: str = "index.es-provisioner.com.ramos/finalizer"
    secret_name: str = "es-provisioner-index-secret"
    config_map_key: str = "mapping.json"
    watch_namespace: Optional[str] = None
    max_workers: int = 4
    watch_server_timeout_seconds: int = 300

    @staticmethod
    def _int_from_env(name: str, default: int) -> int:
        raw = os.getenv(name)
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid {name}; must be an integer") from exc
        return value if value > 0 else default

    @staticmethod
    def from_env() -> "OperatorConfig":
        defaults = OperatorConfig()
        return OperatorConfig(
            finalizer_name=os.getenv("FINALIZER_NAME") or defaults.finalizer_name,
            secret_name=os.getenv("CREDENTIAL_SECRET_NAME") or defaults.secret_name,
            config_map_key=os.getenv("SCHEMA_CONFIG_MAP_KEY") or defaults.config_map_key,
            watch_namespace=os.getenv("WATCH_NAMESPACE") or None,
            max_workers=OperatorConfig._int_from_env("MAX_WORKERS", defaults.max_workers),
            watch_server_timeout_seconds=OperatorConfig._int_from_env(
                "WATCH_SERVER_TIMEOUT_SECONDS", defaults.watch_server_timeout_seconds
            ),
        )
