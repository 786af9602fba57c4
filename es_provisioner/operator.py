"""kopf handlers for `Index` objects.

The handlers only translate platform signals into `IndexReconciler` calls; the
reconciler itself arrives through `memo`, built by the app lifespan.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from es_provisioner.services.config import OperatorConfig
from es_provisioner.services.reconciliation_service import IndexReconciler
from es_provisioner.services.setup import SagaCancelledError


logger = logging.getLogger(__name__)

_RESOURCE = OperatorConfig()


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    config: OperatorConfig = memo.operator_config

    settings.posting.level = logging.WARNING
    settings.execution.max_workers = config.max_workers
    # The watch stream is re-opened (and every object re-listed) at this period,
    # which redelivers signals for objects whose last reconcile failed.
    settings.watching.server_timeout = config.watch_server_timeout_seconds


@kopf.on.event(_RESOURCE.group, _RESOURCE.version, _RESOURCE.plural)
def handle_index_event(
    event: dict[str, Any],
    body: kopf.Body,
    namespace: str,
    name: str,
    memo: kopf.Memo,
    **_: Any,
) -> None:
    if event.get("type") == "DELETED":
        logger.debug("Index %s/%s removed by the platform", namespace, name)
        return

    reconciler: IndexReconciler = memo.reconciler
    try:
        outcome = reconciler.reconcile(namespace=namespace, name=name)
    except SagaCancelledError:
        logger.warning("Reconcile of %s/%s interrupted by shutdown", namespace, name)
        raise
    except Exception as exc:
        kopf.warn(body, reason="ReconcileFailed", message=str(exc))
        raise

    logger.debug("Reconciled %s/%s: %s", namespace, name, outcome.value)
