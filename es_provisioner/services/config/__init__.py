"""Process configuration for the operator.

Two settings objects are read from the environment at startup:

- ``SearchBackendConfig``: where the Elasticsearch cluster is and which admin
  credentials and retry budget to use.
- ``OperatorConfig``: which ``Index`` objects are watched, the finalizer and
  Secret names, and kopf worker settings.

``load_environment`` must run first so that values from ``/etc/{ENV}.env`` or
``./.env`` are visible to both.
"""

from es_provisioner.services.config.operator_config import OperatorConfig, load_environment
from es_provisioner.services.config.search_backend_config import SearchBackendConfig

__all__ = ["OperatorConfig", "SearchBackendConfig", "load_environment"]
