"""Setup (provisioning) services.

This package contains the sagas that *provision* and *tear down* the per-tenant
search resources (index, alias, role, user) behind an `Index` object.
"""

from es_provisioner.services.setup.search_tenant_index_backend import SearchTenantIndexBackend
from es_provisioner.services.setup.tenant_index_backend import (
    IndexRequestError,
    ProvisioningError,
    ProvisionParameters,
    ProvisionResult,
    ResourceIdentifiers,
    SagaCancelledError,
    TenantIndexBackend,
)

__all__ = [
    "IndexRequestError",
    "ProvisioningError",
    "ProvisionParameters",
    "ProvisionResult",
    "ResourceIdentifiers",
    "SagaCancelledError",
    "SearchTenantIndexBackend",
    "TenantIndexBackend",
]
