# managers.py

"""
Tenant-scoped managers.

Every academy shares one database; rows are partitioned by an explicit
``tenant_id`` column. Callers always pass the tenant they are acting for,
there is no thread-local "current tenant".
"""

from django.db import models
import logging

logger = logging.getLogger(__name__)


class TenantQuerySet(models.QuerySet):
    """QuerySet with an explicit tenant filter"""

    def for_tenant(self, tenant_id):
        """
        Restrict the queryset to one tenant.

        Raises:
            ValueError: If tenant_id is empty
        """
        if not tenant_id:
            raise ValueError("tenant_id is required for tenant-scoped queries")
        return self.filter(tenant_id=tenant_id)

    def without_tenant(self):
        """Legacy rows created before tenant isolation was introduced"""
        return self.filter(models.Q(tenant_id__isnull=True) | models.Q(tenant_id=''))


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """Manager exposing ``for_tenant`` on every model using it"""

    def create_for_tenant(self, tenant_id, **kwargs):
        if not tenant_id:
            raise ValueError("tenant_id is required to create tenant-scoped records")
        return self.create(tenant_id=tenant_id, **kwargs)
