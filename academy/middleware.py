# academy/middleware.py

"""
Tenant resolution middleware.

Resolves the academy (tenant) a request acts for and stores it on
``request.tenant_id``. Views pass that value explicitly into the service
layer; nothing downstream reads tenant state from globals.

Resolution order:
1. ``X-Tenant-ID`` header (configurable via settings.TENANT_HEADER)
2. ``tenant_id`` stored in the session at login
3. None - tenant-scoped views answer 401
"""

import logging
from django.conf import settings

logger = logging.getLogger(__name__)


class TenantMiddleware:
    """Attach the resolved tenant id to every request"""

    # Paths that never carry a tenant
    SYSTEM_PATHS = ['/admin/', '/static/', '/media/']

    def __init__(self, get_response):
        self.get_response = get_response
        self.header_name = getattr(settings, 'TENANT_HEADER', 'HTTP_X_TENANT_ID')

    def __call__(self, request):
        request.tenant_id = self.resolve_tenant(request)
        return self.get_response(request)

    def resolve_tenant(self, request):
        if any(request.path.startswith(path) for path in self.SYSTEM_PATHS):
            return None

        tenant_id = request.META.get(self.header_name, '').strip()
        if tenant_id:
            logger.debug(f"Tenant resolved from header: {tenant_id}")
            return tenant_id

        session = getattr(request, 'session', None)
        if session is not None:
            tenant_id = session.get('tenant_id')
            if tenant_id:
                logger.debug(f"Tenant resolved from session: {tenant_id}")
                return tenant_id

        return None
