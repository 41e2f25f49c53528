# academics/lookups.py

"""
Tenant-scoped reference lookups used by the payment ledger.

Each lookup takes the tenant explicitly and returns None when the row is
absent, belongs to another tenant, or the id is malformed.
"""

from django.core.exceptions import ValidationError
import logging

from academics.models import Student, Course, Cohort

logger = logging.getLogger(__name__)


def _find(model, tenant_id, pk, select_related=()):
    if not tenant_id or not pk:
        return None
    queryset = model.objects.for_tenant(tenant_id)
    if select_related:
        queryset = queryset.select_related(*select_related)
    try:
        return queryset.filter(pk=pk).first()
    except (ValidationError, ValueError):
        logger.debug(f"Malformed {model.__name__} id {pk!r} for tenant {tenant_id}")
        return None


def find_student(tenant_id, student_id):
    """Student of a tenant, or None"""
    return _find(Student, tenant_id, student_id, select_related=('cohort',))


def find_course(tenant_id, course_id):
    """Course of a tenant (exposes ``price`` and ``course_type``), or None"""
    return _find(Course, tenant_id, course_id)


def find_cohort(tenant_id, cohort_id):
    """Cohort of a tenant (exposes ``course_id``), or None"""
    return _find(Cohort, tenant_id, cohort_id)
