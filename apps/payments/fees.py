# payments/fees.py

"""
Fee resolution for payment ledgers.

A ledger's fees come from the student's course: the course price plus the
tenant's configured registration fees. Fees already present on a ledger
are never re-resolved, so manual adjustments survive.
"""

from decimal import Decimal
import logging

from academics.lookups import find_course, find_cohort
from core.models import PaymentSettings

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def ledger_fee_sum(ledger):
    """Sum of the three fee components, ignoring paid flags"""
    return (
        Decimal(ledger.course_fee or ZERO)
        + Decimal(ledger.course_registration_fee or ZERO)
        + Decimal(ledger.student_registration_fee or ZERO)
    )


def resolve_course_id(tenant_id, student):
    """
    Course of a student: the direct enrollment, else the cohort's course.

    Returns:
        Course id or None
    """
    if student.enrolled_course_id:
        return student.enrolled_course_id

    if student.cohort_id:
        cohort = find_cohort(tenant_id, student.cohort_id)
        if cohort and cohort.course_id:
            logger.debug(f"Course for student {student.pk} resolved from cohort {cohort.pk}")
            return cohort.course_id
        logger.warning(f"Cohort {student.cohort_id} of student {student.pk} has no course")

    return None


def resolve_fees(tenant_id, student, ledger=None):
    """
    Fee components of a student's ledger.

    Args:
        tenant_id (str): Tenant the student belongs to
        student: academics.Student
        ledger: Existing ledger, if any

    Returns:
        dict: course_fee, course_registration_fee, student_registration_fee,
              course_type, course_id, course_name, resolved (False when the
              existing ledger fees were returned unchanged)
    """
    if ledger is not None and ledger_fee_sum(ledger) > ZERO:
        return {
            'course_fee': ledger.course_fee,
            'course_registration_fee': ledger.course_registration_fee,
            'student_registration_fee': ledger.student_registration_fee,
            'course_type': ledger.course_type,
            'course_id': ledger.enrolled_course_id,
            'course_name': ledger.course_name,
            'resolved': False,
        }

    payment_settings = PaymentSettings.get_for_tenant(tenant_id)
    course_fee = ZERO
    course_type = payment_settings.default_course_type
    course_name = ''

    course_id = resolve_course_id(tenant_id, student)
    course = find_course(tenant_id, course_id) if course_id else None
    if course:
        course_fee = course.price or ZERO
        course_type = course.course_type or course_type
        course_name = course.name
    else:
        logger.warning(
            f"No course could be resolved for student {student.pk} (tenant {tenant_id}); "
            f"course fee defaults to 0"
        )
        course_id = None

    return {
        'course_fee': course_fee,
        'course_registration_fee': payment_settings.course_registration_fee,
        'student_registration_fee': payment_settings.student_registration_fee,
        'course_type': course_type,
        'course_id': course_id,
        'course_name': course_name,
        'resolved': True,
    }


def fee_fields(resolution):
    """Ledger field values for a fee resolution"""
    return {
        'course_fee': resolution['course_fee'],
        'course_registration_fee': resolution['course_registration_fee'],
        'student_registration_fee': resolution['student_registration_fee'],
        'course_type': resolution['course_type'],
        'enrolled_course_id': resolution['course_id'],
        'course_name': resolution['course_name'],
    }
