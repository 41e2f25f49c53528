# payments/ledger.py

"""
Ledger persistence.

- Lazy creation of a student's ledger on the first payment attempt
- Fee correction of ledgers created without fees
- Compare-and-swap writes guarded by ``Payment.version``
- Settlement of registration fees paid outside the ledger
"""

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.db.models import F
from django.utils import timezone
import logging

from academics.lookups import find_student
from core.utils import calculate_percentage
from payments.balance import compute_total_fees, outstanding_for
from payments.exceptions import (
    StudentNotFound, LedgerNotFound, DuplicateLedger, StaleLedger, PaymentValidationError,
)
from payments.fees import resolve_fees, fee_fields, ledger_fee_sum
from payments.models import Payment, PLAN_MONTHLY_SUBSCRIPTION, STATUS_COMPLETED, STATUS_PENDING
from payments.updates import LedgerUpdate

logger = logging.getLogger(__name__)

REGISTRATION_COMPONENTS = {
    'course': 'course_registration_fee_paid',
    'student': 'student_registration_fee_paid',
}


# =============================================================================
# LOOKUP & LAZY CREATION
# =============================================================================

def get_ledger(tenant_id, payment_id=None, student_id=None):
    """
    Ledger of a tenant by its id or by student id.

    Returns:
        Payment or None
    """
    queryset = Payment.objects.for_tenant(tenant_id).select_related('student')
    try:
        if payment_id:
            return queryset.filter(pk=payment_id).first()
        if student_id:
            return queryset.filter(student_id=student_id).first()
    except (ValidationError, ValueError):
        logger.debug(f"Malformed ledger lookup payment={payment_id!r} student={student_id!r}")
    return None


def get_or_create_ledger(tenant_id, student_id, plan_type, payment_option='', payment_id=None,
                         created_by_id=None):
    """
    Load the student's ledger, creating it with resolved fees if absent.

    Args:
        tenant_id (str): Tenant acting
        student_id: Student the payment is for
        plan_type (str): Canonical plan type for a new ledger
        payment_option (str): Plan label for a new ledger
        payment_id: Optional ledger id supplied by the caller
        created_by_id: User recording the payment

    Returns:
        tuple: (Payment, created)

    Raises:
        LedgerNotFound: payment_id given but unknown for the tenant
        PaymentValidationError: payment_id belongs to another student
        StudentNotFound: No such student for the tenant
        DuplicateLedger: A concurrent request created the ledger first
    """
    if payment_id:
        ledger = get_ledger(tenant_id, payment_id=payment_id)
        if ledger is None:
            raise LedgerNotFound(payment_id)
        if str(ledger.student_id) != str(student_id):
            raise PaymentValidationError(
                f"Payment record {payment_id} does not belong to student {student_id}",
                code='ledger_student_mismatch'
            )
        return ledger, False

    ledger = get_ledger(tenant_id, student_id=student_id)
    if ledger is not None:
        return ledger, False

    student = find_student(tenant_id, student_id)
    if student is None:
        raise StudentNotFound(student_id)

    resolution = resolve_fees(tenant_id, student)
    total = compute_total_fees(
        resolution['course_fee'],
        resolution['course_registration_fee'],
        resolution['student_registration_fee'],
    )

    try:
        with transaction.atomic():
            ledger = Payment.objects.create_for_tenant(
                tenant_id,
                student=student,
                student_name=student.get_full_name(),
                outstanding_amount=outstanding_for(plan_type, total, 0).as_stored(),
                plan_type=plan_type,
                payment_option=payment_option,
                created_by_id=created_by_id,
                **fee_fields(resolution)
            )
    except IntegrityError:
        logger.warning(f"Ledger for student {student_id} was created concurrently (tenant {tenant_id})")
        raise DuplicateLedger(student_id)

    logger.info(
        f"Created payment ledger {ledger.pk} for student {student_id} "
        f"(tenant {tenant_id}, total fees {total})"
    )
    return ledger, True


# =============================================================================
# COMPARE-AND-SWAP WRITES
# =============================================================================

def write_ledger(ledger, update):
    """
    Persist an update if the ledger is still at the version that was read.

    Args:
        ledger: Payment as read by the caller; refreshed on success
        update: LedgerUpdate (folded in fragment order) or a plain dict

    Raises:
        StaleLedger: Another write bumped the version in the meantime
    """
    values = update.fold() if isinstance(update, LedgerUpdate) else dict(update)
    if not values:
        return ledger

    rows = Payment.objects.filter(pk=ledger.pk, version=ledger.version).update(
        version=F('version') + 1,
        updated_at=timezone.now(),
        **values
    )
    if rows == 0:
        logger.warning(f"Stale write rejected for ledger {ledger.pk} at version {ledger.version}")
        raise StaleLedger(ledger.pk, ledger.version)

    ledger.refresh_from_db()
    return ledger


def _balance_fields(ledger, **overrides):
    """Outstanding, collection rate and status after a fee change"""
    fees = {
        'course_fee': ledger.course_fee,
        'course_registration_fee': ledger.course_registration_fee,
        'student_registration_fee': ledger.student_registration_fee,
        'course_registration_fee_paid': ledger.course_registration_fee_paid,
        'student_registration_fee_paid': ledger.student_registration_fee_paid,
    }
    fees.update({key: value for key, value in overrides.items() if key in fees})
    total = compute_total_fees(**fees)

    outstanding = outstanding_for(ledger.plan_type, total, ledger.received_amount)
    fields = {'outstanding_amount': outstanding.as_stored()}
    if ledger.plan_type != PLAN_MONTHLY_SUBSCRIPTION:
        fields['collection_rate'] = calculate_percentage(ledger.received_amount, total, cap=100)
        if ledger.received_amount > 0 or ledger.status == STATUS_COMPLETED:
            fully_paid = total > 0 and ledger.received_amount >= total
            fields['status'] = STATUS_COMPLETED if fully_paid else STATUS_PENDING
    return fields


# =============================================================================
# FEE CORRECTION
# =============================================================================

def ensure_ledger_fees(tenant_id, ledger):
    """
    Resolve and persist fees of a ledger whose fee components sum to zero.

    Ledgers with fees are returned untouched.

    Returns:
        Payment: The (possibly refreshed) ledger
    """
    if ledger_fee_sum(ledger) > 0:
        return ledger

    resolution = resolve_fees(tenant_id, ledger.student, ledger)
    fields = fee_fields(resolution)
    fields.update(_balance_fields(ledger, **fields))

    changed = {key: value for key, value in fields.items() if getattr(ledger, key) != value}
    if not changed:
        return ledger

    ledger = write_ledger(ledger, LedgerUpdate().with_fragment('fees', fields))
    logger.info(
        f"Corrected fees of ledger {ledger.pk}: course {ledger.course_fee}, "
        f"registration {ledger.course_registration_fee}/{ledger.student_registration_fee}, "
        f"outstanding {ledger.outstanding_amount}"
    )
    return ledger


def settle_registration_fee(tenant_id, student_id, component):
    """
    Mark a registration fee as settled outside the ledger.

    The component stops counting toward the ledger total and the
    outstanding amount is recomputed.

    Args:
        tenant_id (str): Tenant acting
        student_id: Student whose ledger is updated
        component (str): 'course' or 'student'

    Returns:
        Payment

    Raises:
        PaymentValidationError: Unknown component
        LedgerNotFound: The student has no ledger
    """
    flag = REGISTRATION_COMPONENTS.get(component)
    if flag is None:
        raise PaymentValidationError(
            f"Unknown registration fee component '{component}'. Use one of: "
            f"{', '.join(REGISTRATION_COMPONENTS)}"
        )

    ledger = get_ledger(tenant_id, student_id=student_id)
    if ledger is None:
        raise LedgerNotFound(student_id)

    if getattr(ledger, flag):
        return ledger

    fields = {flag: True}
    fields.update(_balance_fields(ledger, **fields))
    ledger = write_ledger(ledger, LedgerUpdate().with_fragment('fees', fields))
    logger.info(f"Settled {component} registration fee on ledger {ledger.pk} (tenant {tenant_id})")
    return ledger
