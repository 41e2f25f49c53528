# payments/balance.py

"""
Ledger balance arithmetic and payment validation.

Nothing here touches the database: functions read fee and balance fields
from a ledger instance and return new values. ``payments.services`` folds
the result into the ledger update.
"""

from decimal import Decimal
from functools import total_ordering
import logging

from core.utils import quantize_money, calculate_percentage
from payments.exceptions import AmountExceedsBalance, ZeroFeeLedger, InvalidAmount
from payments.models import (
    PLAN_ONE_TIME, PLAN_EMI, PLAN_MONTHLY_SUBSCRIPTION,
    STATUS_PENDING, STATUS_COMPLETED,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


# =============================================================================
# OUTSTANDING AMOUNT
# =============================================================================

@total_ordering
class FixedOutstanding:
    """Remaining balance toward a fixed total (one-time, EMI, custom plans)"""

    __slots__ = ('amount',)
    is_applicable = True

    def __init__(self, amount):
        self.amount = quantize_money(max(Decimal(amount), ZERO))

    def __repr__(self):
        return f"FixedOutstanding({self.amount})"

    def __eq__(self, other):
        if isinstance(other, FixedOutstanding):
            return self.amount == other.amount
        return NotImplemented

    def __hash__(self):
        return hash(('fixed', self.amount))

    def __lt__(self, other):
        if not isinstance(other, FixedOutstanding):
            raise TypeError(f"Cannot compare a fixed outstanding amount with {other!r}")
        return self.amount < other.amount

    @property
    def is_settled(self):
        return self.amount == ZERO

    def as_stored(self):
        return self.amount


class NotApplicableOutstanding:
    """Monthly subscriptions: each month is a separate charge, there is no running balance"""

    __slots__ = ()
    is_applicable = False
    is_settled = False

    def __repr__(self):
        return "NotApplicable"

    def __eq__(self, other):
        return isinstance(other, NotApplicableOutstanding)

    def __hash__(self):
        return hash('not_applicable')

    def __lt__(self, other):
        raise TypeError("A subscription has no outstanding balance to compare")

    __le__ = __gt__ = __ge__ = __lt__

    def as_stored(self):
        # Column value kept for reports; never used in balance arithmetic
        return ZERO


NotApplicable = NotApplicableOutstanding()


def outstanding_for(plan_type, total, received):
    """Outstanding balance variant of a plan"""
    if plan_type == PLAN_MONTHLY_SUBSCRIPTION:
        return NotApplicable
    return FixedOutstanding(Decimal(total) - Decimal(received))


# =============================================================================
# FEE TOTALS
# =============================================================================

def compute_total_fees(course_fee, course_registration_fee, student_registration_fee,
                       course_registration_fee_paid=False, student_registration_fee_paid=False):
    """
    Chargeable fee total.

    Registration components whose paid flag is set were settled outside
    the ledger and are not charged again.
    """
    total = Decimal(course_fee or ZERO)
    if not course_registration_fee_paid:
        total += Decimal(course_registration_fee or ZERO)
    if not student_registration_fee_paid:
        total += Decimal(student_registration_fee or ZERO)
    return quantize_money(total)


def total_fees(ledger):
    """Chargeable total of a ledger"""
    return compute_total_fees(
        ledger.course_fee,
        ledger.course_registration_fee,
        ledger.student_registration_fee,
        ledger.course_registration_fee_paid,
        ledger.student_registration_fee_paid,
    )


def max_allowed_amount(ledger):
    """Largest payment the ledger accepts: max(0, total fees - received)"""
    remaining = total_fees(ledger) - Decimal(ledger.received_amount or ZERO)
    return quantize_money(max(remaining, ZERO))


def payment_sub_type(plan_type, will_be_fully_paid, installment_number=None, requested=''):
    """Transaction sub type label for a plan"""
    if plan_type == PLAN_EMI:
        return f"EMI {installment_number}" if installment_number else 'EMI'
    if plan_type == PLAN_ONE_TIME:
        return requested or ('Full Payment' if will_be_fully_paid else 'Partial Payment')
    if plan_type == PLAN_MONTHLY_SUBSCRIPTION:
        return ''
    return requested or ''


# =============================================================================
# APPLY PAYMENT
# =============================================================================

class BalanceOutcome:
    """Ledger balance after a payment has been applied"""

    def __init__(self, plan_type, total, previous_received, amount, collection_rate, sub_type):
        self.plan_type = plan_type
        self.total_fees = total
        self.amount = amount
        self.previous_received = previous_received
        self.received_amount = quantize_money(previous_received + amount)
        self.outstanding = outstanding_for(plan_type, total, self.received_amount)
        self.collection_rate = collection_rate
        self.payment_sub_type = sub_type

    @property
    def will_be_fully_paid(self):
        if self.plan_type == PLAN_MONTHLY_SUBSCRIPTION:
            return False
        return self.received_amount >= self.total_fees

    def fragment(self, paid_at):
        """Ledger values to write for the balance change"""
        values = {
            'received_amount': self.received_amount,
            'outstanding_amount': self.outstanding.as_stored(),
            'collection_rate': self.collection_rate,
            'last_payment_date': paid_at,
        }
        if self.outstanding.is_applicable:
            values['status'] = STATUS_COMPLETED if self.will_be_fully_paid else STATUS_PENDING
        return values


def validate_payment(ledger, plan_type, amount):
    """
    Check a payment amount against the ledger balance.

    Raises:
        InvalidAmount: amount <= 0
        ZeroFeeLedger: the ledger has no chargeable fees
        AmountExceedsBalance: amount > max(0, total fees - received)
    """
    if amount is None or amount <= ZERO:
        raise InvalidAmount("Payment amount must be greater than 0", code='invalid_amount')

    total = total_fees(ledger)
    if total <= ZERO:
        raise ZeroFeeLedger(ledger.student_id)

    # Subscriptions are billed month by month, not against the fee total
    if plan_type == PLAN_MONTHLY_SUBSCRIPTION:
        return total

    max_allowed = max_allowed_amount(ledger)
    if amount > max_allowed:
        logger.warning(
            f"Rejected payment of {amount} for ledger {ledger.pk}: max allowed {max_allowed}"
        )
        raise AmountExceedsBalance(amount, max_allowed)
    return total


def apply_payment(ledger, plan_type, amount, installment_number=None, requested_sub_type=''):
    """
    Validate a payment and compute the resulting balance.

    The ledger instance is not modified.

    Returns:
        BalanceOutcome
    """
    amount = quantize_money(amount)
    total = validate_payment(ledger, plan_type, amount)
    previous = quantize_money(ledger.received_amount or ZERO)
    received = previous + amount

    if plan_type == PLAN_MONTHLY_SUBSCRIPTION:
        collection_rate = ledger.collection_rate or ZERO
    else:
        collection_rate = calculate_percentage(received, total, cap=100)

    will_be_fully_paid = plan_type != PLAN_MONTHLY_SUBSCRIPTION and received >= total
    sub_type = payment_sub_type(plan_type, will_be_fully_paid, installment_number, requested_sub_type)

    return BalanceOutcome(plan_type, total, previous, amount, collection_rate, sub_type)
