# payments/plans.py

"""
Payment plan normalization.

Staff pick a plan from a user-facing list; the ledger only knows four
canonical plan types. ``normalize_plan`` is applied to every request before
any validation or persistence.
"""

from payments.exceptions import InvalidPlanType
from payments.models import PLAN_ONE_TIME, PLAN_EMI, PLAN_MONTHLY_SUBSCRIPTION, PLAN_CUSTOM


# Selection -> canonical plan type
PLAN_SELECTIONS = {
    'ONE_TIME': PLAN_ONE_TIME,
    'ONE_TIME_WITH_INSTALLMENTS': PLAN_EMI,
    'EMI': PLAN_EMI,
    'MONTHLY_SUBSCRIPTION': PLAN_MONTHLY_SUBSCRIPTION,
    'MONTHLY_WITH_DISCOUNTS': PLAN_MONTHLY_SUBSCRIPTION,
    'CUSTOM': PLAN_CUSTOM,
}

# Labels stored on the ledger when the caller sends none
DEFAULT_PAYMENT_OPTIONS = {
    'ONE_TIME': 'One Time',
    'ONE_TIME_WITH_INSTALLMENTS': 'One Time With Installments',
    'EMI': 'EMI',
    'MONTHLY_SUBSCRIPTION': 'Monthly',
    'MONTHLY_WITH_DISCOUNTS': 'Monthly With Discounts',
    'CUSTOM': 'Custom',
}


class NormalizedPlan:
    """Canonical plan type plus the flags derived from the selection"""

    __slots__ = ('selection', 'plan_type', 'is_installment_plan', 'is_discounted_subscription')

    def __init__(self, selection, plan_type, is_installment_plan, is_discounted_subscription):
        self.selection = selection
        self.plan_type = plan_type
        self.is_installment_plan = is_installment_plan
        self.is_discounted_subscription = is_discounted_subscription

    def __eq__(self, other):
        if not isinstance(other, NormalizedPlan):
            return NotImplemented
        return (self.selection, self.plan_type) == (other.selection, other.plan_type)

    def __hash__(self):
        return hash((self.selection, self.plan_type))

    def __repr__(self):
        return f"NormalizedPlan({self.selection!r} -> {self.plan_type!r})"

    @property
    def is_monthly(self):
        return self.plan_type == PLAN_MONTHLY_SUBSCRIPTION

    @property
    def default_payment_option(self):
        return DEFAULT_PAYMENT_OPTIONS[self.selection]


def normalize_plan(selection):
    """
    Map a plan selection to its canonical type.

    Args:
        selection (str): One of ONE_TIME, ONE_TIME_WITH_INSTALLMENTS,
            MONTHLY_SUBSCRIPTION, MONTHLY_WITH_DISCOUNTS, EMI, CUSTOM

    Returns:
        NormalizedPlan

    Raises:
        InvalidPlanType: If the selection is not recognized
    """
    key = selection if isinstance(selection, str) else None
    if key not in PLAN_SELECTIONS:
        raise InvalidPlanType(
            f"Invalid plan type '{selection}'. Must be one of: {', '.join(PLAN_SELECTIONS)}",
            code='invalid_plan_type'
        )

    plan_type = PLAN_SELECTIONS[key]
    return NormalizedPlan(
        selection=key,
        plan_type=plan_type,
        is_installment_plan=plan_type == PLAN_EMI,
        is_discounted_subscription=key == 'MONTHLY_WITH_DISCOUNTS',
    )
