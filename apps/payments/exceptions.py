# payments/exceptions.py

"""
Payment error taxonomy.

Every error carries the HTTP ``status_code`` the views answer with.
Validation and balance errors are raised before anything is written;
conflicts and internal errors abort the surrounding database transaction.
"""

from django.core.exceptions import ValidationError, ObjectDoesNotExist


class PaymentError(Exception):
    """Base class of all payment errors"""
    status_code = 500

    def get_message(self):
        return str(self.args[0]) if self.args else self.__class__.__name__


# =============================================================================
# 400 - VALIDATION
# =============================================================================

class PaymentValidationError(PaymentError, ValidationError):
    """Missing or malformed request data"""
    status_code = 400

    def __init__(self, message, code=None, params=None):
        ValidationError.__init__(self, message, code=code, params=params)

    def get_message(self):
        return self.messages[0]


class InvalidPlanType(PaymentValidationError):
    pass


class InvalidAmount(PaymentValidationError):
    pass


class InvalidDate(PaymentValidationError):
    pass


class MissingFields(PaymentValidationError):

    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}", code='missing_fields')


class UnknownInstallment(PaymentValidationError):

    def __init__(self, installment_number):
        self.installment_number = installment_number
        super().__init__(f"Installment {installment_number} does not exist in the schedule",
                         code='unknown_installment')


class InvalidInstallmentSchedule(PaymentValidationError):
    pass


# =============================================================================
# 400 - BALANCE
# =============================================================================

class BalanceError(PaymentValidationError):
    """Amount cannot be applied to the ledger balance"""
    pass


class AmountExceedsBalance(BalanceError):

    def __init__(self, amount, max_allowed):
        self.amount = amount
        self.max_allowed = max_allowed
        self.already_paid = max_allowed <= 0
        if self.already_paid:
            message = "This student has already paid the full fee; no further payment is due"
        else:
            message = f"Payment amount ({amount}) cannot exceed the remaining balance ({max_allowed})"
        super().__init__(message, code='amount_exceeds_balance')


class ZeroFeeLedger(BalanceError):

    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(
            "Cannot record payment: total fees are not set for this student. "
            "Update the course fees first.",
            code='zero_fee_ledger'
        )


# =============================================================================
# 404 - NOT FOUND
# =============================================================================

class NotFoundError(PaymentError, ObjectDoesNotExist):
    status_code = 404


class StudentNotFound(NotFoundError):

    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(f"No student found with ID: {student_id}")


class LedgerNotFound(NotFoundError):

    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(f"No payment record found with ID: {payment_id}")


# =============================================================================
# 409 - CONFLICT
# =============================================================================

class ConflictError(PaymentError):
    status_code = 409


class DuplicateLedger(ConflictError):

    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(f"A payment record already exists for student {student_id}")


class StaleLedger(ConflictError):

    def __init__(self, payment_id, version):
        self.payment_id = payment_id
        self.version = version
        super().__init__(
            f"Payment record {payment_id} was modified by another request (version {version}); "
            "reload and try again"
        )


class AlreadyPaid(ConflictError):
    """Installment or subscription month has already been settled"""
    pass


# =============================================================================
# 500 - INTERNAL
# =============================================================================

class InternalError(PaymentError):
    status_code = 500


class InvoiceSequenceUnavailable(InternalError):

    def __init__(self, tenant_id, year_month):
        self.tenant_id = tenant_id
        self.year_month = year_month
        super().__init__(f"Invoice number could not be issued for {tenant_id} {year_month}")
