# payments/models.py

"""
Student Payment Ledger Models

- Payment: one running ledger per (tenant, student)
- PaymentTransaction: append-only log of individual payment events
- InvoiceSequence: per-tenant, per-month invoice counter
- Invoice: rendered invoice data and document URL

Installment schedules and monthly subscription state are embedded in the
ledger row as JSON so a payment event remains a single-row update.
"""

from django.db import models
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import logging

from core.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# CHOICES
# =============================================================================

PLAN_ONE_TIME = 'ONE_TIME'
PLAN_EMI = 'EMI'
PLAN_MONTHLY_SUBSCRIPTION = 'MONTHLY_SUBSCRIPTION'
PLAN_CUSTOM = 'CUSTOM'

PLAN_TYPE_CHOICES = [
    (PLAN_ONE_TIME, 'One Time'),
    (PLAN_EMI, 'EMI / Installments'),
    (PLAN_MONTHLY_SUBSCRIPTION, 'Monthly Subscription'),
    (PLAN_CUSTOM, 'Custom'),
]

STATUS_PENDING = 'Pending'
STATUS_PAID = 'Paid'
STATUS_COMPLETED = 'Completed'

REMINDER_NONE = 'NONE'
REMINDER_DAILY = 'DAILY'
REMINDER_WEEKLY = 'WEEKLY'
REMINDER_MONTHLY = 'MONTHLY'

REMINDER_FREQUENCY_CHOICES = [
    (REMINDER_NONE, 'None'),
    (REMINDER_DAILY, 'Daily'),
    (REMINDER_WEEKLY, 'Weekly'),
    (REMINDER_MONTHLY, 'Monthly'),
]


# =============================================================================
# LEDGER
# =============================================================================

class Payment(BaseModel):
    """
    Running payment ledger of one student.

    ``outstanding_amount`` holds ``max(0, total_fees - received_amount)`` for
    one-time, EMI and custom plans. Monthly subscriptions have no running
    balance; the column is kept at 0 for them and ``get_outstanding()``
    reports ``NotApplicable`` instead.

    Writes go through ``payments.ledger.write_ledger`` which compares and
    bumps ``version``.
    """

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    # -------------------------------------------------------------------------
    # STUDENT & COURSE
    # -------------------------------------------------------------------------

    student = models.ForeignKey(
        'academics.Student',
        verbose_name="Student",
        on_delete=models.PROTECT,
        related_name='payment_ledgers'
    )
    student_name = models.CharField("Student Name", max_length=150, blank=True)
    enrolled_course = models.ForeignKey(
        'academics.Course',
        verbose_name="Enrolled Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payment_ledgers'
    )
    course_name = models.CharField("Course Name", max_length=200, blank=True)
    course_type = models.CharField("Course Type", max_length=50, blank=True)

    # -------------------------------------------------------------------------
    # FEE COMPONENTS
    # -------------------------------------------------------------------------

    course_fee = models.DecimalField(
        "Course Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    course_registration_fee = models.DecimalField(
        "Course Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    student_registration_fee = models.DecimalField(
        "Student Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    course_registration_fee_paid = models.BooleanField(
        "Course Registration Fee Settled",
        default=False,
        help_text="Settled outside this ledger; excluded from the total"
    )
    student_registration_fee_paid = models.BooleanField(
        "Student Registration Fee Settled",
        default=False,
        help_text="Settled outside this ledger; excluded from the total"
    )

    # -------------------------------------------------------------------------
    # BALANCE
    # -------------------------------------------------------------------------

    received_amount = models.DecimalField(
        "Received Amount",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    outstanding_amount = models.DecimalField(
        "Outstanding Amount",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    collection_rate = models.DecimalField(
        "Collection Rate (%)",
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00')), MaxValueValidator(Decimal('100.00'))]
    )
    status = models.CharField(
        "Status",
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    last_payment_date = models.DateTimeField("Last Payment Date", null=True, blank=True)

    # -------------------------------------------------------------------------
    # PLAN
    # -------------------------------------------------------------------------

    plan_type = models.CharField(
        "Plan Type",
        max_length=30,
        choices=PLAN_TYPE_CHOICES,
        default=PLAN_ONE_TIME
    )
    payment_option = models.CharField(
        "Payment Option",
        max_length=100,
        blank=True,
        help_text="Plan label as shown to staff, e.g. 'One Time With Installments'"
    )
    installments_config = models.JSONField(
        "Installments Configuration",
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder
    )
    monthly_subscription = models.JSONField(
        "Monthly Subscription",
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder
    )

    # -------------------------------------------------------------------------
    # REMINDERS
    # -------------------------------------------------------------------------

    next_due_date = models.DateTimeField("Next Due Date", null=True, blank=True)
    next_reminder_date = models.DateTimeField("Next Reminder Date", null=True, blank=True, db_index=True)
    reminder_enabled = models.BooleanField("Reminders Enabled", default=False, db_index=True)
    reminder_frequency = models.CharField(
        "Reminder Frequency",
        max_length=10,
        choices=REMINDER_FREQUENCY_CHOICES,
        default=REMINDER_NONE
    )
    last_reminder_sent_at = models.DateTimeField("Last Reminder Sent", null=True, blank=True)
    reminders_count = models.PositiveIntegerField("Reminders Sent", default=0)

    # -------------------------------------------------------------------------
    # CONCURRENCY
    # -------------------------------------------------------------------------

    version = models.PositiveIntegerField("Version", default=0)

    class Meta:
        verbose_name = "Payment Ledger"
        verbose_name_plural = "Payment Ledgers"
        ordering = ['-updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'student'],
                name='unique_ledger_per_student',
            ),
        ]
        indexes = [
            models.Index(fields=['reminder_enabled', 'next_reminder_date']),
        ]

    def __str__(self):
        return f"Ledger {self.student_name or self.student_id} ({self.tenant_id})"

    def get_total_fees(self):
        """Fee total excluding registration components settled elsewhere"""
        from payments.balance import total_fees
        return total_fees(self)

    def get_outstanding(self):
        """Outstanding balance as ``FixedOutstanding`` or ``NotApplicable``"""
        from payments.balance import outstanding_for
        return outstanding_for(self.plan_type, self.get_total_fees(), self.received_amount)

    @property
    def is_fully_paid(self):
        if self.plan_type == PLAN_MONTHLY_SUBSCRIPTION:
            return False
        total = self.get_total_fees()
        return total > 0 and self.received_amount >= total


# =============================================================================
# TRANSACTION LOG
# =============================================================================

class PaymentTransaction(BaseModel):
    """
    One recorded payment event.

    Immutable once its invoice has been generated, except for the invoice
    URL backfill fields.
    """

    STATUS_CHOICES = [
        ('CONFIRMED', 'Confirmed'),
    ]

    PAYER_TYPE_CHOICES = [
        ('student', 'Student'),
        ('parent', 'Parent'),
        ('guardian', 'Guardian'),
        ('sponsor', 'Sponsor'),
        ('other', 'Other'),
    ]

    # Fields that may still change after the invoice has been generated
    INVOICE_BACKFILL_FIELDS = {'invoice_url', 'invoice_generated', 'invoice_generated_at', 'updated_at'}

    # -------------------------------------------------------------------------
    # LEDGER LINK
    # -------------------------------------------------------------------------

    payment = models.ForeignKey(
        Payment,
        verbose_name="Ledger",
        on_delete=models.PROTECT,
        related_name='transactions'
    )

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    paid_amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    paid_date = models.DateTimeField("Paid Date", db_index=True)
    payment_time = models.CharField("Payment Time", max_length=20, blank=True)
    payment_mode = models.CharField("Payment Mode", max_length=50)
    payer_type = models.CharField(
        "Payer Type",
        max_length=20,
        choices=PAYER_TYPE_CHOICES,
        default='student'
    )
    payer_name = models.CharField("Payer Name", max_length=150, blank=True)
    received_by = models.CharField("Received By", max_length=150)
    notes = models.TextField("Notes", blank=True)

    discount = models.DecimalField("Discount", max_digits=12, decimal_places=2, default=Decimal('0.00'))
    special_charges = models.DecimalField(
        "Special Charges",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )

    # -------------------------------------------------------------------------
    # PLAN LINKAGE
    # -------------------------------------------------------------------------

    plan_type = models.CharField("Plan Type", max_length=30, choices=PLAN_TYPE_CHOICES)
    payment_option = models.CharField("Payment Option", max_length=100, blank=True)
    payment_sub_type = models.CharField("Payment Sub Type", max_length=50, blank=True)
    installment_number = models.PositiveIntegerField("Installment Number", null=True, blank=True)
    emi_number = models.PositiveIntegerField("EMI Number", null=True, blank=True)
    subscription_month = models.CharField("Subscription Month", max_length=7, blank=True)

    # -------------------------------------------------------------------------
    # INVOICE
    # -------------------------------------------------------------------------

    invoice_number = models.CharField("Invoice Number", max_length=30, db_index=True)
    invoice_generated = models.BooleanField("Invoice Generated", default=False)
    invoice_generated_at = models.DateTimeField("Invoice Generated At", null=True, blank=True)
    invoice_url = models.CharField("Invoice URL", max_length=500, blank=True)

    status = models.CharField("Status", max_length=20, choices=STATUS_CHOICES, default='CONFIRMED')

    class Meta:
        verbose_name = "Payment Transaction"
        verbose_name_plural = "Payment Transactions"
        ordering = ['-paid_date']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'invoice_number'],
                name='unique_invoice_number_per_tenant',
            ),
        ]

    def __str__(self):
        return f"{self.invoice_number}: {self.paid_amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get('update_fields')
            locked = PaymentTransaction.objects.filter(pk=self.pk, invoice_generated=True).exists()
            if locked and (update_fields is None or not set(update_fields) <= self.INVOICE_BACKFILL_FIELDS):
                raise ValidationError(
                    f"Transaction {self.invoice_number} is invoiced; only the invoice URL may change"
                )
        super().save(*args, **kwargs)


# =============================================================================
# INVOICE NUMBERING
# =============================================================================

class InvoiceSequence(models.Model):
    """Last invoice sequence value issued for a tenant in a calendar month"""

    tenant_id = models.CharField("Tenant ID", max_length=64)
    year_month = models.CharField("Year-Month", max_length=6, help_text="YYYYMM")
    last_value = models.PositiveIntegerField("Last Value", default=0)

    updated_at = models.DateTimeField("Updated At", auto_now=True)

    class Meta:
        verbose_name = "Invoice Sequence"
        verbose_name_plural = "Invoice Sequences"
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'year_month'],
                name='unique_invoice_sequence_per_month',
            ),
        ]

    def __str__(self):
        return f"{self.tenant_id} {self.year_month}: {self.last_value}"


# =============================================================================
# INVOICES
# =============================================================================

class Invoice(BaseModel):
    """Invoice issued for one payment transaction"""

    invoice_number = models.CharField("Invoice Number", max_length=30, db_index=True)
    payment = models.ForeignKey(
        Payment,
        verbose_name="Ledger",
        on_delete=models.PROTECT,
        related_name='invoices'
    )
    transaction = models.OneToOneField(
        PaymentTransaction,
        verbose_name="Transaction",
        on_delete=models.PROTECT,
        related_name='invoice'
    )
    invoice_date = models.DateTimeField("Invoice Date")
    final_amount = models.DecimalField("Final Amount", max_digits=12, decimal_places=2)
    invoice_data = models.JSONField("Invoice Data", encoder=DjangoJSONEncoder)
    invoice_url = models.CharField("Invoice URL", max_length=500, blank=True)

    class Meta:
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        ordering = ['-invoice_date']

    def __str__(self):
        return self.invoice_number
