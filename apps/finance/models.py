# finance/models.py

"""
Income ledger.

Every confirmed course payment is mirrored here as an income record so
the academy's income reports include course fees.
"""

from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import logging

from core.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# INCOME RECORDS
# =============================================================================

class IncomeRecord(BaseModel):
    """A single income entry of an academy"""

    STATUS_CHOICES = [
        ('Completed', 'Completed'),
        ('Pending', 'Pending'),
    ]

    COURSE_FEES = 'Course Fees'

    # -------------------------------------------------------------------------
    # AMOUNT & DATE
    # -------------------------------------------------------------------------

    date = models.DateTimeField("Date", db_index=True)
    amount = models.DecimalField(
        "Amount",
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )

    # -------------------------------------------------------------------------
    # CLASSIFICATION
    # -------------------------------------------------------------------------

    income_category = models.CharField("Income Category", max_length=100, default=COURSE_FEES)
    source_type = models.CharField("Source Type", max_length=50, default='Students')
    payment_mode = models.CharField("Payment Mode", max_length=50, default='Cash')
    status = models.CharField(
        "Status",
        max_length=20,
        choices=STATUS_CHOICES,
        default='Completed'
    )

    # -------------------------------------------------------------------------
    # PARTIES & REFERENCES
    # -------------------------------------------------------------------------

    received_by = models.CharField("Received By", max_length=150, blank=True)
    received_from = models.CharField("Received From", max_length=255, blank=True)
    description = models.TextField("Description", blank=True)
    receipt_number = models.CharField("Receipt Number", max_length=50, blank=True)

    source_transaction_id = models.CharField(
        "Source Transaction",
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Payment transaction this income mirrors"
    )

    class Meta:
        verbose_name = "Income Record"
        verbose_name_plural = "Income Records"
        ordering = ['-date']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'source_transaction_id'],
                condition=~models.Q(source_transaction_id=''),
                name='unique_income_per_transaction',
            ),
        ]

    def __str__(self):
        return f"{self.income_category}: {self.amount} on {self.date:%Y-%m-%d}"
