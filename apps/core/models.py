# core/models.py

"""
Shared base model and per-tenant payment configuration.

Key Features:
- Explicit ``tenant_id`` column on every tenant-owned row
- Automatic created/updated timestamps
- Per-tenant payment settings with project-wide fallbacks
"""

from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import uuid
import logging

from academy.managers import TenantManager

logger = logging.getLogger(__name__)


# =============================================================================
# BASE MODEL - TENANT-OWNED DATA
# =============================================================================

class BaseModel(models.Model):
    """
    Abstract base for tenant-owned records.

    The tenant is never inferred from request or thread state: callers pass
    ``tenant_id`` explicitly when creating or querying rows. The column is
    nullable only so legacy rows can be loaded and repaired by the
    ``backfill_ledger_tenants`` command.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant_id = models.CharField(
        "Tenant ID",
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Academy (tenant) this record belongs to"
    )

    created_at = models.DateTimeField("Created At", db_index=True, editable=False)
    updated_at = models.DateTimeField("Updated At", db_index=True)

    created_by_id = models.CharField(
        "Created By ID",
        max_length=50,
        null=True,
        blank=True,
        help_text="ID of the user who recorded this entry"
    )

    objects = TenantManager()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        now = timezone.now()
        if not self.created_at:
            self.created_at = now
        self.updated_at = now

        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'updated_at' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['updated_at']

        super().save(*args, **kwargs)


# =============================================================================
# PAYMENT SETTINGS
# =============================================================================

class PaymentSettings(models.Model):
    """
    Payment configuration for one academy.

    Rows are created on first use from ``settings.PAYMENT_DEFAULTS``; an
    administrator may then adjust them per tenant.
    """

    # -------------------------------------------------------------------------
    # OWNERSHIP
    # -------------------------------------------------------------------------

    tenant_id = models.CharField("Tenant ID", max_length=64, unique=True)

    # -------------------------------------------------------------------------
    # REGISTRATION FEES
    # -------------------------------------------------------------------------

    course_registration_fee = models.DecimalField(
        "Course Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('1000.00')
    )
    student_registration_fee = models.DecimalField(
        "Student Registration Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('500.00')
    )
    default_course_type = models.CharField(
        "Default Course Type",
        max_length=50,
        default='Individual',
        help_text="Used when a student's course cannot be resolved"
    )

    # -------------------------------------------------------------------------
    # INVOICE NUMBERING
    # -------------------------------------------------------------------------

    invoice_prefix = models.CharField("Invoice Prefix", max_length=10, default='INV')

    # -------------------------------------------------------------------------
    # REMINDERS
    # -------------------------------------------------------------------------

    reminder_hour = models.PositiveSmallIntegerField(
        "Reminder Hour",
        default=9,
        help_text="Local hour at which reminders are scheduled"
    )
    installment_reminder_days_before = models.PositiveSmallIntegerField(
        "Installment Reminder Lead (days)",
        default=2
    )
    reminder_lead_days = models.PositiveSmallIntegerField(
        "Generic Reminder Lead (days)",
        default=3,
        help_text="Days before the next payment date for plans without a schedule"
    )
    timezone = models.CharField("Timezone", max_length=64, default='Asia/Kolkata')

    created_at = models.DateTimeField("Created At", auto_now_add=True)
    updated_at = models.DateTimeField("Updated At", auto_now=True)

    class Meta:
        verbose_name = "Payment Settings"
        verbose_name_plural = "Payment Settings"

    def __str__(self):
        return f"Payment settings ({self.tenant_id})"

    def clean(self):
        super().clean()
        errors = {}

        if self.course_registration_fee is not None and self.course_registration_fee < 0:
            errors['course_registration_fee'] = "Registration fee cannot be negative"

        if self.student_registration_fee is not None and self.student_registration_fee < 0:
            errors['student_registration_fee'] = "Registration fee cannot be negative"

        if self.reminder_hour is not None and self.reminder_hour > 23:
            errors['reminder_hour'] = "Reminder hour must be between 0 and 23"

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors['timezone'] = f"'{self.timezone}' is not a valid timezone"

        if errors:
            raise ValidationError(errors)

    def get_timezone(self):
        """Tenant-local timezone, falling back to the project TIME_ZONE"""
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Invalid timezone '{self.timezone}' for tenant {self.tenant_id}")
            return ZoneInfo(settings.TIME_ZONE)

    # -------------------------------------------------------------------------
    # PER-TENANT INSTANCE
    # -------------------------------------------------------------------------

    @staticmethod
    def get_defaults():
        """Project-wide defaults from ``settings.PAYMENT_DEFAULTS``"""
        configured = getattr(settings, 'PAYMENT_DEFAULTS', {})
        defaults = {}
        for field_name in ('course_registration_fee', 'student_registration_fee'):
            if field_name in configured:
                try:
                    defaults[field_name] = Decimal(str(configured[field_name]))
                except (InvalidOperation, ValueError, TypeError):
                    logger.warning(f"Ignoring invalid PAYMENT_DEFAULTS value for {field_name}")
        for field_name in ('default_course_type', 'invoice_prefix', 'reminder_hour',
                           'installment_reminder_days_before', 'reminder_lead_days', 'timezone'):
            if configured.get(field_name) not in (None, ''):
                defaults[field_name] = configured[field_name]
        return defaults

    @classmethod
    def get_for_tenant(cls, tenant_id):
        """Get or create the settings row of a tenant."""
        if not tenant_id:
            raise ValueError("tenant_id is required")
        instance, created = cls.objects.get_or_create(
            tenant_id=tenant_id,
            defaults=cls.get_defaults()
        )
        if created:
            logger.info(f"Created payment settings for tenant {tenant_id}")
        return instance
