# payments/services.py

"""
Payment Operations

Records payments against a student's ledger and reads back the
transaction history. This is the only entry point views and commands use
to change a ledger.

Flow of ``record_payment``:
    1. Parse the request and normalize the plan (nothing written yet)
    2. Load or lazily create the ledger; correct zero fees
    3. Validate the amount against the remaining balance
    4. In one database transaction: issue the invoice number, log the
       transaction, update installments / subscription, schedule reminders
       and write the ledger (compare-and-swap on ``version``)
    5. Best effort, after commit: invoice PDF, confirmation email and the
       income mirror; failures are returned as warnings
"""

from datetime import timedelta

from django.db import transaction
from django.core.exceptions import ValidationError
from django.utils import timezone
import logging

from core.models import PaymentSettings
from finance.services import IncomeService
from payments.balance import apply_payment
from payments.exceptions import PaymentValidationError, LedgerNotFound
from payments.installments import (
    build_installment_schedule, load_installments_config, validate_installment_schedule,
    mark_installment_paid,
)
from payments.invoices import generate_invoice_data, render_invoice_pdf, persist_invoice
from payments.ledger import get_ledger, get_or_create_ledger, ensure_ledger_fees, write_ledger
from payments.models import PaymentTransaction, PLAN_EMI
from payments.notifications import send_payment_confirmation
from payments.reminders import schedule_reminders, stop_reminders
from payments.requests import PaymentRequest
from payments.subscriptions import load_subscription_config, advance_month
from payments.updates import LedgerUpdate
from payments.utils import next_invoice_number

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT SERVICE
# =============================================================================

class PaymentService:
    """
    Ledger payment operations.

    Every method takes the tenant explicitly.
    """

    @staticmethod
    def record_payment(tenant_id, payment_data, created_by_id=None):
        """
        Record a payment for a student.

        Args:
            tenant_id (str): Academy recording the payment
            payment_data (dict): Request body. Required: student_id, amount,
                payment_mode, payment_date, plan_type, received_by.
                EMI plans also need installment_number or emi_index.
            created_by_id: User recording the payment

        Returns:
            dict: ledger, transaction, invoice_number, is_fully_paid, warnings

        Raises:
            PaymentValidationError: Malformed request or balance violation (400)
            NotFoundError: Unknown student or ledger (404)
            ConflictError: Concurrent ledger change or already settled
                installment / month (409)
            InternalError: Invoice number could not be issued (500)
        """
        if not tenant_id:
            raise PaymentValidationError("tenant_id is required", code='missing_tenant')

        payment_settings = PaymentSettings.get_for_tenant(tenant_id)
        tz = payment_settings.get_timezone()
        payment_request = PaymentRequest.from_data(payment_data, tz)
        plan = payment_request.plan

        ledger, created = get_or_create_ledger(
            tenant_id,
            payment_request.student_id,
            plan.plan_type,
            payment_option=payment_request.payment_option,
            payment_id=payment_request.payment_id,
            created_by_id=created_by_id,
        )
        ledger = ensure_ledger_fees(tenant_id, ledger)

        installments_config = None
        if plan.is_installment_plan:
            installments_config = ledger.installments_config
            if not installments_config and payment_request.installments_config:
                installments_config = validate_installment_schedule(
                    load_installments_config(payment_request.installments_config)
                )
            elif not installments_config:
                installments_config = PaymentService._default_schedule(
                    ledger, payment_request.paid_at, payment_settings
                )

        subscription = None
        if plan.is_monthly:
            subscription = ledger.monthly_subscription or load_subscription_config(
                payment_request.monthly_subscription,
                payment_request.paid_at,
                tz,
                discounted=plan.is_discounted_subscription,
            )

        outcome = apply_payment(
            ledger,
            plan.plan_type,
            payment_request.amount,
            installment_number=payment_request.installment_number,
            requested_sub_type=payment_request.payment_sub_type,
        )

        with transaction.atomic():
            invoice_number = next_invoice_number(tenant_id, prefix=payment_settings.invoice_prefix)

            payment_transaction = PaymentTransaction.objects.create_for_tenant(
                tenant_id,
                payment=ledger,
                paid_amount=outcome.amount,
                paid_date=payment_request.paid_at,
                payment_time=payment_request.payment_time,
                payment_mode=payment_request.payment_mode,
                payer_type=payment_request.payer_type,
                payer_name=payment_request.payer_name,
                received_by=payment_request.received_by,
                notes=payment_request.notes,
                discount=payment_request.discount,
                special_charges=payment_request.special_charges,
                plan_type=plan.plan_type,
                payment_option=payment_request.payment_option,
                payment_sub_type=outcome.payment_sub_type,
                installment_number=payment_request.installment_number,
                emi_number=payment_request.installment_number if plan.plan_type == PLAN_EMI else None,
                subscription_month=subscription['current_month'] if subscription else '',
                invoice_number=invoice_number,
                created_by_id=created_by_id,
            )

            balance = outcome.fragment(payment_request.paid_at)
            balance.update({'plan_type': plan.plan_type, 'payment_option': payment_request.payment_option})
            update = LedgerUpdate().with_fragment('balance', balance)

            if installments_config:
                _, fields = mark_installment_paid(
                    installments_config,
                    payment_request.installment_number,
                    payment_request.paid_at,
                    outcome.amount,
                    payment_transaction.pk,
                )
                update = update.with_fragment('installments', fields)

            if subscription is not None:
                _, fields = advance_month(
                    subscription,
                    payment_request.paid_at,
                    outcome.amount,
                    payment_transaction.pk,
                    tz,
                    reminder_hour=payment_settings.reminder_hour,
                )
                update = update.with_fragment('subscription', fields)

            reminders = schedule_reminders(
                plan.plan_type,
                update.fold(until='reminders'),
                payment_request,
                outcome.will_be_fully_paid,
                timezone.now(),
                tz,
                payment_settings,
            )
            if reminders:
                update = update.with_fragment('reminders', reminders)
            if payment_request.stop_reminders:
                update = update.with_fragment('stop_reminders', stop_reminders())

            ledger = write_ledger(ledger, update)

        logger.info(
            f"Recorded payment {invoice_number} of {outcome.amount} for student "
            f"{payment_request.student_id} (tenant {tenant_id}, plan {plan.plan_type}, "
            f"received {ledger.received_amount})"
        )

        warnings = PaymentService._after_commit(ledger, payment_transaction, invoice_number)
        if warnings:
            logger.warning(f"Payment {invoice_number} recorded with warnings: {'; '.join(warnings)}")

        return {
            'ledger': ledger,
            'transaction': payment_transaction,
            'invoice_number': invoice_number,
            'is_fully_paid': outcome.will_be_fully_paid,
            'ledger_created': created,
            'warnings': warnings,
        }

    @staticmethod
    def _default_schedule(ledger, start, payment_settings):
        """
        Installment schedule spread over the enrolled course's duration.

        Returns None when the course duration is unknown; the payment is
        then recorded without installment tracking.
        """
        course = ledger.enrolled_course
        if course is None or not course.duration_days:
            logger.info(f"No course duration for ledger {ledger.pk}; installments are not tracked")
            return None

        return build_installment_schedule(
            start,
            start + timedelta(days=course.duration_days),
            ledger.get_total_fees(),
            reminder_days_before=payment_settings.installment_reminder_days_before,
        )

    @staticmethod
    def _after_commit(ledger, payment_transaction, invoice_number):
        """
        Invoice document, confirmation email and income mirror.

        Each step fails independently; the payment stays recorded.

        Returns:
            list: Warning messages of failed steps
        """
        warnings = []
        invoice_url = ''

        try:
            history = list(ledger.transactions.all())
            invoice_data = generate_invoice_data(ledger, payment_transaction, invoice_number, history)
            invoice_url = render_invoice_pdf(invoice_data)
            persist_invoice(invoice_data, invoice_url)

            payment_transaction.invoice_url = invoice_url
            payment_transaction.invoice_generated = True
            payment_transaction.invoice_generated_at = timezone.now()
            payment_transaction.save(
                update_fields=['invoice_url', 'invoice_generated', 'invoice_generated_at']
            )
        except Exception as e:
            logger.error(f"Invoice generation failed for {invoice_number}: {e}", exc_info=True)
            warnings.append(f"Invoice document could not be generated: {e}")

        try:
            send_payment_confirmation(
                ledger,
                payment_transaction,
                invoice_url=invoice_url,
                is_final_payment=ledger.is_fully_paid,
            )
        except Exception as e:
            logger.error(f"Confirmation email failed for {invoice_number}: {e}", exc_info=True)
            warnings.append(f"Confirmation email could not be sent: {e}")

        try:
            IncomeService.mirror_transaction(
                payment_transaction,
                student_name=ledger.student_name,
                course_name=ledger.course_name,
            )
        except Exception as e:
            logger.error(f"Income mirror failed for {invoice_number}: {e}", exc_info=True)
            warnings.append(f"Income record could not be created: {e}")

        return warnings

    @staticmethod
    def get_payment_history(tenant_id, payment_id=None, student_id=None):
        """
        Transactions of a ledger, newest first.

        Args:
            tenant_id (str): Academy reading the history
            payment_id: Ledger id
            student_id: Student id (used when payment_id is not given)

        Returns:
            list: PaymentTransaction instances sorted by paid_date descending

        Raises:
            PaymentValidationError: Neither id given
            LedgerNotFound: payment_id given but unknown for the tenant
        """
        if not tenant_id:
            raise PaymentValidationError("tenant_id is required", code='missing_tenant')
        if not payment_id and not student_id:
            raise PaymentValidationError("Either payment_id or student_id is required",
                                         code='missing_fields')

        queryset = PaymentTransaction.objects.for_tenant(tenant_id)
        if payment_id:
            if get_ledger(tenant_id, payment_id=payment_id) is None:
                raise LedgerNotFound(payment_id)
            queryset = queryset.filter(payment_id=payment_id)
        else:
            try:
                queryset = queryset.filter(payment__student_id=student_id)
            except (ValidationError, ValueError):
                logger.debug(f"Malformed student id {student_id!r} in history lookup")
                return []

        return list(queryset.order_by('-paid_date', '-created_at'))
