# payments/notifications.py

"""
Payment emails: confirmation after a recorded payment and due reminders.

Senders return False instead of raising when the student has no email
address; delivery errors propagate so the caller decides how to report them.
"""

from django.conf import settings
from django.core.mail import send_mail
import logging

from core.utils import localize_datetime

logger = logging.getLogger(__name__)


def _recipient(ledger):
    student = getattr(ledger, 'student', None)
    return (getattr(student, 'email', '') or '').strip()


def send_payment_confirmation(ledger, payment_transaction, invoice_url='', is_final_payment=False):
    """
    Email the student a confirmation of a recorded payment.

    Args:
        ledger: Payment with its student loaded
        payment_transaction: The recorded transaction
        invoice_url (str): Link to the invoice PDF, if rendered
        is_final_payment (bool): The payment settled the ledger

    Returns:
        bool: True if an email was sent
    """
    recipient = _recipient(ledger)
    if not recipient:
        logger.warning(f"No email address for student {ledger.student_id}; confirmation not sent")
        return False

    lines = [
        f"Dear {ledger.student_name or 'Student'},",
        "",
        f"We have received your payment of {payment_transaction.paid_amount} "
        f"({payment_transaction.payment_mode}) for {ledger.course_name or 'your course'}.",
        f"Invoice number: {payment_transaction.invoice_number}",
    ]
    if payment_transaction.payment_sub_type:
        lines.append(f"Payment: {payment_transaction.payment_sub_type}")
    if invoice_url:
        lines.append(f"Invoice: {invoice_url}")

    if is_final_payment:
        lines += ["", "Your fees are now fully paid. Thank you!"]
    else:
        outstanding = ledger.get_outstanding()
        if outstanding.is_applicable:
            lines += ["", f"Remaining balance: {outstanding.as_stored()}"]
        if ledger.next_due_date:
            lines.append(f"Next payment due: {ledger.next_due_date:%d %b %Y}")

    send_mail(
        subject=f"Payment received - {payment_transaction.invoice_number}",
        message="\n".join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
    )
    logger.info(f"Sent payment confirmation {payment_transaction.invoice_number} to {recipient}")
    return True


def send_payment_reminder(ledger, tz):
    """Email a payment reminder for a ledger. Returns True if sent."""
    recipient = _recipient(ledger)
    if not recipient:
        logger.warning(f"No email address for student {ledger.student_id}; reminder skipped")
        return False

    lines = [f"Dear {ledger.student_name or 'Student'},", ""]
    if ledger.next_due_date:
        due = localize_datetime(ledger.next_due_date, tz)
        lines.append(f"This is a reminder that a payment for {ledger.course_name or 'your course'} "
                     f"is due on {due:%d %b %Y}.")
    else:
        lines.append(f"This is a reminder about your pending payment for {ledger.course_name or 'your course'}.")

    outstanding = ledger.get_outstanding()
    if outstanding.is_applicable and not outstanding.is_settled:
        lines.append(f"Outstanding balance: {outstanding.as_stored()}")
    elif ledger.monthly_subscription:
        lines.append(f"Monthly fee: {ledger.monthly_subscription.get('monthly_fee')}")

    send_mail(
        subject="Payment reminder",
        message="\n".join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
    )
    return True
