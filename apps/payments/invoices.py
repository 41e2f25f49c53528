# payments/invoices.py

"""
Invoice data, PDF rendering and persistence.

These steps run after the payment has been committed. Failures are
reported back to ``PaymentService`` which logs them as warnings; they never
undo the recorded payment or its invoice number.
"""

from io import BytesIO
from decimal import Decimal
import logging

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from core.utils import quantize_money, serialize_datetime
from payments.installments import paid_installment_count, next_unpaid_installment
from payments.models import Invoice, PLAN_EMI

logger = logging.getLogger(__name__)

INVOICE_DIRECTORY = 'invoices'


# =============================================================================
# INVOICE DATA
# =============================================================================

def emi_details(ledger, payment_transaction):
    """Installment summary of an EMI payment, or None"""
    if payment_transaction.plan_type != PLAN_EMI:
        return None

    config = ledger.installments_config or {}
    next_installment = next_unpaid_installment(config)
    return {
        'installment_number': payment_transaction.installment_number,
        'installment_count': config.get('installment_count'),
        'paid_installments': paid_installment_count(config),
        'next_installment_number': next_installment['installment_number'] if next_installment else None,
        'next_due_date': next_installment['due_date'] if next_installment else None,
    }


def generate_invoice_data(ledger, payment_transaction, invoice_number, history):
    """
    Assemble everything printed on an invoice.

    Args:
        ledger: Payment after the payment was applied
        payment_transaction: The transaction being invoiced
        invoice_number (str): Number issued for the transaction
        history: The ledger's transactions (any order)

    Returns:
        dict: JSON-serializable invoice data
    """
    previous = sorted(
        (t for t in history if t.pk != payment_transaction.pk),
        key=lambda t: t.paid_date
    )

    amount = quantize_money(payment_transaction.paid_amount)
    final_amount = amount + quantize_money(payment_transaction.special_charges) \
        - quantize_money(payment_transaction.discount)

    outstanding = ledger.get_outstanding()

    return {
        'tenant_id': ledger.tenant_id,
        'invoice_number': invoice_number,
        'invoice_date': serialize_datetime(timezone.now()),
        'payment_id': str(ledger.pk),
        'transaction_id': str(payment_transaction.pk),
        'student': {
            'id': str(ledger.student_id),
            'name': ledger.student_name,
            'email': getattr(ledger.student, 'email', ''),
        },
        'course': {
            'name': ledger.course_name,
            'type': ledger.course_type,
        },
        'payment': {
            'amount': str(amount),
            'paid_date': serialize_datetime(payment_transaction.paid_date),
            'payment_mode': payment_transaction.payment_mode,
            'payment_sub_type': payment_transaction.payment_sub_type,
            'payer_type': payment_transaction.payer_type,
            'payer_name': payment_transaction.payer_name,
            'received_by': payment_transaction.received_by,
            'discount': str(quantize_money(payment_transaction.discount)),
            'special_charges': str(quantize_money(payment_transaction.special_charges)),
        },
        'fees': {
            'course_fee': str(ledger.course_fee),
            'course_registration_fee': str(ledger.course_registration_fee),
            'student_registration_fee': str(ledger.student_registration_fee),
            'total_fees': str(ledger.get_total_fees()),
        },
        'history': [
            {
                'invoice_number': t.invoice_number,
                'paid_date': serialize_datetime(t.paid_date),
                'amount': str(quantize_money(t.paid_amount)),
                'payment_sub_type': t.payment_sub_type,
            }
            for t in previous
        ],
        'total_paid': str(quantize_money(ledger.received_amount)),
        'remaining_balance': str(outstanding.as_stored()) if outstanding.is_applicable else None,
        'emi_details': emi_details(ledger, payment_transaction),
        'subscription_month': payment_transaction.subscription_month or None,
        'final_amount': str(final_amount),
        'is_final_payment': ledger.is_fully_paid,
    }


# =============================================================================
# PDF RENDERING
# =============================================================================

def _money_row(label, value):
    return [label, value if value is not None else 'N/A']


def build_invoice_pdf(invoice_data):
    """Render invoice data to PDF bytes"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=36,
        leftMargin=36,
        topMargin=36,
        bottomMargin=24,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#4472C4'),
        spaceAfter=6,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        'InvoiceSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.grey,
        spaceAfter=16,
        alignment=TA_CENTER,
    )

    payment = invoice_data['payment']
    elements = [
        Paragraph(f"Invoice {invoice_data['invoice_number']}", title_style),
        Paragraph(
            f"{invoice_data['student']['name']} | {invoice_data['course']['name'] or 'Course'} | "
            f"Issued {invoice_data['invoice_date'][:10]}",
            subtitle_style
        ),
    ]

    summary = [
        ['Description', 'Amount'],
        _money_row(payment['payment_sub_type'] or 'Payment', payment['amount']),
        _money_row('Special charges', payment['special_charges']),
        _money_row('Discount', payment['discount']),
        _money_row('Amount due on this invoice', invoice_data['final_amount']),
        _money_row('Total paid to date', invoice_data['total_paid']),
        _money_row('Remaining balance', invoice_data['remaining_balance']),
    ]
    summary_table = Table(summary, colWidths=[4 * inch, 2 * inch])
    summary_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F5F5F5')]),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    elements.append(summary_table)

    emi = invoice_data.get('emi_details')
    if emi:
        elements.append(Spacer(1, 0.2 * inch))
        elements.append(Paragraph(
            f"Installment {emi['installment_number']} of {emi['installment_count'] or '?'}; "
            f"{emi['paid_installments']} paid",
            styles['Normal']
        ))

    if invoice_data['history']:
        elements.append(Spacer(1, 0.3 * inch))
        elements.append(Paragraph("Previous payments", styles['Heading3']))
        rows = [['Invoice', 'Date', 'Type', 'Amount']]
        for entry in invoice_data['history']:
            rows.append([
                entry['invoice_number'],
                (entry['paid_date'] or '')[:10],
                entry['payment_sub_type'] or '',
                entry['amount'],
            ])
        history_table = Table(rows, colWidths=[1.8 * inch, 1.2 * inch, 1.6 * inch, 1.4 * inch])
        history_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#D9E1F2')),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ALIGN', (3, 0), (3, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ]))
        elements.append(history_table)

    doc.build(elements)
    return buffer.getvalue()


def render_invoice_pdf(invoice_data):
    """
    Render and store the invoice PDF.

    Returns:
        str: URL of the stored document
    """
    content = build_invoice_pdf(invoice_data)
    path = default_storage.save(
        f"{INVOICE_DIRECTORY}/{invoice_data['invoice_number']}.pdf",
        ContentFile(content)
    )
    url = default_storage.url(path)
    logger.debug(f"Stored invoice {invoice_data['invoice_number']} at {path}")
    return url


# =============================================================================
# PERSISTENCE
# =============================================================================

def persist_invoice(invoice_data, url):
    """
    Store the invoice row of a transaction; repeated calls update it.

    Returns:
        Invoice
    """
    invoice, created = Invoice.objects.update_or_create(
        transaction_id=invoice_data['transaction_id'],
        defaults={
            'tenant_id': invoice_data['tenant_id'],
            'invoice_number': invoice_data['invoice_number'],
            'payment_id': invoice_data['payment_id'],
            'invoice_date': timezone.now(),
            'final_amount': Decimal(invoice_data['final_amount']),
            'invoice_data': invoice_data,
            'invoice_url': url or '',
        }
    )
    logger.info(f"{'Saved' if created else 'Updated'} invoice {invoice.invoice_number}")
    return invoice
