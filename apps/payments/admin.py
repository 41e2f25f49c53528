# payments/admin.py

from django.contrib import admin
from .models import Payment, PaymentTransaction, InvoiceSequence, Invoice


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        'student_name', 'course_name', 'plan_type', 'received_amount',
        'outstanding_amount', 'collection_rate', 'status', 'tenant_id'
    ]
    list_filter = ['plan_type', 'status', 'reminder_enabled']
    search_fields = ['student_name', 'course_name', 'tenant_id']
    # Balances change only through PaymentService
    readonly_fields = [
        'received_amount', 'outstanding_amount', 'collection_rate', 'status',
        'installments_config', 'monthly_subscription', 'version',
        'last_reminder_sent_at', 'reminders_count'
    ]


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = [
        'invoice_number', 'paid_amount', 'paid_date', 'payment_mode',
        'payment_sub_type', 'invoice_generated', 'tenant_id'
    ]
    list_filter = ['plan_type', 'payment_mode', 'invoice_generated']
    search_fields = ['invoice_number', 'payer_name', 'received_by']

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ['tenant_id', 'year_month', 'last_value', 'updated_at']
    readonly_fields = ['tenant_id', 'year_month', 'last_value']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'invoice_date', 'final_amount', 'tenant_id']
    search_fields = ['invoice_number']
