# payments/views.py

"""
JSON endpoints of the payment ledger.

The tenant comes from ``request.tenant_id`` (set by TenantMiddleware) and is
passed explicitly to the service layer. Payment errors are answered with
``{"success": false, "message": ...}`` and the error's status code.
"""

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
import json
import logging

from payments.exceptions import PaymentError
from payments.services import PaymentService
from payments.utils import format_ledger_for_response, format_transaction_for_response

logger = logging.getLogger(__name__)


def _error(message, status):
    return JsonResponse({"success": False, "message": message}, status=status)


def _user_id(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return str(user.pk)
    return None


# =============================================================================
# RECORD PAYMENT
# =============================================================================

@csrf_exempt
@require_http_methods(["POST"])
def record_payment(request):
    """
    Record a payment against a student's ledger.

    Responds 201 with the ledger, the transaction, the invoice number and
    any warnings from the best-effort steps.
    """
    tenant_id = getattr(request, 'tenant_id', None)
    if not tenant_id:
        return _error("Tenant could not be resolved for this request.", 401)

    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error("Invalid JSON data.", 400)

    try:
        result = PaymentService.record_payment(tenant_id, data, created_by_id=_user_id(request))
    except PaymentError as e:
        logger.info(f"Payment rejected for tenant {tenant_id}: {e.get_message()}")
        return _error(e.get_message(), e.status_code)
    except Exception as e:
        logger.error(f"Error recording payment for tenant {tenant_id}: {e}", exc_info=True)
        return _error("Server error while recording the payment.", 500)

    warnings = result['warnings']
    return JsonResponse({
        "success": True,
        "message": "Payment recorded successfully" + (" with warnings" if warnings else ""),
        "invoice_number": result['invoice_number'],
        "is_fully_paid": result['is_fully_paid'],
        "ledger": format_ledger_for_response(result['ledger']),
        "transaction": format_transaction_for_response(result['transaction']),
        "warnings": warnings,
    }, status=201)


# =============================================================================
# PAYMENT HISTORY
# =============================================================================

@require_http_methods(["GET"])
def payment_history(request):
    """Transactions of a ledger by ``paymentId`` or ``studentId``, newest first"""
    tenant_id = getattr(request, 'tenant_id', None)
    if not tenant_id:
        return _error("Tenant could not be resolved for this request.", 401)

    payment_id = request.GET.get('paymentId') or request.GET.get('payment_id')
    student_id = request.GET.get('studentId') or request.GET.get('student_id')

    try:
        transactions = PaymentService.get_payment_history(
            tenant_id, payment_id=payment_id, student_id=student_id
        )
    except PaymentError as e:
        return _error(e.get_message(), e.status_code)

    return JsonResponse({
        "success": True,
        "count": len(transactions),
        "transactions": [format_transaction_for_response(t) for t in transactions],
    })
