# payments/urls.py
from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    # =============================================================================
    # PAYMENT RECORDING
    # =============================================================================
    path('record/', views.record_payment, name='record_payment'),

    # =============================================================================
    # HISTORY
    # =============================================================================
    path('history/', views.payment_history, name='payment_history'),
]
