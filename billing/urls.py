from django.urls import path
from .views import *

urlpatterns = [
    path('checkout/', CheckoutAPIView.as_view(), name='billing-checkout'),
    path('merge/', MergeBillsAPIView.as_view(), name='billing-merge'),
    path('preview/', BillPreviewAPIView.as_view(), name='billing-preview'),
    path('bills/', BillListAPIView.as_view(), name='bill-list'),
    path('bills/pending/', PendingBillsAPIView.as_view(), name='bill-pending'),
    path('bills/export/', BillExportAPIView.as_view(), name='bill-export'),
    path('bills/booking/<int:booking_id>/', BookingBillAPIView.as_view(), name='bill-by-booking'),
    path('bills/<int:bill_id>/', BillDetailAPIView.as_view(), name='bill-detail'),
    path('bills/<int:bill_id>/details/', BillFullDetailsAPIView.as_view(), name='bill-full-details'),
    path('bills/<int:bill_id>/mark-paid/', MarkBillPaidAPIView.as_view(), name='bill-mark-paid'),
    path('send-prebill/', SendPreBillAPIView.as_view(), name='billing-send-prebill'),
    path('payment-link/generate/', GeneratePaymentLinkAPIView.as_view(), name='billing-payment-link'),
]
