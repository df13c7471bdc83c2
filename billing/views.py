import logging
from io import BytesIO
from django.http import HttpResponse
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
import openpyxl
from openpyxl.utils import get_column_letter
from admin_app.apps import get_event_bus
from utils.authentication.customPermissions import IsBillingRole, property_scope
from . import services
from .exceptions import BillingError, BillNotFound, BookingNotFound, ExternalServiceError
from .models import Bill
from .serializers import (
    BillOptionsSerializer, CheckoutSerializer, MergeBillsSerializer, ExternalBillSerializer,
    MarkPaidSerializer, BillSerializer, BillDetailSerializer, PreBillSerializer, PaymentLinkSerializer,
)

logger = logging.getLogger(__name__)


def billing_error_response(error):
    if isinstance(error, (BookingNotFound, BillNotFound)):
        return Response({"error": error.message}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(error, ExternalServiceError):
        return Response({"error": error.message}, status=status.HTTP_502_BAD_GATEWAY)
    return Response({"error": error.message}, status=status.HTTP_400_BAD_REQUEST)


def scoped_bills(request):
    bills = Bill.objects.filter(is_deleted=False).select_related('guest', 'booking')
    property_id = property_scope(request.user)
    if property_id:
        bills = bills.filter(booking__property_id=property_id)
    return bills


class BillPreviewAPIView(APIView):
    permission_classes = [IsBillingRole]

    def post(self, request):
        serializer = BillOptionsSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        options = serializer.validated_data
        try:
            data = services.preview_bill(options['booking_id'], options, request.user)
            return Response(data, status=status.HTTP_200_OK)
        except BillingError as e:
            return billing_error_response(e)
        except Exception as e:
            logger.error(f"Error occurred in BillPreviewAPIView POST: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class CheckoutAPIView(APIView):
    permission_classes = [IsBillingRole]

    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        options = serializer.validated_data
        try:
            bill = services.checkout_booking(options['booking_id'], options, request.user, get_event_bus())
            return Response(BillSerializer(bill).data, status=status.HTTP_200_OK)
        except BillingError as e:
            logger.info(f"Checkout rejected for booking {options['booking_id']}: {e.message}")
            return billing_error_response(e)
        except Exception as e:
            logger.error(f"Error occurred in CheckoutAPIView POST: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class MergeBillsAPIView(APIView):
    permission_classes = [IsBillingRole]

    def post(self, request):
        serializer = MergeBillsSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            bill = services.merge_bills(
                serializer.validated_data['booking_ids'],
                serializer.validated_data['primary_booking_id'],
                request.user,
                get_event_bus(),
            )
            return Response(BillSerializer(bill).data, status=status.HTTP_201_CREATED)
        except BillingError as e:
            return billing_error_response(e)
        except Exception as e:
            logger.error(f"Error occurred in MergeBillsAPIView POST: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class BillListAPIView(APIView):
    permission_classes = [IsBillingRole]

    def get(self, request):
        try:
            bills = scoped_bills(request)
            payment_status = request.query_params.get('payment_status')
            if payment_status:
                bills = bills.filter(payment_status=payment_status)
            serializer = BillSerializer(bills, many=True)
            return Response(serializer.data, status=status.HTTP_200_OK)
        except Exception as e:
            logger.error(f"Error occurred in BillListAPIView GET: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class BillDetailAPIView(APIView):
    permission_classes = [IsBillingRole]
    serializer_class = BillSerializer

    def get(self, request, bill_id):
        bill = scoped_bills(request).filter(id=bill_id).first()
        if not bill:
            return Response({"error": "Bill not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(self.serializer_class(bill).data, status=status.HTTP_200_OK)


class BillFullDetailsAPIView(BillDetailAPIView):
    serializer_class = BillDetailSerializer


class BookingBillAPIView(APIView):
    permission_classes = [IsBillingRole]

    def get(self, request, booking_id):
        bill = scoped_bills(request).filter(booking_id=booking_id, is_merged=False).first()
        if not bill:
            return Response({"error": "No bill found for this booking"}, status=status.HTTP_404_NOT_FOUND)
        return Response(BillSerializer(bill).data, status=status.HTTP_200_OK)


class PendingBillsAPIView(APIView):
    permission_classes = [IsBillingRole]

    def get(self, request):
        try:
            bills = services.get_pending_bills(property_scope(request.user))
            return Response({
                "count": bills.count(),
                "total_pending": str(services.pending_bills_total(bills)),
                "bills": BillSerializer(bills, many=True).data,
            }, status=status.HTTP_200_OK)
        except Exception as e:
            logger.error(f"Error occurred in PendingBillsAPIView GET: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class MarkBillPaidAPIView(APIView):
    permission_classes = [IsBillingRole]

    def patch(self, request, bill_id):
        serializer = MarkPaidSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            bill = services.mark_bill_paid(
                bill_id, serializer.validated_data['payment_method'], request.user, get_event_bus()
            )
            return Response(BillSerializer(bill).data, status=status.HTTP_200_OK)
        except BillingError as e:
            return billing_error_response(e)
        except Exception as e:
            logger.error(f"Error occurred in MarkBillPaidAPIView PATCH: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class BillExportAPIView(APIView):
    permission_classes = [IsBillingRole]

    columns = [
        "Bill ID", "Booking ID", "Guest", "Room Charges", "Food Charges", "Extra Charges",
        "Manual Charges", "Subtotal", "GST", "Service Charge", "Discount", "Total",
        "Advance Paid", "Balance", "Payment Status", "Payment Method", "Merged Bookings", "Created On",
    ]

    def get(self, request):
        try:
            fromdate = request.GET.get('fromdate')
            todate = request.GET.get('todate')
            bills = scoped_bills(request)
            if fromdate and todate:
                bills = bills.filter(created_on__date__gte=fromdate, created_on__date__lte=todate)

            workbook = openpyxl.Workbook()
            sheet = workbook.active
            sheet.title = "Bill Report"

            for col_num, header in enumerate(self.columns, 1):
                col_letter = get_column_letter(col_num)
                sheet[f"{col_letter}1"] = header
                sheet.column_dimensions[col_letter].width = max(12, len(header) + 2)

            for row_num, bill in enumerate(bills.order_by('created_on'), 2):
                row = [
                    bill.id,
                    bill.booking_id,
                    bill.guest.full_name if bill.guest else "",
                    bill.room_charges,
                    bill.food_charges,
                    bill.extra_charges,
                    bill.manual_charges_total,
                    bill.subtotal,
                    bill.gst_amount,
                    bill.service_charge_amount,
                    bill.discount_amount,
                    bill.total_amount,
                    bill.advance_paid,
                    bill.balance_amount,
                    bill.payment_status,
                    bill.payment_method or "",
                    ", ".join(str(booking_id) for booking_id in bill.merged_booking_ids or []),
                    bill.created_on.strftime('%Y-%m-%d %H:%M'),
                ]
                for col_num, value in enumerate(row, 1):
                    sheet.cell(row=row_num, column=col_num, value=value)

            buffer = BytesIO()
            workbook.save(buffer)
            buffer.seek(0)

            response = HttpResponse(buffer, content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
            response['Content-Disposition'] = 'attachment; filename=Bill_Report.xlsx'
            return response
        except Exception as e:
            logger.error(f"Error occurred in BillExportAPIView GET: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class SendPreBillAPIView(APIView):
    permission_classes = [IsBillingRole]

    def post(self, request):
        serializer = ExternalBillSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            prebill = services.send_prebill(
                serializer.validated_data['booking_id'],
                serializer.validated_data['bill_details'],
                request.user,
                get_event_bus(),
            )
            return Response({
                "success": True,
                "message": "Pre-bill sent successfully",
                "pre_bill": PreBillSerializer(prebill).data,
            }, status=status.HTTP_201_CREATED)
        except BillingError as e:
            return billing_error_response(e)
        except Exception as e:
            logger.error(f"Error occurred in SendPreBillAPIView POST: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class GeneratePaymentLinkAPIView(APIView):
    permission_classes = [IsBillingRole]

    def post(self, request):
        serializer = ExternalBillSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            payment_link = services.generate_payment_link(
                serializer.validated_data['booking_id'],
                serializer.validated_data['bill_details'],
                request.user,
                get_event_bus(),
            )
            return Response({
                "success": True,
                "payment_link": PaymentLinkSerializer(payment_link).data,
            }, status=status.HTTP_201_CREATED)
        except BillingError as e:
            return billing_error_response(e)
        except Exception as e:
            logger.error(f"Error occurred in GeneratePaymentLinkAPIView POST: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
