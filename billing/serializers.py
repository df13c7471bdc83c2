from decimal import Decimal, InvalidOperation
from rest_framework import serializers
from bookings.models import Booking
from .models import Bill, PreBill, PaymentLink, DISCOUNT_TYPE, DISCOUNT_APPLIES_TO

PAYMENT_METHODS = ('cash', 'upi', 'card', 'bank_transfer', 'razorpay', 'split')

# Bill amount columns are max_digits=12, decimal_places=2
MAX_AMOUNT = Decimal('9999999999.99')


def parse_amount(raw_value):
    """Decimal for a parseable finite value, None otherwise."""
    try:
        value = Decimal(str(raw_value).strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


class ManualChargeSerializer(serializers.Serializer):
    # Rows with a blank name or a non-positive amount are dropped by the calculator
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    amount = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_amount(self, value):
        amount = parse_amount(value) if value not in (None, '') else None
        if amount is not None and amount > MAX_AMOUNT:
            raise serializers.ValidationError(f"Amount cannot exceed {MAX_AMOUNT}")
        return value


class BillOptionsSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField()
    gst_on_rooms = serializers.BooleanField(default=False)
    gst_on_food = serializers.BooleanField(default=False)
    include_service_charge = serializers.BooleanField(default=False)
    discount_type = serializers.ChoiceField(choices=[choice[0] for choice in DISCOUNT_TYPE], default='none')
    discount_value = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    discount_applies_to = serializers.ChoiceField(
        choices=[choice[0] for choice in DISCOUNT_APPLIES_TO], default='total'
    )
    manual_charges = ManualChargeSerializer(many=True, required=False)

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', 'none')
        raw_value = attrs.get('discount_value')
        if discount_type == 'none' or raw_value in (None, ''):
            attrs['discount_value'] = None
            return attrs

        value = parse_amount(raw_value)
        if value is None:
            raise serializers.ValidationError({'discount_value': "Discount value must be a number"})
        if value < 0:
            raise serializers.ValidationError({'discount_value': "Discount value must be zero or more"})
        if value > MAX_AMOUNT:
            raise serializers.ValidationError({'discount_value': f"Discount value cannot exceed {MAX_AMOUNT}"})
        if discount_type == 'percentage' and value > 100:
            raise serializers.ValidationError({'discount_value': "Percentage discount cannot exceed 100"})
        attrs['discount_value'] = value
        return attrs


class CheckoutSerializer(BillOptionsSerializer):
    payment_status = serializers.ChoiceField(choices=['paid', 'pending'], default='paid')
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False, allow_null=True)
    cash_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    online_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    pending_reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    skip_pre_bill = serializers.BooleanField(default=False)
    send_whatsapp = serializers.BooleanField(default=False)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get('payment_status') == 'paid' and not attrs.get('payment_method'):
            raise serializers.ValidationError({'payment_method': "Payment method is required for a paid checkout"})
        return attrs


class MergeBillsSerializer(serializers.Serializer):
    booking_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    primary_booking_id = serializers.IntegerField()

    def validate(self, attrs):
        booking_ids = list(dict.fromkeys(attrs['booking_ids']))
        if len(booking_ids) < 2:
            raise serializers.ValidationError({'booking_ids': "At least 2 bookings are required to merge"})
        if attrs['primary_booking_id'] not in booking_ids:
            raise serializers.ValidationError(
                {'primary_booking_id': "Primary booking must be one of the bookings being merged"}
            )
        attrs['booking_ids'] = booking_ids
        return attrs


class ExternalBillSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField()
    bill_details = serializers.DictField(required=False, default=dict)


class MarkPaidSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS)


class BillSerializer(serializers.ModelSerializer):
    guest_name = serializers.CharField(source='guest.full_name', read_only=True, default=None)
    guest_phone = serializers.CharField(source='guest.phone', read_only=True, default=None)

    class Meta:
        model = Bill
        fields = [
            'id', 'booking', 'guest', 'guest_name', 'guest_phone', 'room_charges', 'food_charges',
            'extra_charges', 'manual_charges', 'manual_charges_total', 'subtotal', 'gst_rate', 'gst_amount',
            'gst_on_rooms', 'gst_on_food', 'service_charge_rate', 'service_charge_amount',
            'include_service_charge', 'discount_type', 'discount_value', 'discount_applies_to',
            'discount_amount', 'total_amount', 'advance_paid', 'balance_amount', 'cash_amount',
            'online_amount', 'change_due', 'payment_status', 'payment_method', 'paid_at', 'due_date',
            'pending_reason', 'merged_booking_ids', 'is_merged', 'created_on', 'updated_on',
        ]


class BookingSummarySerializer(serializers.ModelSerializer):
    room_number = serializers.CharField(source='room.room_number', read_only=True, default=None)
    property_name = serializers.CharField(source='property.name', read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'property', 'property_name', 'room', 'room_number', 'room_ids', 'is_group_booking',
            'check_in_date', 'check_out_date', 'status', 'custom_price', 'advance_amount', 'total_amount',
        ]


class BillDetailSerializer(BillSerializer):
    """Bill with the booking, its orders and extra services for the invoice screen."""
    booking_details = BookingSummarySerializer(source='booking', read_only=True)
    orders = serializers.SerializerMethodField()
    extra_services = serializers.SerializerMethodField()

    class Meta(BillSerializer.Meta):
        fields = BillSerializer.Meta.fields + ['booking_details', 'orders', 'extra_services']

    def _booking_ids(self, bill):
        return bill.merged_booking_ids or [bill.booking_id]

    def get_orders(self, bill):
        from bookings.models import Order
        orders = Order.objects.filter(
            booking_id__in=self._booking_ids(bill), is_deleted=False
        ).exclude(status='cancelled').order_by('created_on')
        return [
            {'id': order.id, 'booking': order.booking_id, 'items': order.items,
             'total_amount': str(order.total_amount), 'status': order.status}
            for order in orders
        ]

    def get_extra_services(self, bill):
        from bookings.models import ExtraService
        services = ExtraService.objects.filter(
            booking_id__in=self._booking_ids(bill), is_deleted=False
        ).order_by('service_date')
        return [
            {'id': service.id, 'booking': service.booking_id, 'service_name': service.service_name,
             'service_type': service.service_type, 'amount': str(service.amount),
             'service_date': service.service_date}
            for service in services
        ]


class PreBillSerializer(serializers.ModelSerializer):
    class Meta:
        model = PreBill
        fields = ['id', 'booking', 'guest', 'amount', 'status', 'sent_via', 'bill_details', 'created_on']


class PaymentLinkSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentLink
        fields = ['id', 'booking', 'link_id', 'reference_id', 'short_url', 'amount', 'status', 'created_on']
