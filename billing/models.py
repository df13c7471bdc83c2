from django.db import models
from django.core.serializers.json import DjangoJSONEncoder
from admin_app.models import BaseModel
from bookings.models import Booking, Guest

PAYMENT_STATUS = (
    ('unpaid', 'Unpaid'),
    ('paid', 'Paid'),
    ('pending', 'Pending'),
)

DISCOUNT_TYPE = (
    ('none', 'None'),
    ('percentage', 'Percentage Discount'),
    ('fixed', 'Fixed Amount Discount'),
)

DISCOUNT_APPLIES_TO = (
    ('total', 'Total'),
    ('room', 'Room Charges'),
    ('food', 'Food Charges'),
)


class Bill(BaseModel):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='bills')
    guest = models.ForeignKey(Guest, on_delete=models.SET_NULL, null=True, blank=True)
    room_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    food_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    extra_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    manual_charges = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    manual_charges_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    gst_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    gst_on_rooms = models.BooleanField(default=False)
    gst_on_food = models.BooleanField(default=False)
    service_charge_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    service_charge_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    include_service_charge = models.BooleanField(default=False)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE, default='none')
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    discount_applies_to = models.CharField(max_length=20, choices=DISCOUNT_APPLIES_TO, default='total')
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    advance_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    cash_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    online_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    change_due = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS, default='unpaid')
    payment_method = models.CharField(max_length=50, blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    due_date = models.DateField(blank=True, null=True)
    pending_reason = models.TextField(blank=True, null=True)
    # Set only on merged bills; the bill itself hangs off the primary booking
    merged_booking_ids = models.JSONField(blank=True, null=True)
    is_merged = models.BooleanField(default=False)

    def __str__(self):
        return f"Bill {self.id} - booking {self.booking_id} - {self.total_amount} - {self.payment_status}"


PREBILL_STATUS = (
    ('sent', 'Sent'),
    ('approved', 'Approved'),
)


class PreBill(BaseModel):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='pre_bills')
    guest = models.ForeignKey(Guest, on_delete=models.SET_NULL, null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=PREBILL_STATUS, default='sent')
    sent_via = models.CharField(max_length=20, default='whatsapp')
    bill_details = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)

    def __str__(self):
        return f"PreBill {self.id} - booking {self.booking_id} - {self.amount} - {self.status}"


PAYMENT_LINK_STATUS = (
    ('created', 'Created'),
    ('paid', 'Paid'),
    ('expired', 'Expired'),
)


class PaymentLink(BaseModel):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='payment_links')
    link_id = models.CharField(max_length=100, unique=True)
    reference_id = models.CharField(max_length=100)
    short_url = models.URLField(max_length=500)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=PAYMENT_LINK_STATUS, default='created')
    razorpay_payment_id = models.CharField(max_length=100, blank=True, null=True)
    response_data = models.JSONField(blank=True, null=True)

    def __str__(self):
        return f"PaymentLink {self.link_id} - booking {self.booking_id} - {self.amount} - {self.status}"
