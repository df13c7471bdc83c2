"""
Checkout, merge and payment collection.

The views hand over validated input plus the process event bus; everything
that reads bookings and writes bills lives here. Arithmetic is delegated to
``billing.calculations``. Events and audit entries are emitted only after the
database transaction has finished, so subscribers never see a rolled back bill.
"""
import logging
from decimal import Decimal
from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.forms.models import model_to_dict
from django.utils import timezone
from admin_app.audit import AuditService
from bookings.models import Booking, Order, ExtraService, Room
from bookings.services import get_booking_charges, get_blocking_orders
from utils.authentication.customPermissions import property_scope
from utils.event_bus import EventTypes
from utils.razorpay.core import create_razorpay_payment_link
from utils.whatsapp.whatsapp_connector import AuthkeyWhatsAppConnector
from utils.celery.tasks import send_bill_whatsapp_task
from .calculations import (
    TaxPolicy, compute_bill, compute_merged_bill, split_payment, money, ZERO, DISCOUNT_NONE,
)
from .exceptions import (
    BillingError, BillNotFound, BookingNotFound, CheckoutBlocked, MergeValidationError, ExternalServiceError,
)
from .models import Bill, PreBill, PaymentLink
from .serializers import BillOptionsSerializer, MAX_AMOUNT

logger = logging.getLogger(__name__)

CLOSED_BOOKING_STATUSES = ('checked-out', 'cancelled')


def checkout_tax_policy():
    return TaxPolicy(
        gst_rate=Decimal(str(settings.CHECKOUT_GST_RATE)),
        service_charge_rate=Decimal(str(settings.CHECKOUT_SERVICE_CHARGE_RATE)),
        split_gst=True,
    )


def merge_tax_policy():
    return TaxPolicy(
        gst_rate=Decimal(str(settings.MERGE_GST_RATE)),
        service_charge_rate=Decimal(str(settings.MERGE_SERVICE_CHARGE_RATE)),
        split_gst=False,
    )


def get_booking(booking_id, lock=False, user=None):
    """Bookings outside the user's property scope are reported as not found."""
    queryset = Booking.objects.select_related('guest', 'room', 'property')
    property_id = property_scope(user)
    if property_id:
        queryset = queryset.filter(property_id=property_id)
    if lock:
        queryset = queryset.select_for_update(of=('self',))
    try:
        return queryset.get(id=booking_id, is_deleted=False)
    except Booking.DoesNotExist:
        raise BookingNotFound("Booking not found")


def has_prebill_acknowledgement(booking):
    """The guest has seen the bill: a pre-bill went out or a payment link was generated."""
    return (
        PreBill.objects.filter(booking=booking, is_deleted=False).exists()
        or PaymentLink.objects.filter(booking=booking, is_deleted=False).exists()
    )


def calculate_breakdown(booking, options, policy=None):
    return compute_bill(
        get_booking_charges(booking),
        manual_charges=options.get('manual_charges'),
        gst_on_rooms=options.get('gst_on_rooms', False),
        gst_on_food=options.get('gst_on_food', False),
        include_service_charge=options.get('include_service_charge', False),
        discount_type=options.get('discount_type') or DISCOUNT_NONE,
        discount_value=options.get('discount_value'),
        discount_applies_to=options.get('discount_applies_to') or 'total',
        advance_paid=booking.advance_amount,
        policy=policy or checkout_tax_policy(),
    )


def preview_bill(booking_id, options, user=None):
    booking = get_booking(booking_id, user=user)
    breakdown = calculate_breakdown(booking, options)
    data = breakdown.as_dict()
    data['booking_id'] = booking.id
    return data


def _bill_snapshot(bill):
    return model_to_dict(bill, exclude=['booking', 'guest'])


def checkout_booking(booking_id, options, user, event_bus):
    """
    Settle a booking: upsert its bill, close the booking and free the rooms.

    Raises BookingNotFound or CheckoutBlocked without writing anything when
    the booking cannot be checked out yet.
    """
    payment_status = options.get('payment_status', 'paid')
    payment_method = options.get('payment_method')
    if payment_status == 'paid' and not payment_method:
        raise BillingError("Payment method is required for a paid checkout")

    with transaction.atomic():
        booking = get_booking(booking_id, lock=True, user=user)

        if booking.status in CLOSED_BOOKING_STATUSES:
            raise CheckoutBlocked(f"Booking is already {booking.status}")

        blocking_count = get_blocking_orders(booking).count()
        if blocking_count:
            raise CheckoutBlocked(
                f"Cannot checkout: {blocking_count} food order(s) are still pending or being prepared. "
                f"Complete or cancel them before checkout."
            )

        if not options.get('skip_pre_bill') and not has_prebill_acknowledgement(booking):
            raise CheckoutBlocked(
                "Send the pre-bill or a payment link to the guest before checkout, or skip the pre-bill."
            )

        breakdown = calculate_breakdown(booking, options)
        now = timezone.now()

        if payment_status == 'paid':
            cash_in, online_in = options.get('cash_amount'), options.get('online_amount')
            if cash_in is None and online_in is None:
                if payment_method == 'cash':
                    cash_in = breakdown.balance_amount
                else:
                    online_in = breakdown.balance_amount
            split = split_payment(breakdown.balance_amount, cash_in, online_in)
            received = split.cash_amount + split.online_amount
            payment_fields = {
                'cash_amount': split.cash_amount,
                'online_amount': split.online_amount,
                'change_due': split.change_due,
                'payment_method': payment_method,
                'paid_at': now,
                'due_date': None,
                'pending_reason': None,
            }
        else:
            cash = max(ZERO, money(options.get('cash_amount')))
            received = cash
            payment_fields = {
                'cash_amount': cash if cash else None,
                'online_amount': None,
                'change_due': ZERO,
                'payment_method': payment_method,
                'paid_at': None,
                'due_date': options.get('due_date'),
                'pending_reason': options.get('pending_reason'),
            }

        bill_fields = {
            'guest_id': booking.guest_id,
            'room_charges': breakdown.room_charges,
            'food_charges': breakdown.food_charges,
            'extra_charges': breakdown.extra_charges,
            'manual_charges': [charge.as_dict() for charge in breakdown.manual_charges],
            'manual_charges_total': breakdown.manual_charges_total,
            'subtotal': breakdown.subtotal,
            'gst_rate': breakdown.gst_rate,
            'gst_amount': breakdown.gst_amount,
            'gst_on_rooms': bool(options.get('gst_on_rooms')),
            'gst_on_food': bool(options.get('gst_on_food')),
            'service_charge_rate': breakdown.service_charge_rate,
            'service_charge_amount': breakdown.service_charge_amount,
            'include_service_charge': bool(options.get('include_service_charge')),
            'discount_type': options.get('discount_type') or DISCOUNT_NONE,
            'discount_value': money(options.get('discount_value')) if options.get('discount_value') else None,
            'discount_applies_to': options.get('discount_applies_to') or 'total',
            'discount_amount': breakdown.discount_amount,
            'total_amount': breakdown.total_amount,
            'advance_paid': breakdown.advance_paid,
            'balance_amount': max(ZERO, breakdown.balance_amount - received),
            'payment_status': payment_status,
            **payment_fields,
        }

        bill = Bill.objects.select_for_update().filter(booking=booking, is_merged=False, is_deleted=False).first()
        before = _bill_snapshot(bill) if bill else None
        if bill:
            for field, value in bill_fields.items():
                setattr(bill, field, value)
            bill.save()
        else:
            bill = Bill.objects.create(booking=booking, **bill_fields)

        booking.status = 'checked-out'
        booking.save(update_fields=['status', 'updated_on'])
        room_ids = booking.booked_room_ids()
        Room.objects.filter(id__in=room_ids).update(status='cleaning', updated_on=now)

    logger.info(f"Booking {booking.id} checked out, bill {bill.id} {payment_status} total={bill.total_amount}")

    user_id = getattr(user, 'id', None)
    bill_event = {
        'bill_id': bill.id,
        'booking_id': booking.id,
        'total_amount': str(bill.total_amount),
        'balance_amount': str(bill.balance_amount),
        'payment_status': bill.payment_status,
    }
    event_bus.publish(EventTypes.BILL_GENERATED, data=bill_event, user_id=user_id, property_id=booking.property_id)
    event_bus.publish(
        EventTypes.BOOKING_CHECKED_OUT,
        data={'booking_id': booking.id, 'status': booking.status},
        user_id=user_id,
        property_id=booking.property_id,
    )
    if room_ids:
        event_bus.publish(
            EventTypes.ROOM_STATUS_CHANGED,
            data={'room_ids': room_ids, 'status': 'cleaning', 'booking_id': booking.id},
            user_id=user_id,
            property_id=booking.property_id,
        )
    if payment_status == 'paid':
        _publish_payment(event_bus, bill, user_id, booking.property_id)

    audit = AuditService(event_bus)
    if before is None:
        audit.log_create('bill', bill.id, user, _bill_snapshot(bill), metadata={'booking_id': booking.id})
    else:
        audit.log_update('bill', bill.id, user, before, _bill_snapshot(bill), metadata={'booking_id': booking.id})

    if options.get('send_whatsapp'):
        send_bill_whatsapp_task.delay(bill.id)

    return bill


def _publish_payment(event_bus, bill, user_id, property_id):
    data = {
        'bill_id': bill.id,
        'booking_id': bill.booking_id,
        'amount': str(bill.total_amount),
        'payment_method': bill.payment_method,
    }
    event_bus.publish(EventTypes.BILL_PAID, data=data, user_id=user_id, property_id=property_id)
    event_bus.publish(EventTypes.PAYMENT_RECEIVED, data=data, user_id=user_id, property_id=property_id)


def merge_bills(booking_ids, primary_booking_id, user, event_bus):
    """
    One consolidated bill over several bookings, attached to the primary one.

    Existing per-booking bills are left untouched. Merging an overlapping set
    twice produces a second bill over the same charges.
    """
    booking_ids = list(dict.fromkeys(booking_ids or []))
    if len(booking_ids) < 2:
        raise MergeValidationError("At least 2 bookings are required to merge")
    if primary_booking_id not in booking_ids:
        raise MergeValidationError("Primary booking must be one of the bookings being merged")

    with transaction.atomic():
        queryset = Booking.objects.select_for_update().filter(id__in=booking_ids, is_deleted=False)
        property_id = property_scope(user)
        if property_id:
            queryset = queryset.filter(property_id=property_id)
        bookings = list(queryset.order_by('id'))
        if len(bookings) != len(booking_ids):
            raise BookingNotFound("One or more bookings not found")
        primary = next((booking for booking in bookings if booking.id == primary_booking_id), None)
        if primary is None:
            raise BookingNotFound("Primary booking not found")

        order_amounts = Order.objects.filter(
            booking_id__in=booking_ids, is_deleted=False,
        ).exclude(status='cancelled').values_list('total_amount', flat=True)
        extra_amounts = ExtraService.objects.filter(
            booking_id__in=booking_ids, is_deleted=False,
        ).values_list('amount', flat=True)

        breakdown = compute_merged_bill(
            [booking.total_amount for booking in bookings],
            list(order_amounts),
            list(extra_amounts),
            policy=merge_tax_policy(),
        )

        overlapping = Bill.objects.filter(is_merged=True, is_deleted=False, booking_id__in=booking_ids).count()
        if overlapping:
            logger.warning(f"Merging bookings {booking_ids} that already appear on {overlapping} merged bill(s)")

        bill = Bill.objects.create(
            booking=primary,
            guest_id=primary.guest_id,
            room_charges=breakdown.room_charges,
            food_charges=breakdown.food_charges,
            extra_charges=breakdown.extra_charges,
            subtotal=breakdown.subtotal,
            gst_rate=breakdown.gst_rate,
            gst_amount=breakdown.gst_amount,
            gst_on_rooms=True,
            gst_on_food=True,
            service_charge_rate=breakdown.service_charge_rate,
            service_charge_amount=breakdown.service_charge_amount,
            include_service_charge=True,
            discount_amount=breakdown.discount_amount,
            total_amount=breakdown.total_amount,
            advance_paid=ZERO,
            balance_amount=breakdown.balance_amount,
            payment_status='unpaid',
            merged_booking_ids=booking_ids,
            is_merged=True,
        )

    logger.info(f"Merged bookings {booking_ids} into bill {bill.id} total={bill.total_amount}")
    user_id = getattr(user, 'id', None)
    event_bus.publish(
        EventTypes.BILL_GENERATED,
        data={
            'bill_id': bill.id,
            'booking_id': primary.id,
            'merged_booking_ids': booking_ids,
            'total_amount': str(bill.total_amount),
            'payment_status': bill.payment_status,
        },
        user_id=user_id,
        property_id=primary.property_id,
    )
    AuditService(event_bus).log_custom_action(
        'bill', bill.id, 'merge', user,
        change_set={'after': _bill_snapshot(bill)},
        metadata={'merged_booking_ids': booking_ids, 'primary_booking_id': primary.id},
    )
    return bill


def get_pending_bills(property_id=None):
    queryset = Bill.objects.filter(payment_status='pending', is_deleted=False).select_related('booking', 'guest')
    if property_id:
        queryset = queryset.filter(booking__property_id=property_id)
    return queryset.order_by('due_date', '-created_on')


def pending_bills_total(queryset):
    return money(queryset.aggregate(total=Sum('balance_amount'))['total'])


def mark_bill_paid(bill_id, payment_method, user, event_bus, razorpay_payment_id=None):
    bills = Bill.objects.select_for_update().filter(is_deleted=False)
    scope = property_scope(user)
    if scope:
        bills = bills.filter(booking__property_id=scope)

    with transaction.atomic():
        try:
            bill = bills.get(id=bill_id)
        except Bill.DoesNotExist:
            raise BillNotFound("Bill not found")
        if bill.payment_status == 'paid':
            raise BillingError("Bill is already paid")

        before = _bill_snapshot(bill)
        collected = bill.balance_amount
        bill.payment_status = 'paid'
        bill.payment_method = payment_method
        bill.paid_at = timezone.now()
        if payment_method == 'cash':
            bill.cash_amount = money(bill.cash_amount) + collected
        else:
            bill.online_amount = money(bill.online_amount) + collected
        bill.balance_amount = ZERO
        bill.save()

    logger.info(f"Bill {bill.id} marked paid via {payment_method} collected={collected}")
    user_id = getattr(user, 'id', None)
    property_id = Booking.objects.filter(id=bill.booking_id).values_list('property_id', flat=True).first()
    _publish_payment(event_bus, bill, user_id, property_id)
    metadata = {'collected': str(collected)}
    if razorpay_payment_id:
        metadata['razorpay_payment_id'] = razorpay_payment_id
    AuditService(event_bus).log_update('bill', bill.id, user, before, _bill_snapshot(bill), metadata=metadata)
    return bill


def bill_amount_for_external(booking, bill_details):
    """Amount the guest is asked to pay: the caller's total if given, else a fresh breakdown."""
    details = bill_details or {}
    for key in ('balance_amount', 'total_amount'):
        amount = money(details.get(key))
        if amount > MAX_AMOUNT:
            raise BillingError(f"{key} cannot exceed {MAX_AMOUNT}")
        if amount > ZERO:
            return amount

    serializer = BillOptionsSerializer(data={**details, 'booking_id': booking.id})
    if not serializer.is_valid():
        raise BillingError(f"Invalid bill details: {serializer.errors}")
    return calculate_breakdown(booking, serializer.validated_data).balance_amount


def send_prebill(booking_id, bill_details, user, event_bus):
    """
    Send the itemised bill to the guest on WhatsApp and record it.
    Nothing is written when the message fails.
    """
    booking = get_booking(booking_id, user=user)
    guest = booking.guest
    if not guest or not guest.phone:
        raise BillingError("Guest phone number is required to send the pre-bill")

    amount = bill_amount_for_external(booking, bill_details)
    result = AuthkeyWhatsAppConnector().send_prebill(
        phone=guest.phone,
        guest_name=guest.full_name,
        property_name=booking.property.name,
        booking_id=booking.id,
        amount=amount,
    )
    if not result.get('success'):
        logger.error(f"Pre-bill for booking {booking.id} failed: {result.get('error')}")
        raise ExternalServiceError(result.get('error') or "Failed to send pre-bill")

    prebill = PreBill.objects.create(
        booking=booking,
        guest=guest,
        amount=amount,
        status='sent',
        sent_via='whatsapp',
        bill_details=bill_details,
    )
    AuditService(event_bus).log_create(
        'pre_bill', prebill.id, user,
        {'booking_id': booking.id, 'amount': str(amount), 'sent_via': 'whatsapp'},
    )
    return prebill


def generate_payment_link(booking_id, bill_details, user, event_bus):
    booking = get_booking(booking_id, user=user)
    guest = booking.guest
    amount = bill_amount_for_external(booking, bill_details)
    if amount <= ZERO:
        raise BillingError("Nothing to collect for this booking")

    result = create_razorpay_payment_link(
        booking_id=booking.id,
        amount=amount,
        customer_name=guest.full_name if guest else 'Guest',
        customer_phone=guest.phone if guest else None,
        customer_email=guest.email if guest else None,
        description=f"{booking.property.name} - booking #{booking.id}",
    )
    if not result.get('success'):
        raise ExternalServiceError(result.get('error') or "Failed to create payment link")

    link = result['payment_link']
    payment_link = PaymentLink.objects.create(
        booking=booking,
        link_id=link['id'],
        reference_id=result['reference_id'],
        short_url=link['short_url'],
        amount=amount,
        status='created',
        response_data=link,
    )
    AuditService(event_bus).log_create(
        'payment_link', payment_link.id, user,
        {'booking_id': booking.id, 'amount': str(amount), 'link_id': payment_link.link_id},
    )
    return payment_link


def record_payment_link_paid(link_id, razorpay_payment_id, event_bus):
    """
    Webhook side of a paid link: mark the link paid and settle the booking's
    pending bill if there is one. Returns the PaymentLink or None when unknown.
    """
    with transaction.atomic():
        payment_link = PaymentLink.objects.select_for_update().filter(link_id=link_id).first()
        if payment_link is None:
            return None
        if payment_link.status == 'paid':
            return payment_link
        payment_link.status = 'paid'
        payment_link.razorpay_payment_id = razorpay_payment_id
        payment_link.save(update_fields=['status', 'razorpay_payment_id', 'updated_on'])
        pending_bill = Bill.objects.filter(
            booking_id=payment_link.booking_id, payment_status='pending', is_deleted=False,
        ).first()

    if pending_bill:
        mark_bill_paid(pending_bill.id, 'razorpay', None, event_bus, razorpay_payment_id=razorpay_payment_id)
    else:
        event_bus.publish(
            EventTypes.PAYMENT_RECEIVED,
            data={
                'booking_id': payment_link.booking_id,
                'amount': str(payment_link.amount),
                'payment_method': 'razorpay',
                'razorpay_payment_id': razorpay_payment_id,
            },
        )
    return payment_link
