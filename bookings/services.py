import logging
from decimal import Decimal
from django.db.models import Sum
from django.utils import timezone
from .models import Room, BLOCKING_ORDER_STATUSES
from billing.calculations import money, ZERO
from utils.event_bus import EventTypes

logger = logging.getLogger(__name__)


class BookingStatusError(Exception):
    pass


def calculate_nights(booking):
    """Whole nights between check-in and check-out; a same-day stay bills one night."""
    nights = (booking.check_out_date - booking.check_in_date).days
    return max(1, nights)


def calculate_room_charges(booking, nights=None):
    nights = nights or calculate_nights(booking)
    custom_price = booking.custom_price if booking.custom_price else None

    if booking.is_group_booking and booking.room_ids:
        rooms = Room.objects.filter(id__in=booking.room_ids)
        room_count = len(booking.room_ids)
        room_charges = ZERO
        for room in rooms:
            price_per_night = custom_price / room_count if custom_price else room.price_per_night
            room_charges += Decimal(price_per_night) * nights
        return money(room_charges)

    if custom_price:
        price_per_night = custom_price
    elif booking.room_id:
        price_per_night = booking.room.price_per_night
    else:
        price_per_night = ZERO
    return money(Decimal(price_per_night) * nights)


def get_booking_charges(booking):
    """
    Persisted charges of one booking, the input of the checkout calculation.
    Cancelled orders are not billed.
    """
    nights = calculate_nights(booking)
    food_charges = booking.orders.filter(is_deleted=False).exclude(status='cancelled').aggregate(
        total=Sum('total_amount'))['total'] or ZERO
    extra_charges = booking.extra_services.filter(is_deleted=False).aggregate(
        total=Sum('amount'))['total'] or ZERO

    return {
        'nights': nights,
        'room_charges': calculate_room_charges(booking, nights),
        'food_charges': money(food_charges),
        'extra_charges': money(extra_charges),
        'advance_paid': money(booking.advance_amount),
    }


def get_blocking_orders(booking):
    return booking.orders.filter(is_deleted=False, status__in=BLOCKING_ORDER_STATUSES)


def set_room_status(booking, room_status, event_bus=None):
    room_ids = booking.booked_room_ids()
    if not room_ids:
        return 0
    updated = Room.objects.filter(id__in=room_ids).update(status=room_status, updated_on=timezone.now())
    if event_bus is not None:
        event_bus.publish(
            EventTypes.ROOM_STATUS_CHANGED,
            data={'room_ids': room_ids, 'status': room_status, 'booking_id': booking.id},
            property_id=booking.property_id,
        )
    return updated


ROOM_STATUS_FOR_BOOKING = {
    'checked-in': 'occupied',
    'checked-out': 'cleaning',
    'cancelled': 'cleaning',
}

BOOKING_STATUS_EVENTS = {
    'checked-in': EventTypes.BOOKING_CHECKED_IN,
    'checked-out': EventTypes.BOOKING_CHECKED_OUT,
    'cancelled': EventTypes.BOOKING_CANCELLED,
}


def update_booking_status(booking, new_status, event_bus, user=None):
    if booking.status == 'checked-out':
        raise BookingStatusError("Cannot change status of a checked-out booking. Status is locked.")

    if new_status == 'checked-in' and booking.check_in_date > timezone.localdate():
        scheduled = booking.check_in_date.strftime('%d %b %Y')
        raise BookingStatusError(
            f"Cannot check in before the scheduled check-in date ({scheduled})."
        )

    booking.status = new_status
    booking.save(update_fields=['status', 'updated_on'])

    room_status = ROOM_STATUS_FOR_BOOKING.get(new_status)
    if room_status:
        set_room_status(booking, room_status, event_bus)

    event_bus.publish(
        BOOKING_STATUS_EVENTS.get(new_status, EventTypes.BOOKING_UPDATED),
        data={'booking_id': booking.id, 'status': new_status},
        user_id=getattr(user, 'id', None),
        property_id=booking.property_id,
    )
    logger.info(f"Booking {booking.id} moved to {new_status}")
    return booking
