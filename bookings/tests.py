from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework import status
from admin_app.apps import get_event_bus
from admin_app.models import User, AuditLog
from utils.event_bus import EventTypes
from .models import Property, Room, Guest, Booking, Order, ExtraService
from .services import calculate_nights, get_booking_charges


class BookingTestBase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.property = Property.objects.create(name='Lake Side Villa', location='Alleppey')
        self.user = User.objects.create_user(username='manager', password='manager123', role='manager',
                                             assigned_property_id=self.property.id)
        self.client.force_authenticate(user=self.user)

        self.room = Room.objects.create(property=self.property, room_number='201', room_type='Suite',
                                        price_per_night=Decimal('1500'))
        self.room_two = Room.objects.create(property=self.property, room_number='202', room_type='Suite',
                                            price_per_night=Decimal('1200'))
        self.guest = Guest.objects.create(full_name='Rahul Menon', phone='9847000000')
        self.today = timezone.localdate()
        self.booking = Booking.objects.create(
            property=self.property, room=self.room, guest=self.guest,
            check_in_date=self.today, check_out_date=self.today + timedelta(days=3),
        )


class BookingChargesTests(BookingTestBase):

    def test_single_room_charges(self):
        Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('420'),
                             status='completed')
        Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('180'),
                             status='cancelled')
        ExtraService.objects.create(booking=self.booking, service_name='Airport taxi', service_type='taxi',
                                    amount=Decimal('1200'))
        self.booking.advance_amount = Decimal('1000')
        self.booking.save()

        response = self.client.get(reverse('booking-charges', args=[self.booking.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['nights'], 3)
        self.assertEqual(response.data['room_charges'], '4500.00')
        self.assertEqual(response.data['food_charges'], '420.00')
        self.assertEqual(response.data['extra_charges'], '1200.00')
        self.assertEqual(response.data['advance_paid'], '1000.00')

    def test_custom_price_overrides_room_price(self):
        self.booking.custom_price = Decimal('1000')
        self.booking.save()
        self.assertEqual(get_booking_charges(self.booking)['room_charges'], Decimal('3000.00'))

    def test_group_booking_splits_custom_price_per_room(self):
        group = Booking.objects.create(
            property=self.property, guest=self.guest, is_group_booking=True,
            room_ids=[self.room.id, self.room_two.id], custom_price=Decimal('2000'),
            check_in_date=self.today, check_out_date=self.today + timedelta(days=2),
        )
        self.assertEqual(get_booking_charges(group)['room_charges'], Decimal('4000.00'))

        group.custom_price = None
        group.save()
        self.assertEqual(get_booking_charges(group)['room_charges'], Decimal('5400.00'))

    def test_same_day_stay_bills_one_night(self):
        self.booking.check_out_date = self.booking.check_in_date
        self.assertEqual(calculate_nights(self.booking), 1)


class BookingStatusTests(BookingTestBase):

    def url(self, booking):
        return reverse('booking-status', args=[booking.id])

    def test_check_in_occupies_room(self):
        received = []
        self.addCleanup(get_event_bus().subscribe(EventTypes.ROOM_STATUS_CHANGED, received.append))

        response = self.client.patch(self.url(self.booking), {'status': 'checked-in'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, 'occupied')
        self.assertEqual(received[-1]['data']['status'], 'occupied')

    def test_cancel_sends_room_to_cleaning(self):
        response = self.client.patch(self.url(self.booking), {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, 'cleaning')

    def test_early_check_in_is_rejected(self):
        future = Booking.objects.create(
            property=self.property, room=self.room, guest=self.guest,
            check_in_date=self.today + timedelta(days=5), check_out_date=self.today + timedelta(days=7),
        )
        response = self.client.patch(self.url(future), {'status': 'checked-in'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        future.refresh_from_db()
        self.assertEqual(future.status, 'confirmed')

    def test_checked_out_booking_is_locked(self):
        self.booking.status = 'checked-out'
        self.booking.save()
        response = self.client.patch(self.url(self.booking), {'status': 'checked-in'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('locked', response.data['error'])

    def test_group_check_in_occupies_every_room(self):
        group = Booking.objects.create(
            property=self.property, guest=self.guest, is_group_booking=True,
            room_ids=[self.room.id, self.room_two.id],
            check_in_date=self.today, check_out_date=self.today + timedelta(days=1),
        )
        response = self.client.patch(self.url(group), {'status': 'checked-in'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            set(Room.objects.filter(id__in=[self.room.id, self.room_two.id]).values_list('status', flat=True)),
            {'occupied'},
        )


class BookingAPIViewTests(BookingTestBase):

    def test_create_booking(self):
        response = self.client.post(reverse('bookings'), {
            'property': self.property.id,
            'room': self.room_two.id,
            'guest': self.guest.id,
            'check_in_date': self.today.isoformat(),
            'check_out_date': (self.today + timedelta(days=2)).isoformat(),
            'advance_amount': '500.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'confirmed')

    def test_check_out_before_check_in_is_rejected(self):
        response = self.client.post(reverse('bookings'), {
            'property': self.property.id,
            'room': self.room.id,
            'check_in_date': self.today.isoformat(),
            'check_out_date': (self.today - timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_only_sees_own_property(self):
        other = Property.objects.create(name='Other Property')
        other_room = Room.objects.create(property=other, room_number='1', room_type='Standard',
                                         price_per_night=Decimal('900'))
        Booking.objects.create(property=other, room=other_room, check_in_date=self.today,
                               check_out_date=self.today + timedelta(days=1))

        response = self.client.get(reverse('bookings'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([booking['id'] for booking in response.data], [self.booking.id])


class OrderAPIViewTests(BookingTestBase):

    def test_order_inherits_guest_and_room_from_booking(self):
        response = self.client.post(reverse('orders'), {
            'booking': self.booking.id,
            'items': [{'name': 'Masala Dosa', 'quantity': 2, 'price': '90'}],
            'total_amount': '180.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['guest'], self.guest.id)
        self.assertEqual(response.data['room'], self.room.id)
        self.assertEqual(response.data['status'], 'pending')

    def test_update_order_status(self):
        order = Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('90'))
        response = self.client.patch(reverse('order-status', args=[order.id]), {'status': 'completed'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.status, 'completed')

    def test_merge_cafe_orders_into_booking(self):
        cafe_order = Order.objects.create(property=self.property, order_type='restaurant',
                                          total_amount=Decimal('350'), status='completed')
        unmerged = self.client.get(reverse('orders-unmerged-cafe'))
        self.assertEqual([order['id'] for order in unmerged.data], [cafe_order.id])

        response = self.client.patch(reverse('orders-merge-to-booking'), {
            'order_ids': [cafe_order.id],
            'booking_id': self.booking.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        cafe_order.refresh_from_db()
        self.assertEqual(cafe_order.booking_id, self.booking.id)
        self.assertEqual(cafe_order.guest_id, self.guest.id)
        self.assertEqual(get_booking_charges(self.booking)['food_charges'], Decimal('350.00'))

    def test_merged_order_cannot_be_merged_again(self):
        order = Order.objects.create(booking=self.booking, property=self.property, order_type='restaurant',
                                     total_amount=Decimal('100'))
        response = self.client.patch(reverse('orders-merge-to-booking'), {
            'order_ids': [order.id],
            'booking_id': self.booking.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ExtraServiceAPIViewTests(BookingTestBase):

    def test_create_and_list_by_booking(self):
        response = self.client.post(reverse('extra-services'), {
            'booking': self.booking.id,
            'service_name': 'Houseboat tour',
            'service_type': 'adventure',
            'amount': '2500.00',
            'service_date': self.today.isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(reverse('extra-services-by-booking', args=[self.booking.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['amount'], '2500.00')

    def test_zero_amount_is_rejected(self):
        response = self.client.post(reverse('extra-services'), {
            'booking': self.booking.id,
            'service_name': 'Guide',
            'amount': '0',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_is_soft_and_audited(self):
        service = ExtraService.objects.create(booking=self.booking, service_name='Bike rental',
                                              service_type='rental', amount=Decimal('600'))

        response = self.client.delete(reverse('extra-service-detail', args=[service.id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        service.refresh_from_db()
        self.assertTrue(service.is_deleted)
        self.assertEqual(get_booking_charges(self.booking)['extra_charges'], Decimal('0.00'))
        entry = AuditLog.objects.get(entity_type='extra_service', action='delete')
        self.assertEqual(entry.entity_id, str(service.id))
        self.assertEqual(entry.change_set['before']['service_name'], 'Bike rental')

    def test_delete_on_another_property_is_not_found(self):
        other = Property.objects.create(name='Other Property')
        other_booking = Booking.objects.create(property=other, check_in_date=self.today,
                                               check_out_date=self.today + timedelta(days=1))
        service = ExtraService.objects.create(booking=other_booking, service_name='Guide', amount=Decimal('300'))

        response = self.client.delete(reverse('extra-service-detail', args=[service.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        service.refresh_from_db()
        self.assertFalse(service.is_deleted)
