import hashlib
import hmac
import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch, MagicMock
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework import status
from admin_app.apps import get_event_bus
from admin_app.models import User, AuditLog
from bookings.models import Property, Room, Guest, Booking, Order, ExtraService
from utils.event_bus import EventTypes
from utils.razorpay.core import create_razorpay_payment_link
from utils.whatsapp.whatsapp_connector import (
    AuthkeyWhatsAppConnector, InvalidPhoneNumber, clean_indian_phone_number,
)
from .calculations import (
    CHECKOUT_TAX_POLICY, compute_bill, compute_merged_bill, resolve_balance, split_payment,
    clean_manual_charges,
)
from .models import Bill, PreBill, PaymentLink


class BillCalculationTests(SimpleTestCase):
    charges = {'room_charges': '2000', 'food_charges': '500', 'extra_charges': '0'}

    def test_gst_on_rooms_only(self):
        bill = compute_bill(self.charges, gst_on_rooms=True)
        self.assertEqual(bill.subtotal, Decimal('2500.00'))
        self.assertEqual(bill.gst_amount, Decimal('100.00'))
        self.assertEqual(bill.service_charge_amount, Decimal('0.00'))
        self.assertEqual(bill.total_amount, Decimal('2600.00'))
        self.assertEqual(bill.balance_amount, Decimal('2600.00'))

    def test_percentage_discount_comes_off_the_taxed_total(self):
        bill = compute_bill(self.charges, gst_on_rooms=True, discount_type='percentage', discount_value='10')
        self.assertEqual(bill.discount_amount, Decimal('260.00'))
        self.assertEqual(bill.total_amount, Decimal('2340.00'))
        self.assertEqual(bill.balance_amount, Decimal('2340.00'))

    def test_service_charge_uses_the_full_subtotal(self):
        bill = compute_bill(
            {'room_charges': '2000', 'food_charges': '500', 'extra_charges': '100'},
            manual_charges=[{'name': 'Laundry', 'amount': '400'}],
            gst_on_food=True,
            include_service_charge=True,
        )
        self.assertEqual(bill.subtotal, Decimal('3000.00'))
        self.assertEqual(bill.gst_amount, Decimal('25.00'))
        self.assertEqual(bill.service_charge_amount, Decimal('300.00'))
        self.assertEqual(bill.total_amount, Decimal('3325.00'))

    def test_total_matches_its_components(self):
        bill = compute_bill(
            {'room_charges': '1333.33', 'food_charges': '276.45', 'extra_charges': '99.99'},
            manual_charges=[{'name': 'Minibar', 'amount': '57.35'}],
            gst_on_rooms=True,
            gst_on_food=True,
            include_service_charge=True,
            discount_type='percentage',
            discount_value='7.5',
            advance_paid='500',
        )
        self.assertEqual(
            bill.total_amount,
            bill.subtotal + bill.gst_amount + bill.service_charge_amount - bill.discount_amount,
        )
        self.assertEqual(bill.balance_amount, bill.total_amount - Decimal('500.00'))

    def test_invalid_manual_charges_are_dropped(self):
        rows = [
            {'name': 'Laundry', 'amount': '150'},
            {'name': '', 'amount': '100'},
            {'name': 'Refund', 'amount': '-20'},
            {'name': 'Spa', 'amount': 'abc'},
            {'name': 'Late checkout', 'amount': None},
        ]
        valid = clean_manual_charges(rows)
        self.assertEqual([charge.name for charge in valid], ['Laundry'])
        bill = compute_bill({'room_charges': '1000'}, manual_charges=rows)
        self.assertEqual(bill.manual_charges_total, Decimal('150.00'))
        self.assertEqual(bill.subtotal, Decimal('1150.00'))

    def test_unparsable_amounts_count_as_zero(self):
        bill = compute_bill(
            {'room_charges': 'n/a', 'food_charges': None, 'extra_charges': '300'},
            discount_type='fixed',
            discount_value='ten',
        )
        self.assertEqual(bill.subtotal, Decimal('300.00'))
        self.assertEqual(bill.discount_amount, Decimal('0'))
        self.assertEqual(bill.total_amount, Decimal('300.00'))

    def test_amounts_too_large_for_paise_count_as_zero(self):
        bill = compute_bill(
            {'room_charges': '100'},
            manual_charges=[{'name': 'Minibar', 'amount': '1e30'}],
            discount_type='fixed',
            discount_value='1e30',
        )
        self.assertEqual(bill.manual_charges, ())
        self.assertEqual(bill.discount_amount, Decimal('0'))
        self.assertEqual(bill.total_amount, Decimal('100.00'))

    def test_discount_applies_to_room_charges(self):
        bill = compute_bill(
            self.charges, gst_on_rooms=True,
            discount_type='percentage', discount_value='10', discount_applies_to='room',
        )
        self.assertEqual(bill.discount_amount, Decimal('200.00'))
        self.assertEqual(bill.total_amount, Decimal('2400.00'))

    def test_fixed_discount_never_goes_below_zero(self):
        bill = compute_bill(self.charges, discount_type='fixed', discount_value='99999')
        self.assertEqual(bill.discount_amount, Decimal('2500.00'))
        self.assertEqual(bill.total_amount, Decimal('0.00'))

    def test_balance_is_never_negative(self):
        bill = compute_bill(self.charges, advance_paid='5000')
        self.assertEqual(bill.balance_amount, Decimal('0'))
        self.assertEqual(resolve_balance('100', '250'), Decimal('0'))

    def test_recomputing_gives_the_same_breakdown(self):
        kwargs = dict(
            manual_charges=[{'name': 'Laundry', 'amount': '99.90'}],
            gst_on_rooms=True, include_service_charge=True,
            discount_type='percentage', discount_value='12.5', advance_paid='300',
        )
        self.assertEqual(compute_bill(self.charges, **kwargs), compute_bill(self.charges, **kwargs))

    def test_merged_bill_applies_merge_rates_on_full_subtotal(self):
        bill = compute_merged_bill(['3000', '4000'], ['500'], [])
        self.assertEqual(bill.subtotal, Decimal('7500.00'))
        self.assertEqual(bill.gst_amount, Decimal('1350.00'))
        self.assertEqual(bill.service_charge_amount, Decimal('750.00'))
        self.assertEqual(bill.total_amount, Decimal('9600.00'))
        self.assertEqual(bill.balance_amount, Decimal('9600.00'))

    def test_checkout_policy_rates(self):
        self.assertEqual(CHECKOUT_TAX_POLICY.gst_rate, Decimal('5'))
        self.assertEqual(CHECKOUT_TAX_POLICY.service_charge_rate, Decimal('10'))

    def test_excess_cash_is_kept_as_change_due(self):
        split = split_payment('1000', cash_amount='1200')
        self.assertEqual(split.cash_amount, Decimal('1200.00'))
        self.assertEqual(split.online_amount, Decimal('0'))
        self.assertEqual(split.change_due, Decimal('200.00'))

    def test_split_payment_fills_cash_from_online_part(self):
        split = split_payment('1000', online_amount='400')
        self.assertEqual(split.cash_amount, Decimal('600.00'))
        self.assertEqual(split.online_amount, Decimal('400.00'))
        negative = split_payment('1000', cash_amount='-50')
        self.assertEqual(negative.cash_amount, Decimal('0'))
        self.assertEqual(negative.online_amount, Decimal('1000.00'))


class BillingAPITestBase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username='frontdesk', password='frontdesk123', role='admin')
        self.client.force_authenticate(user=self.user)

        self.property = Property.objects.create(name='Hill View Homestay', location='Munnar')
        self.room = Room.objects.create(
            property=self.property, room_number='101', room_type='Deluxe', price_per_night=Decimal('1000'),
            status='occupied',
        )
        self.guest = Guest.objects.create(full_name='Anita Rao', phone='+91 9876543210', email='anita@example.com')
        today = timezone.localdate()
        self.booking = Booking.objects.create(
            property=self.property,
            room=self.room,
            guest=self.guest,
            check_in_date=today - timedelta(days=2),
            check_out_date=today,
            status='checked-in',
            total_amount=Decimal('2000'),
        )
        Order.objects.create(
            booking=self.booking, property=self.property, room=self.room, guest=self.guest,
            items=[{'name': 'Thali', 'quantity': 2}], total_amount=Decimal('500'), status='completed',
        )

    def checkout_payload(self, **overrides):
        payload = {
            'booking_id': self.booking.id,
            'gst_on_rooms': True,
            'gst_on_food': False,
            'include_service_charge': False,
            'discount_type': 'none',
            'payment_status': 'paid',
            'payment_method': 'cash',
        }
        payload.update(overrides)
        return payload

    def send_prebill(self):
        PreBill.objects.create(booking=self.booking, guest=self.guest, amount=Decimal('2600'))


class CheckoutAPIViewTests(BillingAPITestBase):
    url = '/api/v1/billing/checkout/'

    def test_checkout_blocked_by_preparing_order(self):
        Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('250'),
                             status='preparing')
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('1 food order', response.data['error'])
        self.assertFalse(Bill.objects.exists())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'checked-in')

    def test_checkout_blocked_by_pending_order_even_with_prebill(self):
        self.send_prebill()
        Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('80'))
        Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('90'),
                             status='preparing')
        response = self.client.post(self.url, self.checkout_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('2 food order', response.data['error'])
        self.assertFalse(Bill.objects.exists())

    def test_checkout_requires_prebill_or_payment_link(self):
        response = self.client.post(self.url, self.checkout_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('pre-bill', response.data['error'])
        self.assertFalse(Bill.objects.exists())

    def test_paid_checkout_closes_booking_and_frees_room(self):
        self.send_prebill()
        received = []
        self.addCleanup(get_event_bus().subscribe_all(received.append))

        response = self.client.post(self.url, self.checkout_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['subtotal'], '2500.00')
        self.assertEqual(response.data['gst_amount'], '100.00')
        self.assertEqual(response.data['total_amount'], '2600.00')
        self.assertEqual(response.data['cash_amount'], '2600.00')
        self.assertEqual(response.data['balance_amount'], '0.00')
        self.assertEqual(response.data['payment_status'], 'paid')

        self.booking.refresh_from_db()
        self.room.refresh_from_db()
        self.assertEqual(self.booking.status, 'checked-out')
        self.assertEqual(self.room.status, 'cleaning')

        event_types = [event['type'] for event in received]
        self.assertIn(EventTypes.BILL_GENERATED, event_types)
        self.assertIn(EventTypes.BOOKING_CHECKED_OUT, event_types)
        self.assertIn(EventTypes.PAYMENT_RECEIVED, event_types)
        self.assertTrue(AuditLog.objects.filter(entity_type='bill', action='create').exists())

    def test_split_payment_with_excess_cash(self):
        self.send_prebill()
        response = self.client.post(
            self.url, self.checkout_payload(payment_method='split', cash_amount='3000'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cash_amount'], '3000.00')
        self.assertEqual(response.data['online_amount'], '0.00')
        self.assertEqual(response.data['change_due'], '400.00')

    def test_pending_checkout_records_due_date_without_payment_method(self):
        due_date = (timezone.localdate() + timedelta(days=7)).isoformat()
        response = self.client.post(self.url, self.checkout_payload(
            skip_pre_bill=True, payment_status='pending', payment_method=None,
            due_date=due_date, pending_reason='Company will settle',
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        bill = Bill.objects.get(booking=self.booking)
        self.assertEqual(bill.payment_status, 'pending')
        self.assertIsNone(bill.payment_method)
        self.assertEqual(bill.due_date.isoformat(), due_date)
        self.assertEqual(bill.pending_reason, 'Company will settle')
        self.assertEqual(bill.balance_amount, Decimal('2600.00'))

    def test_advance_reduces_balance(self):
        self.booking.advance_amount = Decimal('600')
        self.booking.save()
        response = self.client.post(
            self.url, self.checkout_payload(skip_pre_bill=True, payment_status='pending', payment_method=None),
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['advance_paid'], '600.00')
        self.assertEqual(response.data['balance_amount'], '2000.00')

    def test_checkout_updates_the_existing_bill(self):
        Bill.objects.create(booking=self.booking, total_amount=Decimal('1'), payment_status='unpaid')
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        bills = Bill.objects.filter(booking=self.booking)
        self.assertEqual(bills.count(), 1)
        self.assertEqual(bills.first().total_amount, Decimal('2600.00'))
        self.assertTrue(AuditLog.objects.filter(entity_type='bill', action='update').exists())

    def test_manual_charges_are_itemised_on_the_bill(self):
        response = self.client.post(self.url, self.checkout_payload(
            skip_pre_bill=True,
            manual_charges=[{'name': 'Bonfire', 'amount': '300'}, {'name': '', 'amount': '50'}],
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['manual_charges'], [{'name': 'Bonfire', 'amount': '300.00'}])
        self.assertEqual(response.data['subtotal'], '2800.00')

    def test_cancelled_orders_are_not_billed(self):
        Order.objects.create(booking=self.booking, property=self.property, total_amount=Decimal('999'),
                             status='cancelled')
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['food_charges'], '500.00')

    def test_paid_checkout_requires_payment_method(self):
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True, payment_method=None),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payment_method', response.data)

    def test_unparsable_discount_value_is_rejected(self):
        response = self.client.post(self.url, self.checkout_payload(
            skip_pre_bill=True, discount_type='percentage', discount_value='ten'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Bill.objects.exists())

    def test_fixed_discount_above_column_limit_is_rejected(self):
        response = self.client.post(self.url, self.checkout_payload(
            skip_pre_bill=True, discount_type='fixed', discount_value='1e30'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('discount_value', response.data)
        self.assertFalse(Bill.objects.exists())

    def test_checked_out_booking_cannot_checkout_again(self):
        self.booking.status = 'checked-out'
        self.booking.save()
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_booking(self):
        response = self.client.post(self.url, self.checkout_payload(booking_id=99999, skip_pre_bill=True),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_kitchen_user_cannot_checkout(self):
        kitchen = User.objects.create_user(username='kitchen', password='kitchen123', role='kitchen')
        self.client.force_authenticate(user=kitchen)
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch('billing.services.send_bill_whatsapp_task')
    def test_bill_is_queued_for_whatsapp_on_request(self, mock_task):
        response = self.client.post(self.url, self.checkout_payload(skip_pre_bill=True, send_whatsapp=True),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_task.delay.assert_called_once_with(response.data['id'])


class BillPreviewAPIViewTests(BillingAPITestBase):

    def test_preview_does_not_persist(self):
        response = self.client.post('/api/v1/billing/preview/', {
            'booking_id': self.booking.id,
            'gst_on_rooms': True,
            'discount_type': 'percentage',
            'discount_value': '10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_amount'], '2340.00')
        self.assertEqual(response.data['discount_amount'], '260.00')
        self.assertFalse(Bill.objects.exists())

    def test_manual_charge_above_column_limit_is_rejected(self):
        response = self.client.post('/api/v1/billing/preview/', {
            'booking_id': self.booking.id,
            'manual_charges': [{'name': 'Minibar', 'amount': '1e30'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('manual_charges', response.data)


class MergeBillsAPIViewTests(BillingAPITestBase):
    url = '/api/v1/billing/merge/'

    def setUp(self):
        super().setUp()
        today = timezone.localdate()
        self.booking_a = Booking.objects.create(
            property=self.property, room=self.room, guest=self.guest,
            check_in_date=today, check_out_date=today + timedelta(days=3), total_amount=Decimal('3000'),
        )
        self.booking_b = Booking.objects.create(
            property=self.property, room=self.room, guest=self.guest,
            check_in_date=today, check_out_date=today + timedelta(days=4), total_amount=Decimal('4000'),
        )
        Order.objects.create(booking=self.booking_b, property=self.property, total_amount=Decimal('500'),
                             status='completed')

    def test_merge_two_bookings(self):
        response = self.client.post(self.url, {
            'booking_ids': [self.booking_a.id, self.booking_b.id],
            'primary_booking_id': self.booking_a.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal'], '7500.00')
        self.assertEqual(response.data['gst_amount'], '1350.00')
        self.assertEqual(response.data['service_charge_amount'], '750.00')
        self.assertEqual(response.data['total_amount'], '9600.00')
        self.assertEqual(response.data['payment_status'], 'unpaid')
        self.assertEqual(response.data['booking'], self.booking_a.id)
        self.assertEqual(response.data['merged_booking_ids'], [self.booking_a.id, self.booking_b.id])
        self.assertTrue(response.data['is_merged'])

    def test_merge_leaves_existing_bills_alone(self):
        Bill.objects.create(booking=self.booking_b, total_amount=Decimal('4500'), payment_status='paid')
        response = self.client.post(self.url, {
            'booking_ids': [self.booking_a.id, self.booking_b.id],
            'primary_booking_id': self.booking_b.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Bill.objects.filter(booking=self.booking_b).count(), 2)
        self.assertEqual(Bill.objects.get(booking=self.booking_b, is_merged=False).payment_status, 'paid')

    def test_merge_needs_two_bookings(self):
        response = self.client.post(self.url, {
            'booking_ids': [self.booking_a.id, self.booking_a.id],
            'primary_booking_id': self.booking_a.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Bill.objects.exists())

    def test_primary_must_be_in_the_set(self):
        response = self.client.post(self.url, {
            'booking_ids': [self.booking_a.id, self.booking_b.id],
            'primary_booking_id': self.booking.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_booking_rejects_the_merge(self):
        response = self.client.post(self.url, {
            'booking_ids': [self.booking_a.id, 99999],
            'primary_booking_id': self.booking_a.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'One or more bookings not found')
        self.assertFalse(Bill.objects.exists())


class PendingBillAPIViewTests(BillingAPITestBase):

    def setUp(self):
        super().setUp()
        self.bill = Bill.objects.create(
            booking=self.booking, guest=self.guest, total_amount=Decimal('2600'),
            balance_amount=Decimal('2600'), payment_status='pending',
        )

    def test_pending_list(self):
        response = self.client.get(reverse('bill-pending'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['total_pending'], '2600.00')

    def test_mark_paid_clears_balance(self):
        response = self.client.patch(reverse('bill-mark-paid', args=[self.bill.id]),
                                     {'payment_method': 'upi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.payment_status, 'paid')
        self.assertEqual(self.bill.balance_amount, Decimal('0'))
        self.assertEqual(self.bill.online_amount, Decimal('2600.00'))
        self.assertIsNotNone(self.bill.paid_at)

    def test_mark_paid_twice_is_rejected(self):
        url = reverse('bill-mark-paid', args=[self.bill.id])
        self.client.patch(url, {'payment_method': 'cash'}, format='json')
        response = self.client.patch(url, {'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bill_details_include_orders(self):
        response = self.client.get(reverse('bill-full-details', args=[self.bill.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['orders']), 1)
        self.assertEqual(response.data['booking_details']['id'], self.booking.id)

    def test_bill_by_booking(self):
        response = self.client.get(reverse('bill-by-booking', args=[self.booking.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.bill.id)

    def test_export_returns_workbook(self):
        response = self.client.get(reverse('bill-export'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            response['Content-Type'], 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        )
        self.assertIn('Bill_Report.xlsx', response['Content-Disposition'])


class ExternalBillAPIViewTests(BillingAPITestBase):

    @patch('billing.services.AuthkeyWhatsAppConnector')
    def test_send_prebill_records_it(self, mock_connector):
        mock_connector.return_value.send_prebill.return_value = {'success': True, 'message': 'sent'}
        response = self.client.post('/api/v1/billing/send-prebill/', {
            'booking_id': self.booking.id,
            'bill_details': {'total_amount': '2600.00'},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        prebill = PreBill.objects.get(booking=self.booking)
        self.assertEqual(prebill.amount, Decimal('2600.00'))
        self.assertEqual(mock_connector.return_value.send_prebill.call_args.kwargs['phone'], '+91 9876543210')

    @patch('billing.services.AuthkeyWhatsAppConnector')
    def test_send_prebill_failure_writes_nothing(self, mock_connector):
        mock_connector.return_value.send_prebill.return_value = {'success': False, 'error': 'Template rejected'}
        response = self.client.post('/api/v1/billing/send-prebill/', {'booking_id': self.booking.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'Template rejected')
        self.assertFalse(PreBill.objects.exists())

    @patch('billing.services.create_razorpay_payment_link')
    def test_payment_link_unlocks_checkout(self, mock_create):
        mock_create.return_value = {
            'success': True,
            'reference_id': f'booking_{self.booking.id}_1700000000000',
            'payment_link': {'id': 'plink_Test123', 'short_url': 'https://rzp.io/i/test123'},
        }
        response = self.client.post('/api/v1/billing/payment-link/generate/', {
            'booking_id': self.booking.id,
            'bill_details': {'gst_on_rooms': True},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['payment_link']['short_url'], 'https://rzp.io/i/test123')
        self.assertEqual(mock_create.call_args.kwargs['amount'], Decimal('2600.00'))

        checkout = self.client.post('/api/v1/billing/checkout/', self.checkout_payload(), format='json')
        self.assertEqual(checkout.status_code, status.HTTP_200_OK)

    @patch('billing.services.create_razorpay_payment_link')
    def test_payment_link_failure(self, mock_create):
        mock_create.return_value = {'success': False, 'error': 'Authentication failed'}
        response = self.client.post('/api/v1/billing/payment-link/generate/', {'booking_id': self.booking.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertFalse(PaymentLink.objects.exists())

    @patch('billing.services.create_razorpay_payment_link')
    def test_bill_details_toggles_are_parsed_as_booleans(self, mock_create):
        mock_create.return_value = {
            'success': True,
            'reference_id': f'booking_{self.booking.id}_1700000000000',
            'payment_link': {'id': 'plink_NoGst', 'short_url': 'https://rzp.io/i/nogst'},
        }
        response = self.client.post('/api/v1/billing/payment-link/generate/', {
            'booking_id': self.booking.id,
            'bill_details': {'gst_on_rooms': 'false'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(mock_create.call_args.kwargs['amount'], Decimal('2500.00'))

    @patch('billing.services.AuthkeyWhatsAppConnector')
    def test_malformed_bill_details_are_rejected(self, mock_connector):
        response = self.client.post('/api/v1/billing/send-prebill/', {
            'booking_id': self.booking.id,
            'bill_details': {'manual_charges': 5},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid bill details', response.data['error'])
        mock_connector.return_value.send_prebill.assert_not_called()
        self.assertFalse(PreBill.objects.exists())


class BillingPropertyScopeTests(BillingAPITestBase):

    def setUp(self):
        super().setUp()
        self.other_property = Property.objects.create(name='Beach Front Cottage', location='Varkala')
        self.other_manager = User.objects.create_user(
            username='othermanager', password='othermanager123', role='manager',
            assigned_property_id=self.other_property.id,
        )
        self.client.force_authenticate(user=self.other_manager)

    def test_checkout_of_another_property_is_not_found(self):
        response = self.client.post('/api/v1/billing/checkout/', self.checkout_payload(skip_pre_bill=True),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Bill.objects.exists())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'checked-in')

    def test_preview_of_another_property_is_not_found(self):
        response = self.client.post('/api/v1/billing/preview/', {'booking_id': self.booking.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_merge_of_another_property_is_not_found(self):
        second = Booking.objects.create(
            property=self.property, room=self.room, guest=self.guest,
            check_in_date=timezone.localdate(), check_out_date=timezone.localdate() + timedelta(days=1),
            total_amount=Decimal('1000'),
        )
        response = self.client.post('/api/v1/billing/merge/', {
            'booking_ids': [self.booking.id, second.id],
            'primary_booking_id': self.booking.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Bill.objects.exists())

    def test_mark_paid_of_another_property_is_not_found(self):
        bill = Bill.objects.create(booking=self.booking, guest=self.guest, total_amount=Decimal('2600'),
                                   balance_amount=Decimal('2600'), payment_status='pending')
        response = self.client.patch(reverse('bill-mark-paid', args=[bill.id]), {'payment_method': 'cash'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        bill.refresh_from_db()
        self.assertEqual(bill.payment_status, 'pending')

    @patch('billing.services.create_razorpay_payment_link')
    def test_payment_link_for_another_property_is_not_found(self, mock_create):
        response = self.client.post('/api/v1/billing/payment-link/generate/', {'booking_id': self.booking.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        mock_create.assert_not_called()

    def test_manager_can_checkout_own_property(self):
        manager = User.objects.create_user(username='hillmanager', password='hillmanager123', role='manager',
                                           assigned_property_id=self.property.id)
        self.client.force_authenticate(user=manager)
        response = self.client.post('/api/v1/billing/checkout/', self.checkout_payload(skip_pre_bill=True),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class RazorpayWebhookTests(BillingAPITestBase):
    url = '/api/v1/razorpay-webhook/'

    def setUp(self):
        super().setUp()
        self.bill = Bill.objects.create(
            booking=self.booking, total_amount=Decimal('2600'), balance_amount=Decimal('2600'),
            payment_status='pending',
        )
        self.link = PaymentLink.objects.create(
            booking=self.booking, link_id='plink_Test123', reference_id='booking_1_1',
            short_url='https://rzp.io/i/test123', amount=Decimal('2600'),
        )
        self.webhook_client = APIClient()

    def post_event(self, event, signature=None):
        body = json.dumps(event).encode()
        if signature is None:
            signature = hmac.new(b'webhook-test-secret', body, hashlib.sha256).hexdigest()
        return self.webhook_client.post(self.url, data=body, content_type='application/json',
                                        HTTP_X_RAZORPAY_SIGNATURE=signature)

    def paid_event(self, link_id='plink_Test123'):
        return {
            'event': 'payment_link.paid',
            'payload': {
                'payment_link': {'entity': {'id': link_id, 'status': 'paid'}},
                'payment': {'entity': {'id': 'pay_Test456', 'amount': 260000}},
            },
        }

    def test_paid_link_settles_pending_bill(self):
        response = self.post_event(self.paid_event())
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.link.refresh_from_db()
        self.bill.refresh_from_db()
        self.assertEqual(self.link.status, 'paid')
        self.assertEqual(self.link.razorpay_payment_id, 'pay_Test456')
        self.assertEqual(self.bill.payment_status, 'paid')
        self.assertEqual(self.bill.payment_method, 'razorpay')

    def test_invalid_signature_is_rejected(self):
        response = self.post_event(self.paid_event(), signature='not-a-signature')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.link.refresh_from_db()
        self.assertEqual(self.link.status, 'created')

    def test_unknown_link(self):
        response = self.post_event(self.paid_event(link_id='plink_missing'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ConnectorTests(SimpleTestCase):

    def test_clean_indian_phone_number(self):
        for raw in ('+91 8700553523', '918700553523', '0091 8700553523', '08700553523', '8700553523'):
            self.assertEqual(clean_indian_phone_number(raw), '8700553523')
        with self.assertRaises(InvalidPhoneNumber):
            clean_indian_phone_number('12345')

    @override_settings(AUTHKEY_API_KEY='')
    def test_whatsapp_without_key(self):
        result = AuthkeyWhatsAppConnector().send_template('8700553523', '101', ['Anita'])
        self.assertEqual(result, {'success': False, 'error': 'WhatsApp API key not configured'})

    @override_settings(AUTHKEY_API_KEY='test-authkey')
    @patch('utils.whatsapp.whatsapp_connector.requests.post')
    def test_whatsapp_payload(self, mock_post):
        mock_post.return_value = MagicMock(ok=True)
        result = AuthkeyWhatsAppConnector().send_template('+91 8700553523', '101', ['Anita', '2600.00'])

        self.assertTrue(result['success'])
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(kwargs['headers']['Authorization'], 'Basic test-authkey')
        self.assertEqual(kwargs['json'], {
            'country_code': '91',
            'mobile': '8700553523',
            'wid': '101',
            'type': 'text',
            'bodyValues': {'1': 'Anita', '2': '2600.00'},
        })

    @patch('utils.razorpay.core.razorpay.Client')
    def test_payment_link_request(self, mock_client):
        mock_client.return_value.payment_link.create.return_value = {
            'id': 'plink_1', 'short_url': 'https://rzp.io/i/1',
        }
        result = create_razorpay_payment_link(42, Decimal('2600.50'), 'Anita Rao', '9876543210')

        self.assertTrue(result['success'])
        self.assertTrue(result['reference_id'].startswith('booking_42_'))
        link_data = mock_client.return_value.payment_link.create.call_args.args[0]
        self.assertEqual(link_data['amount'], 260050)
        self.assertEqual(link_data['currency'], 'INR')
        self.assertEqual(link_data['customer']['contact'], '9876543210')
        self.assertNotIn('email', link_data['customer'])
