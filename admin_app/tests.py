from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.test import APIClient
from rest_framework import status
from utils.event_bus import EventBus, EventTypes, ListenerLimitExceeded
from .audit import AuditService
from .models import User, AuditLog


class EventBusTests(SimpleTestCase):
    def setUp(self):
        self.bus = EventBus(max_history=3, max_listeners=2)

    def test_publish_reaches_type_and_wildcard_subscribers(self):
        typed, everything = [], []
        self.bus.subscribe(EventTypes.BILL_GENERATED, typed.append)
        self.bus.subscribe_all(everything.append)

        event = self.bus.publish(EventTypes.BILL_GENERATED, {'bill_id': 1}, user_id=5, property_id=2)
        self.bus.publish(EventTypes.ORDER_PLACED, {'order_id': 9})

        self.assertEqual(typed, [event])
        self.assertEqual([e['type'] for e in everything], [EventTypes.BILL_GENERATED, EventTypes.ORDER_PLACED])
        self.assertEqual(event['data'], {'bill_id': 1})
        self.assertEqual(event['property_id'], 2)
        self.assertTrue(event['id'])
        self.assertTrue(event['timestamp'])

    def test_unsubscribe(self):
        received = []
        unsubscribe = self.bus.subscribe(EventTypes.BILL_PAID, received.append)
        unsubscribe()
        self.bus.publish(EventTypes.BILL_PAID, {})
        self.assertEqual(received, [])
        self.assertEqual(self.bus.listener_count(EventTypes.BILL_PAID), 0)

    def test_history_keeps_only_recent_events(self):
        for number in range(5):
            self.bus.publish(EventTypes.ORDER_UPDATED, {'n': number})
        recent = self.bus.recent_events(limit=10)
        self.assertEqual([e['data']['n'] for e in recent], [2, 3, 4])
        self.assertEqual([e['data']['n'] for e in self.bus.recent_events(limit=1)], [4])

    def test_listener_limit(self):
        self.bus.subscribe(EventTypes.BILL_PAID, lambda event: None)
        self.bus.subscribe(EventTypes.BILL_PAID, lambda event: None)
        with self.assertRaises(ListenerLimitExceeded):
            self.bus.subscribe(EventTypes.BILL_PAID, lambda event: None)

    def test_failing_handler_does_not_stop_others(self):
        received = []

        def broken(event):
            raise RuntimeError("boom")

        self.bus.subscribe(EventTypes.PAYMENT_RECEIVED, broken)
        self.bus.subscribe(EventTypes.PAYMENT_RECEIVED, received.append)
        with self.assertLogs('utils.event_bus', level='ERROR'):
            self.bus.publish(EventTypes.PAYMENT_RECEIVED, {'amount': '10.00'})
        self.assertEqual(len(received), 1)


class AuditServiceTests(TestCase):
    def setUp(self):
        self.bus = EventBus()
        self.user = User.objects.create_user(username='owner', password='owner123', role='admin')

    def test_log_update_writes_row_and_event(self):
        received = []
        self.bus.subscribe(EventTypes.AUDIT_LOG, received.append)

        entry = AuditService(self.bus).log_update('booking', 7, self.user, {'status': 'confirmed'},
                                                   {'status': 'checked-in'})

        self.assertEqual(entry.action, 'update')
        self.assertEqual(entry.entity_id, '7')
        self.assertEqual(entry.user_role, 'admin')
        self.assertEqual(entry.change_set['after'], {'status': 'checked-in'})
        self.assertEqual(received[0]['data']['audit_log_id'], entry.id)
        self.assertIn('entity:booking:7', received[0]['metadata']['predicates'])
        self.assertIn(f'user:{self.user.id}', received[0]['metadata']['predicates'])

    def test_system_actions_have_no_user(self):
        entry = AuditService(self.bus).log_custom_action('bill', 3, 'merge', None, metadata={'source': 'webhook'})
        self.assertIsNone(entry.user)
        self.assertEqual(entry.metadata, {'source': 'webhook'})


class AuditLogAPIViewTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(username='admin', password='admin123', role='admin')
        self.staff = User.objects.create_user(username='staff', password='staff123', role='staff')
        service = AuditService(EventBus())
        service.log_create('booking', 1, self.admin, {'status': 'confirmed'})
        service.log_create('bill', 2, self.admin, {'total_amount': '2600.00'})

    def test_admin_filters_by_entity(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('audit-logs'), {'entity_type': 'bill'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['entity_id'], '2')
        self.assertEqual(response.data[0]['user_details']['username'], 'admin')

    def test_staff_is_forbidden(self):
        self.client.force_authenticate(user=self.staff)
        response = self.client.get(reverse('audit-logs'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_recent_events(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('recent-events'), {'limit': 'many'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get(reverse('recent-events'), {'limit': 5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertLessEqual(len(response.data), 5)
        self.assertEqual(AuditLog.objects.count(), 2)
