import logging
import threading
import uuid
from collections import deque
from django.utils import timezone

logger = logging.getLogger(__name__)

ALL_EVENTS = '*'


class EventTypes:
    BOOKING_CREATED = 'booking.created'
    BOOKING_UPDATED = 'booking.updated'
    BOOKING_CANCELLED = 'booking.cancelled'
    BOOKING_CHECKED_IN = 'booking.checked_in'
    BOOKING_CHECKED_OUT = 'booking.checked_out'
    PAYMENT_RECEIVED = 'payment.received'
    ORDER_PLACED = 'order.placed'
    ORDER_UPDATED = 'order.updated'
    ROOM_STATUS_CHANGED = 'room.status_changed'
    BILL_GENERATED = 'bill.generated'
    BILL_PAID = 'bill.paid'
    AUDIT_LOG = 'audit_log'


class ListenerLimitExceeded(Exception):
    pass


class EventBus:
    """
    In-process publish/subscribe bus.

    One instance is built when the process starts and handed to whoever
    publishes. History keeps only the most recent events and is lost on
    restart, so it is not an audit trail (see AuditLog for that).
    """

    def __init__(self, max_history=100, max_listeners=50):
        self.max_listeners = max_listeners
        self._history = deque(maxlen=max_history)
        self._handlers = {}
        self._lock = threading.Lock()

    def publish(self, event_type, data=None, user_id=None, property_id=None, metadata=None):
        event = {
            'id': str(uuid.uuid4()),
            'type': event_type,
            'timestamp': timezone.now().isoformat(),
            'user_id': user_id,
            'property_id': property_id,
            'data': data or {},
            'metadata': metadata or {},
        }
        with self._lock:
            self._history.append(event)
            handlers = list(self._handlers.get(event_type, [])) + list(self._handlers.get(ALL_EVENTS, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"EventBus handler failed for {event_type}: {e}")

        logger.info(f"[EventBus] Published: {event_type} id={event['id']} property={property_id}")
        return event

    def subscribe(self, event_type, handler):
        with self._lock:
            handlers = self._handlers.setdefault(event_type, [])
            if len(handlers) >= self.max_listeners:
                raise ListenerLimitExceeded(f"Max {self.max_listeners} listeners reached for '{event_type}'")
            handlers.append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers.get(event_type, []):
                    self._handlers[event_type].remove(handler)

        return unsubscribe

    def subscribe_all(self, handler):
        return self.subscribe(ALL_EVENTS, handler)

    def recent_events(self, limit=10):
        with self._lock:
            history = list(self._history)
        if limit <= 0:
            return []
        return history[-limit:]

    def listener_count(self, event_type):
        with self._lock:
            return len(self._handlers.get(event_type, []))
