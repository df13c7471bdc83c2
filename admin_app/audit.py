import logging
from django.utils import timezone
from .models import AuditLog
from utils.event_bus import EventTypes

logger = logging.getLogger(__name__)


class AuditService:
    """
    Writes AuditLog rows and announces them on the event bus.

    The bus is passed in by the caller so tests and workers can use their own.
    """

    def __init__(self, event_bus):
        self.event_bus = event_bus

    def _log(self, entity_type, entity_id, action, user, change_set=None, metadata=None):
        audit_entry = AuditLog.objects.create(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            user=user if user and user.is_authenticated else None,
            user_role=getattr(user, 'role', None),
            property_context=getattr(user, 'assigned_property_id', None),
            change_set=change_set,
            metadata=metadata,
        )

        self.event_bus.publish(
            EventTypes.AUDIT_LOG,
            data={
                'audit_log_id': audit_entry.id,
                'entity_type': entity_type,
                'entity_id': str(entity_id),
                'action': action,
                'timestamp': timezone.now().isoformat(),
            },
            user_id=audit_entry.user_id,
            metadata={
                'predicates': [
                    f"entity:{entity_type}",
                    f"entity:{entity_type}:{entity_id}",
                    f"user:{audit_entry.user_id}",
                    f"action:{action}",
                ]
            },
        )
        return audit_entry

    def log_create(self, entity_type, entity_id, user, after_data, metadata=None):
        return self._log(entity_type, entity_id, 'create', user, {'after': after_data}, metadata)

    def log_update(self, entity_type, entity_id, user, before_data, after_data, metadata=None):
        return self._log(entity_type, entity_id, 'update', user, {'before': before_data, 'after': after_data}, metadata)

    def log_delete(self, entity_type, entity_id, user, before_data, metadata=None):
        return self._log(entity_type, entity_id, 'delete', user, {'before': before_data}, metadata)

    def log_custom_action(self, entity_type, entity_id, action, user, change_set=None, metadata=None):
        return self._log(entity_type, entity_id, action, user, change_set, metadata)
