import logging
from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class AdminAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'admin_app'

    def ready(self):
        from utils.event_bus import EventBus

        # Built once per process; views pass it down to the services that publish
        self.event_bus = EventBus(
            max_history=settings.EVENT_BUS_MAX_HISTORY,
            max_listeners=settings.EVENT_BUS_MAX_LISTENERS,
        )
        logger.debug("Event bus initialised")


def get_event_bus():
    from django.apps import apps
    return apps.get_app_config('admin_app').event_bus
