import logging
from .slack_connector import SlackConnector


class SlackErrorHandler(logging.Handler):
    """Posts ERROR records from the billing services to the ops channel."""

    def emit(self, record):
        try:
            log_entry = self.format(record)
            SlackConnector().send_message(f":rotating_light: *HOSTEZEE ERROR*: \n```{log_entry}```")
        except Exception:
            self.handleError(record)
