import logging
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from django.conf import settings

logger = logging.getLogger(__name__)


class SlackConnector:
    def __init__(self, token=None, channel=None):
        self.client = WebClient(token=token or settings.SLACK_BOT_TOKEN)
        self.channel = channel or settings.SLACK_CHANNEL

    def send_message(self, message):
        try:
            return self.client.chat_postMessage(channel=self.channel, text=message)
        except SlackApiError as e:
            # not logger.error: this runs inside the error handler itself
            logger.warning(f"Slack API Error: {e.response['error']}")
            return None
