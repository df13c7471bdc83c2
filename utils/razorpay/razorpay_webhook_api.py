from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator
from rest_framework.views import APIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from django.conf import settings
import hmac
import hashlib
import json
import logging
from admin_app.apps import get_event_bus

logger = logging.getLogger(__name__)


def verify_webhook_signature(payload, signature):
    secret = settings.RAZORPAY_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    expected_signature = hmac.new(
        bytes(secret, 'utf-8'),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected_signature, signature)


@method_decorator(csrf_exempt, name='dispatch')
class RazorpayWebhookAPIView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        try:
            payload = request.body
            signature = request.headers.get("X-Razorpay-Signature")

            if not verify_webhook_signature(payload, signature):
                logger.error("Invalid Razorpay webhook signature")
                return Response({'error': 'Invalid signature'}, status=status.HTTP_400_BAD_REQUEST)

            event_data = json.loads(payload)
            event_type = event_data.get("event")

            if event_type == "payment_link.paid":
                return self.process_payment_link(event_data)

            logger.info(f"Unhandled Razorpay event: {event_type}")
            return Response({'status': 'Event ignored'}, status=status.HTTP_200_OK)

        except Exception as e:
            logger.error(f"Razorpay Webhook Processing Error: {e}")
            return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    def process_payment_link(self, event_data):
        """ Marks the payment link paid and settles the booking's pending bill """
        from billing.services import record_payment_link_paid

        link_entity = event_data["payload"]["payment_link"]["entity"]
        payment_entity = event_data["payload"].get("payment", {}).get("entity", {})
        link_id = link_entity["id"]

        payment_link = record_payment_link_paid(link_id, payment_entity.get("id"), get_event_bus())
        if payment_link is None:
            logger.error(f"Payment link not found for Razorpay link ID: {link_id}")
            return Response({'error': 'Payment link not found'}, status=status.HTTP_404_NOT_FOUND)

        return Response({'status': 'Payment link processed successfully'}, status=status.HTTP_200_OK)
