import re
import logging
import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class InvalidPhoneNumber(ValueError):
    pass


def clean_indian_phone_number(phone):
    """
    Reduce an Indian mobile number to its 10 digits.

    "+91 8700553523", "0091 8700553523", "08700553523" and "8700553523" all
    become "8700553523". Anything that does not end up as 10 digits raises.
    """
    cleaned = re.sub(r'\D', '', str(phone or ''))
    while len(cleaned) > 10:
        if cleaned.startswith('0091') and len(cleaned) >= 14:
            cleaned = cleaned[4:]
        elif cleaned.startswith('91') and len(cleaned) >= 12:
            cleaned = cleaned[2:]
        elif cleaned.startswith('0') and len(cleaned) == 11:
            cleaned = cleaned[1:]
        else:
            break

    if len(cleaned) != 10:
        raise InvalidPhoneNumber(
            f"Invalid Indian phone number: expected 10 digits, got {len(cleaned)} (original: {phone})"
        )
    return cleaned


class AuthkeyWhatsAppConnector:
    """Template messages through the authkey.io WhatsApp API."""

    def __init__(self):
        self.auth_key = settings.AUTHKEY_API_KEY
        self.api_url = settings.AUTHKEY_API_URL
        self.country_code = settings.WHATSAPP_COUNTRY_CODE

    def send_template(self, phone, template_id, variables=None):
        """
        :param phone: guest phone in any common Indian format
        :param template_id: authkey.io template id (wid)
        :param variables: ordered template values, sent as {"1": .., "2": ..}
        :return: {"success": bool, "message"|"error": str}
        """
        if not self.auth_key:
            logger.error("AUTHKEY_API_KEY not configured")
            return {"success": False, "error": "WhatsApp API key not configured"}

        try:
            mobile = clean_indian_phone_number(phone)
        except InvalidPhoneNumber as e:
            logger.error(f"WhatsApp send skipped: {e}")
            return {"success": False, "error": str(e)}

        payload = {
            "country_code": self.country_code,
            "mobile": mobile,
            "wid": template_id,
            "type": "text",
            "bodyValues": {str(index + 1): str(value) for index, value in enumerate(variables or [])},
        }
        headers = {
            "Authorization": f"Basic {self.auth_key}",
            "Content-Type": "application/json",
        }

        try:
            logger.info(f"Sending WhatsApp template {template_id} to +{self.country_code}-{mobile}")
            response = requests.post(self.api_url, headers=headers, json=payload, timeout=15)
            if response.ok:
                return {"success": True, "message": "WhatsApp message sent successfully"}
            try:
                data = response.json()
            except ValueError:
                data = {}
            logger.error(f"authkey.io error {response.status_code}: {data}")
            return {"success": False, "error": data.get("message") or "Failed to send WhatsApp message"}
        except requests.RequestException as e:
            logger.error(f"WhatsApp request failed: {e}")
            return {"success": False, "error": str(e) or "Network error"}

    def send_prebill(self, phone, guest_name, property_name, booking_id, amount):
        return self.send_template(
            phone,
            settings.AUTHKEY_PREBILL_TEMPLATE_ID,
            [guest_name, property_name, booking_id, amount],
        )

    def send_bill(self, phone, guest_name, property_name, bill_id, total_amount, payment_status):
        return self.send_template(
            phone,
            settings.AUTHKEY_BILL_TEMPLATE_ID,
            [guest_name, property_name, bill_id, total_amount, payment_status],
        )
