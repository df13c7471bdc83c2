import razorpay
import logging
from datetime import timedelta
from decimal import Decimal
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


def get_razorpay_client():
    return razorpay.Client(auth=(settings.RAZORPAY_API_KEY, settings.RAZORPAY_API_SECRET))


def to_paise(amount):
    """Razorpay takes amounts as whole paise."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1')))


def create_razorpay_payment_link(booking_id, amount, customer_name, customer_phone=None,
                                 customer_email=None, description=None):
    """
    Create a Razorpay payment link for a booking's balance.
    Args:
        booking_id (int): Booking the link collects for; part of the reference id.
        amount (Decimal/str): Amount in rupees.
        customer_name (str)
        customer_phone (str, optional)
        customer_email (str, optional)
        description (str, optional)
    Returns:
        dict: {'success': True, 'payment_link': {...}, 'reference_id': ...} or
              {'success': False, 'error': ...}
    """
    if not settings.RAZORPAY_API_KEY or not settings.RAZORPAY_API_SECRET:
        return {"success": False, "error": "Razorpay credentials not configured"}

    reference_id = f"booking_{booking_id}_{int(timezone.now().timestamp() * 1000)}"
    expire_by = timezone.now() + timedelta(days=settings.RAZORPAY_LINK_EXPIRY_DAYS)
    link_data = {
        "amount": to_paise(amount),
        "currency": "INR",
        "accept_partial": False,
        "reference_id": reference_id,
        "description": description or f"Payment for booking #{booking_id}",
        "customer": {"name": customer_name},
        "notify": {"sms": bool(customer_phone), "email": bool(customer_email)},
        "reminder_enable": True,
        "notes": {"booking_id": str(booking_id)},
        "expire_by": int(expire_by.timestamp()),
    }
    if customer_phone:
        link_data["customer"]["contact"] = customer_phone
    if customer_email:
        link_data["customer"]["email"] = customer_email

    client = get_razorpay_client()
    try:
        payment_link = client.payment_link.create(link_data)
        logger.info(f"Razorpay payment link created: {payment_link.get('id')} for booking {booking_id}")
        return {"success": True, "payment_link": payment_link, "reference_id": reference_id}
    except razorpay.errors.BadRequestError as e:
        logger.error(f"Razorpay BadRequestError creating payment link: {e}")
        return {"success": False, "error": str(e)}
    except razorpay.errors.ServerError as e:
        logger.error(f"Razorpay ServerError creating payment link: {e}")
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.error(f"Unexpected error creating Razorpay payment link: {e}")
        return {"success": False, "error": str(e)}
