import logging
from celery import shared_task
from utils.whatsapp.whatsapp_connector import AuthkeyWhatsAppConnector

logger = logging.getLogger(__name__)


@shared_task
def send_bill_whatsapp_task(bill_id):
    """
    Celery task to send the final bill to the guest on WhatsApp.
    """
    from billing.models import Bill

    try:
        bill = Bill.objects.select_related('booking__property', 'guest').get(id=bill_id)
        guest = bill.guest or bill.booking.guest
        if not guest or not guest.phone:
            return f"Bill {bill_id} has no guest phone, WhatsApp skipped"

        result = AuthkeyWhatsAppConnector().send_bill(
            phone=guest.phone,
            guest_name=guest.full_name,
            property_name=bill.booking.property.name,
            bill_id=bill.id,
            total_amount=bill.total_amount,
            payment_status=bill.payment_status,
        )
        if not result.get("success"):
            logger.warning(f"Bill {bill_id} WhatsApp failed: {result.get('error')}")
            return f"WhatsApp sending failed: {result.get('error')}"
        return f"Bill {bill_id} sent on WhatsApp to {guest.phone}"

    except Bill.DoesNotExist:
        return f"Bill {bill_id} not found"
    except Exception as e:
        logger.error(f"send_bill_whatsapp_task error for bill {bill_id}: {e}")
        return f"WhatsApp sending failed: {str(e)}"
