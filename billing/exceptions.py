class BillingError(Exception):
    """Base class for billing failures that map to a client error."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class BookingNotFound(BillingError):
    pass


class CheckoutBlocked(BillingError):
    """A business rule stops the checkout; nothing was written."""
    pass


class MergeValidationError(BillingError):
    pass


class ExternalServiceError(BillingError):
    """WhatsApp or Razorpay call failed."""
    pass


class BillNotFound(BillingError):
    pass
