"""
Booking error taxonomy.

Every rejection carries a stable machine-checkable ``kind`` plus a
human-readable ``message``. Nothing from a stack trace or the payment
provider's response is ever copied into these.
"""


class BookingError(Exception):
    kind = "error"
    default_message = "Booking request failed"

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BookingError):
    kind = "validation_error"
    default_message = "Invalid booking input"


class SlotConflict(BookingError):
    kind = "slot_conflict"
    default_message = "Slot already booked"


class NotFound(BookingError):
    kind = "not_found"
    default_message = "Booking not found"


class AlreadyPaid(BookingError):
    kind = "already_paid"
    default_message = "Booking already paid"


class PaymentNotInitialized(BookingError):
    kind = "payment_not_initialized"
    default_message = "Booking payment not processed"


class PaymentNotSucceeded(BookingError):
    kind = "payment_not_succeeded"
    default_message = "Payment not succeeded"


class InvalidTransition(BookingError):
    kind = "invalid_transition"
    default_message = "Booking status change not allowed"


class ConcurrencyConflict(BookingError):
    kind = "concurrency_conflict"
    default_message = "Booking was modified concurrently"


class GatewayUnavailable(BookingError):
    kind = "gateway_unavailable"
    default_message = "Payment provider unavailable"
