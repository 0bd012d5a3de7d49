import logging
from dataclasses import dataclass
from typing import List

from models.booking import Booking
from models.status import BookingStatus
from utils.errors import (
    AlreadyPaid,
    InvalidTransition,
    NotFound,
    PaymentNotInitialized,
    PaymentNotSucceeded,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentInit:
    amount_minor_units: int
    currency: str
    client_secret: str

    def to_dict(self) -> dict:
        return {
            "amount": self.amount_minor_units,
            "currency": self.currency,
            "client_secret": self.client_secret,
        }


class PaymentCoordinator:
    """
    Couples a booking to a Stripe PaymentIntent.

    ``confirm_payment`` is the only place a booking becomes confirmed, and
    it always asks the gateway first; nothing the client says about a
    payment is trusted.
    """

    def __init__(self, store, gateway, amount_minor_units: int, currency: str, method_types: List[str]):
        self.store = store
        self.gateway = gateway
        self.amount_minor_units = amount_minor_units
        self.currency = currency
        self.method_types = list(method_types)

    def initialize_payment(self, booking: Booking) -> PaymentInit:
        if booking.booking_status == BookingStatus.CONFIRMED:
            raise AlreadyPaid()
        if booking.is_terminal:
            raise InvalidTransition(f"Cannot pay for a {booking.status} booking")

        # Same booking state -> same key, so a retried create cannot charge twice
        intent = self.gateway.create_intent(
            self.amount_minor_units,
            self.currency,
            self.method_types,
            idempotency_key=f"booking-{booking.id}-v{booking.version}",
        )

        updated = self.store.update_by_id(
            booking.id,
            {"payment_intent_ref": intent.id},
            expected_version=booking.version,
        )
        if updated is None:
            raise NotFound()

        logger.info("payment_initialized booking=%s intent=%s", booking.id, intent.id)
        return PaymentInit(self.amount_minor_units, self.currency, intent.client_secret or "")

    def confirm_payment(self, booking: Booking) -> Booking:
        if not booking.payment_intent_ref:
            raise PaymentNotInitialized()
        booking.check_transition(BookingStatus.CONFIRMED)

        intent = self.gateway.retrieve_intent(booking.payment_intent_ref)
        if not self.gateway.is_succeeded(intent):
            logger.info("payment_not_succeeded booking=%s status=%s", booking.id, intent.status)
            raise PaymentNotSucceeded(details={"payment_status": intent.status})

        if booking.booking_status == BookingStatus.CONFIRMED:
            return booking

        updated = self.store.update_by_id(
            booking.id,
            {"status": BookingStatus.CONFIRMED},
            expected_version=booking.version,
        )
        if updated is None:
            raise NotFound()

        logger.info("payment_confirmed booking=%s intent=%s", booking.id, intent.id)
        return updated
