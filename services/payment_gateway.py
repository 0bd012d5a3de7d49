"""
Stripe PaymentIntent client.

Only the calls the booking flow needs are exposed. The client is built
without automatic network retries; a timed-out create is reported as
GatewayUnavailable and any retry goes through the caller with the same
idempotency key.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import stripe

from utils.errors import GatewayUnavailable

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    client_secret: Optional[str] = None


class StripePaymentGateway:
    def __init__(self, api_key: Optional[str], timeout_seconds: int = 10, client=None):
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self._api_key:
                raise GatewayUnavailable("Payment provider not configured")
            self._client = stripe.StripeClient(
                self._api_key,
                max_network_retries=0,
                http_client=stripe.RequestsClient(timeout=self._timeout_seconds),
            )
        return self._client

    @staticmethod
    def _wrap(intent) -> PaymentIntent:
        return PaymentIntent(
            id=intent.id,
            status=intent.status,
            client_secret=getattr(intent, "client_secret", None),
        )

    def create_intent(self, amount_minor_units: int, currency: str, method_types: List[str],
                      idempotency_key: Optional[str] = None) -> PaymentIntent:
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        try:
            intent = self.client.payment_intents.create(
                params={
                    "amount": amount_minor_units,
                    "currency": currency,
                    "payment_method_types": list(method_types),
                },
                options=options,
            )
        except stripe.StripeError as exc:
            logger.warning("stripe_create_intent_failed: %s", type(exc).__name__)
            raise GatewayUnavailable() from exc
        return self._wrap(intent)

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            intent = self.client.payment_intents.retrieve(intent_id)
        except stripe.StripeError as exc:
            logger.warning("stripe_retrieve_intent_failed id=%s: %s", intent_id, type(exc).__name__)
            raise GatewayUnavailable() from exc
        return self._wrap(intent)

    @staticmethod
    def is_succeeded(intent: PaymentIntent) -> bool:
        return intent.status == SUCCEEDED
