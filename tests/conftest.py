from dataclasses import replace
from datetime import datetime, timezone

import pytest

from app import create_app
from config import TestConfig
from models import db
from services.payment_gateway import PaymentIntent, StripePaymentGateway
from utils.errors import GatewayUnavailable

SLOT = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)


class FakeGateway:
    """In-memory stand-in for Stripe PaymentIntents."""

    def __init__(self):
        self.intents = {}
        self.by_key = {}
        self.create_calls = []
        self.retrieve_calls = []
        self.fail_creates = 0
        self.fail_retrieves = 0

    def create_intent(self, amount_minor_units, currency, method_types, idempotency_key=None):
        self.create_calls.append((amount_minor_units, currency, list(method_types), idempotency_key))
        if self.fail_creates:
            self.fail_creates -= 1
            raise GatewayUnavailable()
        if idempotency_key and idempotency_key in self.by_key:
            return self.intents[self.by_key[idempotency_key]]
        intent_id = f"pi_{len(self.intents) + 1}"
        intent = PaymentIntent(
            id=intent_id,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret_abc",
        )
        self.intents[intent_id] = intent
        if idempotency_key:
            self.by_key[idempotency_key] = intent_id
        return intent

    def retrieve_intent(self, intent_id):
        self.retrieve_calls.append(intent_id)
        if self.fail_retrieves:
            self.fail_retrieves -= 1
            raise GatewayUnavailable()
        return self.intents[intent_id]

    def set_status(self, intent_id, status):
        self.intents[intent_id] = replace(self.intents[intent_id], status=status)

    is_succeeded = staticmethod(StripePaymentGateway.is_succeeded)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    app = create_app(TestConfig, gateway=gateway)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions["booking_service"]


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def payments(service):
    return service.payments


def booking_payload(slot=SLOT, **overrides):
    data = {
        "slot_start": slot.isoformat(),
        "customer_name": "Ada Lovelace",
        "customer_email": "Ada@Example.com",
    }
    data.update(overrides)
    return data
