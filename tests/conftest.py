from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gym_payments.config import Settings
from gym_payments.errors import TenantNotFound
from gym_payments.models import CheckoutOrder, CheckoutSession, PaymentDetails, TenantCredentials
from gym_payments.signature import build_manifest, sign

WEBHOOK_SECRET = "whsec_gym_test"
ACCESS_TOKEN = "APP_USR-gym-token"


def signed_header(secret, resource_id, request_id, ts="1704908010"):
    return f"ts={ts},v1={sign(build_manifest(resource_id, request_id, ts), secret)}"


class FakeCredentials:
    def __init__(self, *creds, error=None):
        self.creds = {c.gym_slug: c for c in creds}
        self.error = error
        self.calls = []

    def resolve(self, gym_slug):
        self.calls.append(gym_slug)
        if self.error:
            raise self.error
        if gym_slug not in self.creds:
            raise TenantNotFound(f"gym '{gym_slug}' not found")
        return self.creds[gym_slug]


class FakeGateway:
    def __init__(self, payment=None, error=None):
        self.payment = payment
        self.error = error
        self.sessions = []
        self.lookups = []

    def create_session(self, access_token, order):
        self.sessions.append((access_token, order))
        if self.error:
            raise self.error
        return CheckoutSession(
            preference_id="pref_123",
            init_point="https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref_123",
            sandbox_init_point="https://sandbox.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref_123",
        )

    def fetch_payment(self, access_token, payment_id):
        self.lookups.append((access_token, payment_id))
        if self.error:
            raise self.error
        return self.payment


class FakeNotifier:
    def __init__(self, error=None):
        self.error = error
        self.events = []

    def deliver(self, event):
        self.events.append(event)
        if self.error:
            raise self.error


def make_payment(status="approved", reference="order-42", payment_id="123456789"):
    return PaymentDetails(
        payment_id=payment_id,
        status=status,
        status_detail="accredited",
        external_reference=reference,
        amount=1500.0,
        currency="ARS",
        payment_method="visa",
        payment_type="credit_card",
        payer_email="member@example.com",
        date_approved=datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def settings():
    return Settings(
        core_api_url="http://core.test",
        core_api_key="internal-key",
        service_jwt_secret="test-jwt-secret",
        public_api_url="https://api.test",
        frontend_url="https://app.test",
    )


@pytest.fixture
def gym():
    return TenantCredentials(
        gym_slug="iron-gym",
        access_token=ACCESS_TOKEN,
        webhook_secret=WEBHOOK_SECRET,
        enabled=True,
    )


@pytest.fixture
def order():
    return CheckoutOrder(
        gym_slug="iron-gym",
        amount=Decimal("1500.00"),
        title="Plan Mensual",
        description="Monthly membership",
        payer_email="member@example.com",
        external_reference="order-42",
    )
