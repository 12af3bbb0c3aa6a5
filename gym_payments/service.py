import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from gym_payments.errors import (
    InvalidAccessToken,
    PaymentNotEnabled,
    ValidationError,
    WebhookValidationFailed,
)
from gym_payments.models import (
    CheckoutOrder,
    CheckoutSession,
    PaymentDetails,
    PaymentEvent,
    PaymentStatus,
    TenantCredentials,
    WebhookNotification,
)
from gym_payments.signature import verify_signature

logger = logging.getLogger(__name__)

STATUS_EVENTS = {
    PaymentStatus.APPROVED.value: "payment.approved",
    PaymentStatus.PENDING.value: "payment.pending",
    PaymentStatus.IN_PROCESS.value: "payment.pending",
    PaymentStatus.REJECTED.value: "payment.rejected",
    PaymentStatus.CANCELLED.value: "payment.cancelled",
    PaymentStatus.REFUNDED.value: "payment.refunded",
}
DEFAULT_EVENT = "payment.updated"


class CredentialResolver(Protocol):
    def resolve(self, gym_slug: str) -> TenantCredentials: ...


class PaymentGateway(Protocol):
    def create_session(self, access_token: str, order: CheckoutOrder) -> CheckoutSession: ...

    def fetch_payment(self, access_token: str, payment_id: str) -> PaymentDetails: ...


class BackendNotifier(Protocol):
    def deliver(self, event: PaymentEvent) -> None: ...


def status_to_event(status: str) -> str:
    if isinstance(status, PaymentStatus):
        status = status.value
    return STATUS_EVENTS.get(status, DEFAULT_EVENT)


def validate_order(order: CheckoutOrder, access_token: Optional[str] = None):
    if not order.gym_slug:
        raise ValidationError("gym_slug is required")
    if order.amount is None or order.amount <= 0:
        raise ValidationError("amount must be greater than 0")
    if not order.title:
        raise ValidationError("title is required")
    if not order.payer_email:
        raise ValidationError("payer_email is required")
    if access_token is not None and not access_token:
        raise ValidationError("mp_access_token must not be empty")


class PaymentService:
    """Checkout creation and webhook relay for every gym on one process.

    Holds no per-request state: credentials are resolved on every call and
    handed to the gateway, never stored on the instance.
    """

    def __init__(self, gateway: PaymentGateway, credentials: CredentialResolver, notifier: BackendNotifier):
        self.gateway = gateway
        self.credentials = credentials
        self.notifier = notifier

    def create_checkout(self, order: CheckoutOrder, access_token: Optional[str] = None) -> CheckoutSession:
        validate_order(order, access_token)

        if access_token is None:
            creds = self.credentials.resolve(order.gym_slug)
            if not creds.enabled:
                logger.info("Checkout attempt for gym %s but payment is not enabled", order.gym_slug)
                raise PaymentNotEnabled(f"gym '{order.gym_slug}' does not have payment integration enabled")
            if not creds.access_token:
                logger.error("Gym %s has payment enabled but no access token", order.gym_slug)
                raise InvalidAccessToken()
            access_token = creds.access_token

        session = self.gateway.create_session(access_token, order)

        logger.info(
            "Created preference %s for gym %s, amount: %s",
            session.preference_id, order.gym_slug, order.amount,
        )
        return session

    def process_webhook(
        self,
        gym_slug: str,
        notification: WebhookNotification,
        signature_header: str,
        request_id: str,
    ) -> Optional[PaymentEvent]:
        """Authenticate a provider notification and relay the payment state.

        Stages run in order: verify, resolve payment, deliver. The first
        failing stage raises and nothing after it runs. Returns the delivered
        event, or None for accepted non-payment notifications.
        """
        resource_id = notification.data_id

        # One lookup serves both the signing secret and the access token.
        creds = self.credentials.resolve(gym_slug)

        if not verify_signature(signature_header, request_id, resource_id, creds.webhook_secret):
            logger.warning("Webhook signature validation failed for gym %s, resource %s", gym_slug, resource_id)
            raise WebhookValidationFailed()

        if notification.type != "payment":
            logger.info("Ignoring webhook type %r for gym %s", notification.type, gym_slug)
            return None

        if not creds.access_token:
            logger.error("Gym %s has no access token to fetch payment %s", gym_slug, resource_id)
            raise InvalidAccessToken()

        details = self.gateway.fetch_payment(creds.access_token, resource_id)

        event = PaymentEvent(
            event=status_to_event(details.status),
            gym_slug=gym_slug,
            external_reference=details.external_reference,
            payment_id=details.payment_id,
            payment_status=details.status,
            status_detail=details.status_detail,
            payment_type=details.payment_type,
            payment_method=details.payment_method,
            amount=details.amount,
            currency=details.currency,
            payer_email=details.payer_email,
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            transaction_date=details.date_approved.isoformat(),
        )

        self.notifier.deliver(event)

        logger.info(
            "Webhook processed: payment %s, status %s, gym %s",
            details.payment_id, details.status, gym_slug,
        )
        return event
