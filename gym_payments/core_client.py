import logging
from urllib.parse import quote

import requests
from pydantic import ValidationError as PydanticValidationError

from gym_payments.errors import CredentialLookupError, DeliveryFailed, TenantNotFound
from gym_payments.models import PaymentEvent, TenantCredentials

logger = logging.getLogger(__name__)


class CoreClient:
    """HTTP client for the backend-of-record (FitStack Core).

    Resolves per-gym credentials and receives payment events. Authenticates with
    the static internal key from settings, never with tenant credentials.
    Every call is a standalone request: no session, cookies or pooled state.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def resolve(self, gym_slug: str) -> TenantCredentials:
        url = f"{self.base_url}/api/v1/internal/gyms/{quote(gym_slug, safe='')}/credentials/"

        try:
            resp = requests.get(
                url,
                headers={"X-Internal-API-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Credential lookup for gym %s failed: %s", gym_slug, type(exc).__name__)
            raise CredentialLookupError() from exc

        if resp.status_code == 404:
            raise TenantNotFound(f"gym '{gym_slug}' not found")
        if resp.status_code != 200:
            logger.warning("Credential lookup for gym %s returned status %s", gym_slug, resp.status_code)
            raise CredentialLookupError(f"Core API returned status {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise CredentialLookupError("Core API returned a malformed response") from exc
        if not isinstance(body, dict):
            raise CredentialLookupError("Core API returned a malformed response")

        access_token = body.get("access_token") or ""
        enabled = body.get("is_payment_enabled")
        if enabled is None:
            enabled = bool(access_token)
        elif not isinstance(enabled, bool):
            logger.warning("Credential lookup for gym %s returned a non-boolean is_payment_enabled", gym_slug)
            raise CredentialLookupError("Core API returned a malformed response")

        try:
            return TenantCredentials(
                gym_slug=body.get("gym_slug") or gym_slug,
                access_token=access_token,
                webhook_secret=body.get("webhook_secret") or "",
                enabled=enabled,
            )
        except PydanticValidationError as exc:
            logger.warning("Credential lookup for gym %s returned fields of the wrong type", gym_slug)
            raise CredentialLookupError("Core API returned a malformed response") from exc

    def deliver(self, event: PaymentEvent) -> None:
        url = f"{self.base_url}/api/v1/payments/webhook-callback/"

        try:
            resp = requests.post(
                url,
                json=event.model_dump(mode="json"),
                headers={"X-Webhook-Secret": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DeliveryFailed(f"request failed: {type(exc).__name__}") from exc

        if not 200 <= resp.status_code < 300:
            raise DeliveryFailed(f"Core API returned status {resp.status_code}")
