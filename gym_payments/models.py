from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator


class PaymentStatus(str, Enum):
    APPROVED = "approved"
    PENDING = "pending"
    IN_PROCESS = "in_process"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    UNKNOWN = "unknown"


# --- HTTP bodies ---


class CheckoutRequest(BaseModel):
    gym_slug: str = Field(validation_alias=AliasChoices("gym_slug", "gym_id"))
    amount: Decimal
    title: str
    description: str = ""
    payer_email: EmailStr
    external_reference: str = ""
    mp_access_token: Optional[str] = Field(default=None, repr=False)
    success_url: Optional[str] = None
    failure_url: Optional[str] = None
    pending_url: Optional[str] = None

    def to_order(self) -> "CheckoutOrder":
        return CheckoutOrder(
            gym_slug=self.gym_slug,
            amount=self.amount,
            title=self.title,
            description=self.description,
            payer_email=self.payer_email,
            external_reference=self.external_reference,
            success_url=self.success_url,
            failure_url=self.failure_url,
            pending_url=self.pending_url,
        )


class CheckoutResponse(BaseModel):
    success: bool = True
    preference_id: str
    init_point: str
    sandbox_init_point: Optional[str] = None


class WebhookData(BaseModel):
    id: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return "" if value is None else str(value)


class WebhookPayload(BaseModel):
    """Notification envelope as posted by Mercado Pago."""

    id: str = ""
    type: str = ""
    action: str = ""
    data: WebhookData = Field(default_factory=WebhookData)
    live_mode: bool = False
    date_created: str = ""
    user_id: str = ""
    api_version: str = ""

    @field_validator("id", "user_id", "type", "action", "date_created", "api_version", mode="before")
    @classmethod
    def _stringify(cls, value):
        return "" if value is None else str(value)

    def to_notification(self) -> "WebhookNotification":
        return WebhookNotification(
            id=self.id,
            type=self.type,
            action=self.action,
            data_id=self.data.id,
            live_mode=self.live_mode,
            date_created=self.date_created,
        )


class WebhookResponse(BaseModel):
    status: str
    error_code: Optional[str] = None


# --- Domain values ---


class CheckoutOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    gym_slug: str
    amount: Decimal
    title: str
    description: str = ""
    payer_email: str
    external_reference: str = ""
    success_url: Optional[str] = None
    failure_url: Optional[str] = None
    pending_url: Optional[str] = None


class CheckoutSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    preference_id: str
    init_point: str
    sandbox_init_point: Optional[str] = None


class TenantCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    gym_slug: str
    access_token: str = Field(default="", repr=False)
    webhook_secret: str = Field(default="", repr=False)
    enabled: bool = False


class WebhookNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    type: str = ""
    action: str = ""
    data_id: str = ""
    live_mode: bool = False
    date_created: str = ""


class PaymentDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    payment_id: str
    status: str
    status_detail: str = ""
    external_reference: str = ""
    amount: float = 0.0
    currency: str = ""
    payment_method: str = ""
    payment_type: str = ""
    payer_email: str = ""
    date_approved: datetime


class PaymentEvent(BaseModel):
    """Payload delivered to the backend-of-record for one webhook."""

    model_config = ConfigDict(frozen=True)

    event: str
    gym_slug: str
    external_reference: str
    payment_id: str
    payment_status: str
    status_detail: str = ""
    payment_type: str = ""
    payment_method: str = ""
    amount: float
    currency: str = ""
    payer_email: str = ""
    timestamp: str
    transaction_date: str = ""
