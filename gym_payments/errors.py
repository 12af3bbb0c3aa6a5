class PaymentError(Exception):
    """Base error for every classified failure in the payment bridge.

    `code` is the stable machine-readable value sent to callers, `message`
    is safe to show and log (it never contains credentials).
    """

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None, code: str = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)

    def to_dict(self):
        return {"success": False, "error": self.message, "error_code": self.code}


class ValidationError(PaymentError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class InvalidPaymentId(ValidationError):
    code = "INVALID_PAYMENT_ID"
    default_message = "Invalid payment ID format"


class Unauthorized(PaymentError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Invalid or missing token"


class TenantNotFound(PaymentError):
    code = "GYM_NOT_FOUND"
    status_code = 404
    default_message = "Gym not found"


class PaymentNotEnabled(PaymentError):
    code = "PAYMENT_NOT_ENABLED"
    status_code = 403
    default_message = "Payment integration is not enabled for this gym"


class InvalidAccessToken(PaymentError):
    code = "INVALID_TOKEN"
    status_code = 500
    default_message = "Gym payment configuration is incomplete"


class CredentialLookupError(PaymentError):
    # Backend-of-record could not be asked; distinct from TenantNotFound.
    code = "CORE_API_ERROR"
    status_code = 502
    default_message = "Failed to fetch gym configuration"


class WebhookValidationFailed(PaymentError):
    code = "WEBHOOK_VALIDATION_FAILED"
    status_code = 401
    default_message = "Webhook signature validation failed"


class GatewayError(PaymentError):
    code = "GATEWAY_ERROR"
    status_code = 502
    default_message = "Payment gateway error"


class DeliveryFailed(PaymentError):
    code = "DELIVERY_FAILED"
    status_code = 502
    default_message = "Failed to notify backend"
