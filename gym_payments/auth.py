from fastapi import Depends, Header
from jose import JWTError, jwt

from gym_payments.config import Settings
from gym_payments.dependencies import get_settings
from gym_payments.errors import Unauthorized


def verify_token(authorization: str = Header(None), settings: Settings = Depends(get_settings)):
    """Check the service bearer token sent by the backend-of-record.

    Tokens are HS256 JWTs signed with the shared SERVICE_JWT_SECRET.
    """
    if not authorization:
        raise Unauthorized("Authorization header required")
    if not settings.service_jwt_secret:
        raise Unauthorized()

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise Unauthorized("Invalid authorization format")
    if scheme.lower() != "bearer":
        raise Unauthorized("Invalid authorization format")

    try:
        return jwt.decode(token, settings.service_jwt_secret, algorithms=["HS256"])
    except JWTError:
        raise Unauthorized()
