"""GC Notify client.

Sends SMS and email through the GC Notify v2 API. Bodies are rendered by the
caller, so both channels go through pass-through templates whose only
personalisation field is ``body`` (and ``subject`` for email).
"""

import calendar
import time
from typing import Any, Dict, Optional

import jwt
import requests
from infrastructure.configuration.settings import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    OperationStatus,
    classify_http_error,
)

logger = get_module_logger()

SMS_PATH = "/v2/notifications/sms"
EMAIL_PATH = "/v2/notifications/email"
STATUS_PATH = "/_status"


# generate the epoch seconds for the jwt token
def epoch_seconds():
    return calendar.timegm(time.gmtime())


def create_jwt_token(secret, client_id):
    """
    Generate a JWT Token for the Notify API

    Tokens have a header consisting of:
    {
        "typ": "JWT",
        "alg": "HS256"
    }

    Parameters:
    secret: Application signing secret
    client_id: Identifier for the client

    Claims are:
    iss: identifier for the client
    iat: epoch seconds for the token (UTC)

    Returns a JWT token for this request
    """
    if not secret:
        logger.error("jwt_token_creation_failed", error="Missing secret key")
        raise ValueError("Missing secret key")
    if not client_id:
        logger.error("jwt_token_creation_failed", error="Missing client id")
        raise ValueError("Missing client id")

    headers = {"typ": "JWT", "alg": "HS256"}
    claims = {"iss": client_id, "iat": epoch_seconds()}
    return jwt.encode(payload=claims, key=secret, headers=headers)


def create_authorization_header():
    """Create the authorization header for the Notify API"""
    client_id = settings.notify.NOTIFY_SRE_USER_NAME
    secret = settings.notify.NOTIFY_SRE_CLIENT_SECRET

    if not client_id:
        error = "NOTIFY_SRE_USER_NAME is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)
    if not secret:
        error = "NOTIFY_SRE_CLIENT_SECRET is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)

    token = create_jwt_token(secret=secret, client_id=client_id)
    return "Authorization", "Bearer {}".format(token)


def post_notification(path: str, payload: Dict[str, Any]) -> OperationResult:
    """POST a notification to Notify and classify the response.

    Returns:
        OperationResult with the Notify response body as data on success.
    """
    if not settings.notify.configured:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "GC Notify is not configured",
            error_code="UNAUTHORIZED",
        )

    header_key, header_value = create_authorization_header()
    headers = {header_key: header_value, "Content-Type": "application/json"}
    url = settings.notify.NOTIFY_API_URL.rstrip("/") + path

    try:
        response = requests.post(
            url,
            json=payload,
            headers=headers,
            timeout=settings.notify.NOTIFY_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        result = classify_http_error(e)
        logger.warning(
            "notify_request_failed",
            path=path,
            error_code=result.error_code,
            status=result.status.value,
        )
        return result

    return OperationResult.success(data=response.json(), message="accepted")


def send_sms(
    phone_number: str, body: str, reference: Optional[str] = None
) -> OperationResult:
    payload = {
        "phone_number": phone_number,
        "template_id": settings.notify.NOTIFY_SMS_TEMPLATE_ID,
        "personalisation": {"body": body},
    }
    if reference:
        payload["reference"] = reference
    return post_notification(SMS_PATH, payload)


def send_email(
    email_address: str,
    subject: Optional[str],
    body: str,
    reference: Optional[str] = None,
) -> OperationResult:
    payload = {
        "email_address": email_address,
        "template_id": settings.notify.NOTIFY_EMAIL_TEMPLATE_ID,
        "personalisation": {"subject": subject or "", "body": body},
    }
    if reference:
        payload["reference"] = reference
    return post_notification(EMAIL_PATH, payload)


def get_status() -> OperationResult:
    """Check that the Notify API answers its status endpoint."""
    if not settings.notify.NOTIFY_API_URL:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "GC Notify is not configured",
            error_code="UNAUTHORIZED",
        )
    url = settings.notify.NOTIFY_API_URL.rstrip("/") + STATUS_PATH
    try:
        response = requests.get(url, timeout=settings.notify.NOTIFY_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as e:
        return classify_http_error(e)
    return OperationResult.success(message="Notify API healthy")
