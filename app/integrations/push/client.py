"""HTTP push gateway client.

The gateway fans a message out to APNs/FCM for a single device token and
answers with a message id, or with an error describing the token.
"""

from typing import Any, Dict, Optional

import requests
from infrastructure.configuration.settings import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    OperationStatus,
    classify_http_error,
)

logger = get_module_logger()

SEND_PATH = "/v1/send"
HEALTH_PATH = "/health"

# Gateway error reasons mapped to delivery error codes
TOKEN_ERRORS = {
    "Unregistered": "DEVICE_UNREGISTERED",
    "NotRegistered": "DEVICE_UNREGISTERED",
    "BadDeviceToken": "TOKEN_REVOKED",
    "InvalidRegistration": "TOKEN_REVOKED",
}


def _headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if settings.push.PUSH_GATEWAY_API_KEY:
        headers["Authorization"] = f"Bearer {settings.push.PUSH_GATEWAY_API_KEY}"
    return headers


def send_push(
    device_token: str,
    title: Optional[str],
    body: str,
    data: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """Send a push message to one device token."""
    if not settings.push.PUSH_GATEWAY_URL:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "Push gateway is not configured",
            error_code="UNAUTHORIZED",
        )

    payload = {
        "token": device_token,
        "notification": {"title": title or "", "body": body},
        "data": data or {},
    }
    url = settings.push.PUSH_GATEWAY_URL.rstrip("/") + SEND_PATH
    try:
        response = requests.post(
            url,
            json=payload,
            headers=_headers(),
            timeout=settings.push.PUSH_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        result = classify_http_error(e)
        reason = _error_reason(e)
        if reason in TOKEN_ERRORS:
            return OperationResult.permanent_error(
                f"Device token rejected: {reason}", error_code=TOKEN_ERRORS[reason]
            )
        logger.warning(
            "push_request_failed",
            error_code=result.error_code,
            status=result.status.value,
        )
        return result

    return OperationResult.success(data=response.json(), message="accepted")


def _error_reason(exc: requests.RequestException) -> Optional[str]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        return response.json().get("reason")
    except ValueError:
        return None


def get_status() -> OperationResult:
    if not settings.push.PUSH_GATEWAY_URL:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "Push gateway is not configured",
            error_code="UNAUTHORIZED",
        )
    url = settings.push.PUSH_GATEWAY_URL.rstrip("/") + HEALTH_PATH
    try:
        response = requests.get(
            url, headers=_headers(), timeout=settings.push.PUSH_TIMEOUT_SECONDS
        )
        response.raise_for_status()
    except requests.RequestException as e:
        return classify_http_error(e)
    return OperationResult.success(message="Push gateway healthy")
