"""Error classifiers for upstream exceptions.

Converts HTTP (requests) and AWS SDK (botocore) failures into
OperationResult objects so that provider clients and stores report errors
uniformly.

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()
    except requests.RequestException as exc:
        return classify_http_error(exc)
"""

from typing import Optional

import requests
from botocore.exceptions import ClientError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_RETRY_AFTER_SECONDS = 60


def _retry_after(response: requests.Response) -> int:
    header_value = response.headers.get("Retry-After")
    if header_value:
        try:
            return int(header_value)
        except (ValueError, TypeError):
            pass
    return DEFAULT_RETRY_AFTER_SECONDS


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify a requests exception into an OperationResult.

    Status Code Mapping:
    - timeout / connection error: TRANSIENT_ERROR (PROVIDER_TIMEOUT / CONNECTION_ERROR)
    - 429: TRANSIENT_ERROR with retry_after (RATE_LIMITED)
    - 401, 403: UNAUTHORIZED
    - 404: NOT_FOUND
    - 400, 422 and other 4xx: PERMANENT_ERROR (INVALID_REQUEST)
    - 5xx: TRANSIENT_ERROR (PROVIDER_ERROR)

    Args:
        exc: Exception raised by requests (``raise_for_status`` or transport)

    Returns:
        OperationResult describing the failure.
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"Request timed out: {exc}", error_code="PROVIDER_TIMEOUT"
        )

    response: Optional[requests.Response] = getattr(exc, "response", None)
    if not isinstance(exc, requests.HTTPError) or response is None:
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    status_code = response.status_code

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "Provider rate limited",
            error_code="RATE_LIMITED",
            retry_after=_retry_after(response),
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Provider rejected credentials ({status_code})",
            error_code="UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "Provider resource not found",
            error_code="NOT_FOUND",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Provider server error ({status_code})",
            error_code="PROVIDER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Provider client error ({status_code}): {response.text[:200]}",
        error_code="INVALID_REQUEST",
    )


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Unknown AWS error codes are treated as transient, following the SDK
    convention of retrying by default.
    """
    if not isinstance(exc, ClientError):
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    error_code = exc.response.get("Error", {}).get("Code", "Unknown")

    if error_code in (
        "ThrottlingException",
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
    ):
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "AWS API throttled",
            error_code="RATE_LIMITED",
            retry_after=DEFAULT_RETRY_AFTER_SECONDS,
        )

    if error_code == "ConditionalCheckFailedException":
        return OperationResult.permanent_error(
            "Conditional check failed", error_code="CONDITION_FAILED"
        )

    if error_code == "AccessDeniedException":
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "AWS API access denied",
            error_code="FORBIDDEN",
        )

    if error_code == "ResourceNotFoundException":
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "AWS resource not found",
            error_code="NOT_FOUND",
        )

    if error_code in ("ValidationException", "InvalidParameterException"):
        return OperationResult.permanent_error(
            f"AWS validation error: {error_code}",
            error_code="INVALID_REQUEST",
        )

    return OperationResult.transient_error(
        f"AWS client error: {error_code}",
        error_code="AWS_CLIENT_ERROR",
    )
