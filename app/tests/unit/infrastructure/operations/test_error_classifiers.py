"""Unit tests for HTTP and AWS error classification."""

from unittest.mock import MagicMock

import pytest
import requests
from botocore.exceptions import ClientError, EndpointConnectionError

from infrastructure.operations import (
    OperationResult,
    OperationStatus,
    classify_aws_error,
    classify_http_error,
)


def make_http_error(status_code: int, headers=None, text: str = "") -> requests.HTTPError:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    return requests.HTTPError(f"{status_code} error", response=response)


def make_client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "UpdateItem")


@pytest.mark.unit
class TestClassifyHttpError:
    def test_timeout_is_transient(self):
        result = classify_http_error(requests.Timeout("read timed out"))
        assert result.is_transient
        assert result.error_code == "PROVIDER_TIMEOUT"

    def test_connection_error_is_transient(self):
        result = classify_http_error(requests.ConnectionError("refused"))
        assert result.is_transient
        assert result.error_code == "CONNECTION_ERROR"

    def test_429_uses_retry_after_header(self):
        result = classify_http_error(make_http_error(429, {"Retry-After": "7"}))
        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 7

    def test_429_without_header_uses_default(self):
        result = classify_http_error(make_http_error(429))
        assert result.retry_after == 60

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_errors(self, status_code):
        result = classify_http_error(make_http_error(status_code))
        assert result.status == OperationStatus.UNAUTHORIZED

    def test_404_is_not_found(self):
        assert classify_http_error(make_http_error(404)).status == OperationStatus.NOT_FOUND

    def test_5xx_is_transient(self):
        result = classify_http_error(make_http_error(503))
        assert result.is_transient
        assert result.error_code == "PROVIDER_ERROR"

    def test_400_is_permanent(self):
        result = classify_http_error(make_http_error(400, text="phone_number invalid"))
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "INVALID_REQUEST"
        assert "phone_number invalid" in result.message


@pytest.mark.unit
class TestClassifyAwsError:
    def test_throttling(self):
        result = classify_aws_error(make_client_error("ThrottlingException"))
        assert result.is_transient
        assert result.error_code == "RATE_LIMITED"

    def test_condition_failed(self):
        result = classify_aws_error(
            make_client_error("ConditionalCheckFailedException")
        )
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "CONDITION_FAILED"

    def test_access_denied(self):
        result = classify_aws_error(make_client_error("AccessDeniedException"))
        assert result.status == OperationStatus.UNAUTHORIZED

    def test_unknown_code_is_transient(self):
        result = classify_aws_error(make_client_error("SomethingNew"))
        assert result.is_transient

    def test_non_client_error_is_connection_error(self):
        result = classify_aws_error(EndpointConnectionError(endpoint_url="http://x"))
        assert result.error_code == "CONNECTION_ERROR"


@pytest.mark.unit
class TestOperationResult:
    def test_success(self):
        result = OperationResult.success(data={"id": "1"})
        assert result.is_success
        assert not result.is_transient
        assert result.data == {"id": "1"}

    def test_permanent_error(self):
        result = OperationResult.permanent_error("bad", error_code="INVALID_REQUEST")
        assert not result.is_success
        assert result.status == OperationStatus.PERMANENT_ERROR
