"""Unit tests for the AWS client helpers and DynamoDB wrappers."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from infrastructure.operations import OperationStatus
from integrations.aws import client, dynamodb


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "UpdateItem")


@pytest.mark.unit
class TestExecuteApiCall:
    def test_success(self):
        result = client.execute_api_call("dynamodb_get_item", lambda: {"Item": {}})
        assert result.is_success
        assert result.data == {"Item": {}}

    @patch("integrations.aws.client.time")
    def test_throttling_is_retried(self, time_mock):
        api_call = MagicMock(side_effect=[client_error("ThrottlingException"), {"ok": 1}])

        result = client.execute_api_call("dynamodb_update_item", api_call)

        assert result.is_success
        assert api_call.call_count == 2
        time_mock.sleep.assert_called_once_with(0.5)

    @patch("integrations.aws.client.time")
    def test_throttling_gives_up_after_max_retries(self, time_mock):
        api_call = MagicMock(side_effect=client_error("ThrottlingException"))

        result = client.execute_api_call("dynamodb_update_item", api_call, max_retries=2)

        assert result.is_transient
        assert result.error_code == "RATE_LIMITED"
        assert api_call.call_count == 3
        assert time_mock.sleep.call_count == 2

    def test_conditional_check_is_not_retried(self):
        api_call = MagicMock(side_effect=client_error("ConditionalCheckFailedException"))

        result = client.execute_api_call("dynamodb_update_item", api_call)

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "CONDITION_FAILED"
        api_call.assert_called_once()

    def test_connection_error_is_transient(self):
        api_call = MagicMock(
            side_effect=EndpointConnectionError(endpoint_url="https://dynamodb")
        )

        result = client.execute_api_call("dynamodb_get_item", api_call)

        assert result.is_transient
        assert result.error_code == "CONNECTION_ERROR"


@pytest.mark.unit
class TestExecuteAwsApiCall:
    @patch("integrations.aws.client.get_aws_client")
    def test_calls_client_method(self, get_client_mock):
        get_client_mock.return_value.get_item.return_value = {"Item": {"a": 1}}

        result = client.execute_aws_api_call(
            "dynamodb", "get_item", TableName="t", Key={"k": {"S": "v"}}
        )

        assert result.data == {"Item": {"a": 1}}
        get_client_mock.assert_called_once_with("dynamodb")
        get_client_mock.return_value.get_item.assert_called_once_with(
            TableName="t", Key={"k": {"S": "v"}}
        )

    @patch("integrations.aws.client.get_aws_client")
    def test_paginates_when_keys_given(self, get_client_mock):
        paginator = get_client_mock.return_value.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Items": [{"id": 1}]},
            {"Items": [{"id": 2}, {"id": 3}]},
        ]

        result = client.execute_aws_api_call("dynamodb", "scan", keys=["Items"], TableName="t")

        assert result.data == [{"id": 1}, {"id": 2}, {"id": 3}]
        paginator.paginate.assert_called_once_with(TableName="t")


@pytest.mark.unit
class TestDynamoDBWrappers:
    @patch("integrations.aws.dynamodb.execute_aws_api_call")
    def test_get_item(self, execute_mock):
        dynamodb.get_item(table_name="ledgers", Key={"k": 1}, ConsistentRead=True)
        execute_mock.assert_called_once_with(
            service_name="dynamodb",
            method="get_item",
            TableName="ledgers",
            Key={"k": 1},
            ConsistentRead=True,
        )

    @patch("integrations.aws.dynamodb.execute_aws_api_call")
    def test_update_item(self, execute_mock):
        dynamodb.update_item(
            table_name="ledgers", Key={"k": 1}, UpdateExpression="ADD spend :c"
        )
        execute_mock.assert_called_once_with(
            service_name="dynamodb",
            method="update_item",
            TableName="ledgers",
            Key={"k": 1},
            UpdateExpression="ADD spend :c",
        )

    @patch("integrations.aws.dynamodb.execute_aws_api_call")
    def test_scan_paginates_items(self, execute_mock):
        dynamodb.scan(table_name="ledgers", FilterExpression="x")
        execute_mock.assert_called_once_with(
            service_name="dynamodb",
            method="scan",
            TableName="ledgers",
            keys=["Items"],
            FilterExpression="x",
        )
