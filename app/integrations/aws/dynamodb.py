"""DynamoDB operations returning OperationResult.

Usage:
    result = get_item(
        table_name="notification-budget-ledgers",
        Key={"ledger_key": {"S": "acme#orders#sms"}, "period": {"S": "2026-10"}},
    )
    if result.is_success:
        item = result.data.get("Item")
"""

from typing import Any, Dict

from integrations.aws.client import execute_aws_api_call
from infrastructure.operations.result import OperationResult


def get_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    return execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def update_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    """Update an item; atomic counters use ``ADD`` in the UpdateExpression."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="update_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def scan(table_name: str, **kwargs) -> OperationResult:
    """Scan a table with automatic pagination; ``data`` is the list of items."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="scan",
        TableName=table_name,
        keys=["Items"],
        **kwargs,
    )
