"""AWS client helpers.

Centralized boto3 client creation, throttling retries and error
classification. Every call returns an OperationResult.

Usage:
    result = execute_aws_api_call(
        service_name="dynamodb",
        method="update_item",
        TableName="notification-budget-ledgers",
        Key={...},
        UpdateExpression="ADD accumulated_micros :c",
        ExpressionAttributeValues={":c": {"N": "950"}},
    )
"""

import time
from functools import lru_cache
from typing import Any, Callable, List, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.configuration.settings import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations.classifiers import classify_aws_error
from infrastructure.operations.result import OperationResult

logger = get_module_logger()

RETRY_ERRORS = frozenset(settings.aws.THROTTLING_ERRS)
DEFAULT_MAX_RETRIES = 3
BACKOFF_FACTOR = 0.5


def _should_retry(error: Exception, attempt: int, max_attempts: int) -> bool:
    if not isinstance(error, ClientError):
        return False
    error_code = error.response.get("Error", {}).get("Code")
    return error_code in RETRY_ERRORS and attempt < max_attempts


def _calculate_retry_delay(attempt: int) -> float:
    return BACKOFF_FACTOR * (2**attempt)


@lru_cache(maxsize=None)
def get_aws_client(service_name: str) -> BaseClient:
    """Create (once per process) a boto3 client in the configured region.

    boto3 clients are thread-safe, so the cached client is shared by workers.
    """
    session = boto3.Session(region_name=settings.aws.AWS_REGION)
    kwargs = {}
    if settings.aws.ENDPOINT_URL:
        kwargs["endpoint_url"] = settings.aws.ENDPOINT_URL
    return session.client(service_name, **kwargs)


def _paginate_all_results(
    client: BaseClient, method: str, keys: List[str], **kwargs
) -> List[dict]:
    paginator = client.get_paginator(method)
    results: List[dict] = []
    for page in paginator.paginate(**kwargs):
        for key in keys:
            results.extend(page.get(key, []))
    return results


def execute_api_call(
    func_name: str,
    api_call: Callable[[], Any],
    max_retries: Optional[int] = None,
) -> OperationResult:
    """Run ``api_call`` with bounded retries on throttling errors."""
    max_retry_attempts = DEFAULT_MAX_RETRIES if max_retries is None else max_retries

    for attempt in range(max_retry_attempts + 1):
        try:
            result = api_call()
            if attempt > 0:
                logger.info("aws_api_retry_success", function=func_name, attempt=attempt + 1)
            return OperationResult.success(data=result)

        except (BotoCoreError, ClientError) as e:
            if _should_retry(e, attempt, max_retry_attempts):
                delay = _calculate_retry_delay(attempt)
                logger.warning(
                    "aws_api_retrying",
                    function=func_name,
                    attempt=attempt + 1,
                    error=str(e),
                    delay=delay,
                )
                time.sleep(delay)
                continue

            result = classify_aws_error(e)
            # Conditional check failures are expected outcomes, not errors
            log = logger.debug if result.error_code == "CONDITION_FAILED" else logger.error
            log(
                "aws_api_error_final",
                function=func_name,
                error=str(e),
                error_code=result.error_code,
            )
            return result

    return OperationResult.transient_error(
        f"{func_name} failed after retries", error_code="RETRIES_EXHAUSTED"
    )


def execute_aws_api_call(
    service_name: str,
    method: str,
    keys: Optional[List[str]] = None,
    max_retries: Optional[int] = None,
    **kwargs,
) -> OperationResult:
    """Call ``method`` on the service client; paginates when ``keys`` is given."""

    def api_call():
        client = get_aws_client(service_name)
        if keys:
            return _paginate_all_results(client, method, keys, **kwargs)
        return getattr(client, method)(**kwargs)

    return execute_api_call(f"{service_name}_{method}", api_call, max_retries=max_retries)
