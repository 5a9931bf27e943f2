"""Retry policies and backoff scheduling."""

from modules.dispatch.retry.policy import (
    DEFAULT_RETRY_POLICIES,
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    RetryPolicyRegistry,
    policy_lookup_keys,
    resolve_retry_policy,
)
from modules.dispatch.retry.scheduler import RetryDecision, RetryScheduler

__all__ = [
    "DEFAULT_RETRY_POLICIES",
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "RetryPolicyRegistry",
    "policy_lookup_keys",
    "resolve_retry_policy",
    "RetryDecision",
    "RetryScheduler",
]
