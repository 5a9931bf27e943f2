"""Rate limiting: rules, token bucket stores and the limiter."""

from modules.dispatch.rate_limit.buckets import (
    BucketResult,
    InMemoryTokenBucketStore,
    RedisTokenBucketStore,
    TokenBucketStore,
    refill_and_consume,
)
from modules.dispatch.rate_limit.limiter import (
    RateLimitDecision,
    RateLimiter,
    bucket_key,
)
from modules.dispatch.rate_limit.rules import (
    DEFAULT_RATE_LIMIT_RULES,
    WILDCARD,
    BucketLimit,
    RateLimitRule,
    RateLimitRuleRegistry,
    resolve_rate_limit_rule,
)

__all__ = [
    "BucketResult",
    "InMemoryTokenBucketStore",
    "RedisTokenBucketStore",
    "TokenBucketStore",
    "refill_and_consume",
    "RateLimitDecision",
    "RateLimiter",
    "bucket_key",
    "DEFAULT_RATE_LIMIT_RULES",
    "WILDCARD",
    "BucketLimit",
    "RateLimitRule",
    "RateLimitRuleRegistry",
    "resolve_rate_limit_rule",
]
