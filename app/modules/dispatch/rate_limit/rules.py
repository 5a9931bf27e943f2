"""Rate limit rules and their hierarchical resolution.

A rule applies to a (tenant, service origin, channel) triple. ``tenant_id``
None is a global default and ``service_origin`` "*" is the wildcard.
Lookup order, first hit wins:

    tenant + service  ->  tenant + "*"  ->  global + service  ->  global + "*"
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from modules.dispatch.domain.types import Channel

WILDCARD = "*"

RuleKey = Tuple[Optional[str], str, Channel]


@dataclass(frozen=True)
class BucketLimit:
    """Token bucket parameters for one scope.

    Attributes:
        capacity: Steady-state tokens per window
        window_seconds: Window over which ``capacity`` tokens refill
        burst: Extra tokens available after an idle period
        max_cap: Absolute ceiling, applied on top of capacity + burst
    """

    capacity: int
    window_seconds: int
    burst: int = 0
    max_cap: Optional[int] = None

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        if self.burst < 0:
            raise ValueError("burst cannot be negative")

    @property
    def ceiling(self) -> int:
        """Maximum tokens the bucket can hold."""
        ceiling = self.capacity + self.burst
        if self.max_cap is not None:
            ceiling = min(ceiling, self.max_cap)
        return ceiling

    @property
    def refill_rate(self) -> float:
        """Tokens added per second."""
        return self.capacity / self.window_seconds


@dataclass(frozen=True)
class RateLimitRule:
    """Quota configuration for user, service and tenant scopes.

    A scope without a BucketLimit is not enforced.
    """

    channel: Channel
    tenant_id: Optional[str] = None
    service_origin: str = WILDCARD
    user: Optional[BucketLimit] = None
    service: Optional[BucketLimit] = None
    tenant: Optional[BucketLimit] = None
    enabled: bool = True

    @property
    def key(self) -> RuleKey:
        return (self.tenant_id, self.service_origin, self.channel)


def rule_lookup_keys(
    tenant_id: str, service_origin: str, channel: Channel
) -> List[RuleKey]:
    return [
        (tenant_id, service_origin, channel),
        (tenant_id, WILDCARD, channel),
        (None, service_origin, channel),
        (None, WILDCARD, channel),
    ]


def resolve_rate_limit_rule(
    rules: Mapping[RuleKey, RateLimitRule],
    tenant_id: str,
    service_origin: str,
    channel: Channel,
) -> Optional[RateLimitRule]:
    """Return the most specific rule for the triple, or None."""
    for key in rule_lookup_keys(tenant_id, service_origin, channel):
        rule = rules.get(key)
        if rule is not None:
            return rule
    return None


def _user_limit(capacity: int, max_cap: int) -> BucketLimit:
    return BucketLimit(capacity=capacity, window_seconds=3600, burst=20, max_cap=max_cap)


def _service_limit(capacity: int, max_cap: int) -> BucketLimit:
    return BucketLimit(
        capacity=capacity, window_seconds=86400, burst=20, max_cap=max_cap
    )


DEFAULT_RATE_LIMIT_RULES: Tuple[RateLimitRule, ...] = (
    RateLimitRule(
        channel=Channel.EMAIL,
        user=_user_limit(60, 100),
        service=_service_limit(50000, 75000),
    ),
    RateLimitRule(
        channel=Channel.SMS,
        user=_user_limit(60, 100),
        service=_service_limit(10000, 15000),
    ),
    RateLimitRule(
        channel=Channel.PUSH,
        user=_user_limit(60, 100),
        service=_service_limit(200000, 300000),
    ),
    RateLimitRule(
        channel=Channel.IN_APP,
        user=_user_limit(1000, 2000),
        service=_service_limit(999999999, 999999999),
    ),
)


class RateLimitRuleRegistry:
    """Admin-managed set of rate limit rules."""

    def __init__(self, rules: Iterable[RateLimitRule] = DEFAULT_RATE_LIMIT_RULES):
        self._rules: Dict[RuleKey, RateLimitRule] = {rule.key: rule for rule in rules}
        self._lock = threading.Lock()

    def upsert(self, rule: RateLimitRule) -> None:
        with self._lock:
            self._rules = {**self._rules, rule.key: rule}

    def remove(
        self, tenant_id: Optional[str], service_origin: str, channel: Channel
    ) -> None:
        with self._lock:
            rules = dict(self._rules)
            rules.pop((tenant_id, service_origin, channel), None)
            self._rules = rules

    def resolve(
        self, tenant_id: str, service_origin: str, channel: Channel
    ) -> Optional[RateLimitRule]:
        return resolve_rate_limit_rule(self._rules, tenant_id, service_origin, channel)

    def all(self) -> List[RateLimitRule]:
        return list(self._rules.values())
