"""Retry policies and their resolution.

Policies are keyed by (service origin, channel), either of which may be the
"*" wildcard. Lookup order, first hit wins:

    service + channel  ->  service + "*"  ->  "*" + channel  ->  "*" + "*"
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from modules.dispatch.domain.types import Channel
from modules.dispatch.rate_limit.rules import WILDCARD

PolicyKey = Tuple[str, str]


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration.

    Attributes:
        max_attempts: Total delivery attempts before the record is dead-lettered
        base_delay_seconds: Delay before the first retry
        backoff_factor: Growth factor between consecutive retries
        jitter_ms: Upper bound of the random delay added to each retry
        timeout_seconds: Per-attempt provider timeout
        max_delay_seconds: Cap on the total delay of a single retry
        service_origin: Service the policy applies to, or "*"
        channel: Channel value the policy applies to, or "*"
    """

    max_attempts: int = 6
    base_delay_seconds: float = 5
    backoff_factor: float = 2.0
    jitter_ms: int = 1000
    timeout_seconds: float = 30
    max_delay_seconds: float = 3600
    service_origin: str = WILDCARD
    channel: str = WILDCARD

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")
        if self.jitter_ms < 0:
            raise ValueError("jitter_ms cannot be negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")

    @property
    def key(self) -> PolicyKey:
        return (self.service_origin, self.channel)


def _channel_key(channel: Union[Channel, str]) -> str:
    return channel.value if isinstance(channel, Channel) else channel


def policy_lookup_keys(
    service_origin: str, channel: Union[Channel, str]
) -> List[PolicyKey]:
    channel_key = _channel_key(channel)
    return [
        (service_origin, channel_key),
        (service_origin, WILDCARD),
        (WILDCARD, channel_key),
        (WILDCARD, WILDCARD),
    ]


def resolve_retry_policy(
    policies: Mapping[PolicyKey, RetryPolicy],
    service_origin: str,
    channel: Union[Channel, str],
) -> Optional[RetryPolicy]:
    for key in policy_lookup_keys(service_origin, channel):
        policy = policies.get(key)
        if policy is not None:
            return policy
    return None


DEFAULT_RETRY_POLICY = RetryPolicy()

DEFAULT_RETRY_POLICIES: Tuple[RetryPolicy, ...] = (
    DEFAULT_RETRY_POLICY,
    RetryPolicy(
        service_origin="orders",
        channel=Channel.PUSH.value,
        max_attempts=3,
        base_delay_seconds=2,
        jitter_ms=500,
        timeout_seconds=15,
    ),
    RetryPolicy(
        service_origin="auth",
        channel=Channel.SMS.value,
        max_attempts=4,
        base_delay_seconds=3,
        jitter_ms=500,
        timeout_seconds=20,
    ),
)


class RetryPolicyRegistry:
    """Admin-managed retry policies, read-only at dispatch time."""

    def __init__(self, policies: Iterable[RetryPolicy] = DEFAULT_RETRY_POLICIES):
        self._policies: Dict[PolicyKey, RetryPolicy] = {p.key: p for p in policies}
        self._lock = threading.Lock()

    def upsert(self, policy: RetryPolicy) -> None:
        with self._lock:
            self._policies = {**self._policies, policy.key: policy}

    def resolve(self, service_origin: str, channel: Union[Channel, str]) -> RetryPolicy:
        policy = resolve_retry_policy(self._policies, service_origin, channel)
        return policy or DEFAULT_RETRY_POLICY

    def all(self) -> List[RetryPolicy]:
        return list(self._policies.values())
