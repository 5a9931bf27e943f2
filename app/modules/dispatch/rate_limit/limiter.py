"""Distributed token bucket rate limiter.

Buckets are checked in the fixed order user -> service -> tenant and the
first denial wins. Quota is fail-closed, the store is fail-open: if the
bucket store is unreachable the request is allowed and a warning logged.
"""

import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

import structlog

from modules.dispatch.domain.errors import RateLimitStoreError
from modules.dispatch.domain.types import Channel, RateLimitScope
from modules.dispatch.rate_limit.buckets import TokenBucketStore
from modules.dispatch.rate_limit.rules import (
    BucketLimit,
    RateLimitRule,
    RateLimitRuleRegistry,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a quota check.

    Attributes:
        allowed: Request may proceed
        scope: Scope that denied the request
        retry_after_seconds: When the denying bucket will have a token again
        remaining: Whole tokens left in the tightest bucket checked
        bypassed: An admin override skipped all checks
        fail_open: Allowed because the bucket store was unreachable
    """

    allowed: bool
    scope: Optional[RateLimitScope] = None
    retry_after_seconds: Optional[float] = None
    remaining: Optional[int] = None
    bypassed: bool = False
    fail_open: bool = False


def bucket_key(
    tenant_id: str,
    scope: RateLimitScope,
    channel: Channel,
    user_id: str,
    service_origin: str,
) -> str:
    if scope == RateLimitScope.USER:
        return f"ratelimit:tenant:{tenant_id}:user:{user_id}:channel:{channel.value}"
    if scope == RateLimitScope.SERVICE:
        return (
            f"ratelimit:tenant:{tenant_id}:service:{service_origin}"
            f":channel:{channel.value}"
        )
    return f"ratelimit:tenant:{tenant_id}:channel:{channel.value}"


class RateLimiter:
    """Checks and consumes quota for a notification.

    Args:
        store: Atomic token bucket store
        rules: Rule registry used for hierarchical lookup
        admin_scope: Credential scope that may bypass quotas
        enabled: Global switch; disabled limiters allow everything
        clock: Epoch-seconds clock
    """

    def __init__(
        self,
        store: TokenBucketStore,
        rules: Optional[RateLimitRuleRegistry] = None,
        admin_scope: str = "notifications:admin",
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.rules = rules or RateLimitRuleRegistry()
        self.admin_scope = admin_scope
        self.enabled = enabled
        self._clock = clock

    def check_and_consume(
        self,
        tenant_id: str,
        user_id: str,
        service_origin: str,
        channel: Channel,
        admin_override: bool = False,
        caller_scopes: Iterable[str] = (),
    ) -> RateLimitDecision:
        log = logger.bind(
            tenant_id=tenant_id,
            user_id=user_id,
            service_origin=service_origin,
            channel=channel.value,
        )

        if admin_override:
            if self.admin_scope in set(caller_scopes):
                log.warning("rate_limit_admin_override")
                return RateLimitDecision(allowed=True, bypassed=True)
            log.warning("rate_limit_admin_override_ignored", reason="missing_admin_scope")

        if not self.enabled:
            return RateLimitDecision(allowed=True)

        rule = self.rules.resolve(tenant_id, service_origin, channel)
        if rule is None or not rule.enabled:
            return RateLimitDecision(allowed=True)

        now = self._clock()
        remaining: Optional[int] = None
        try:
            for scope, limit in self._scopes(rule):
                key = bucket_key(tenant_id, scope, channel, user_id, service_origin)
                result = self.store.try_consume(
                    key,
                    ceiling=limit.ceiling,
                    refill_rate=limit.refill_rate,
                    ttl_seconds=limit.window_seconds * 2,
                    now=now,
                )
                if not result.allowed:
                    log.info(
                        "rate_limit_denied",
                        scope=scope.value,
                        retry_after_seconds=round(result.retry_after_seconds, 3),
                    )
                    return RateLimitDecision(
                        allowed=False,
                        scope=scope,
                        retry_after_seconds=result.retry_after_seconds,
                        remaining=result.remaining,
                    )
                remaining = (
                    result.remaining
                    if remaining is None
                    else min(remaining, result.remaining)
                )
        except RateLimitStoreError as e:
            log.warning("rate_limit_store_unavailable", error=str(e), fail_open=True)
            return RateLimitDecision(allowed=True, fail_open=True)

        return RateLimitDecision(allowed=True, remaining=remaining)

    @staticmethod
    def _scopes(rule: RateLimitRule) -> List[Tuple[RateLimitScope, BucketLimit]]:
        ordered = [
            (RateLimitScope.USER, rule.user),
            (RateLimitScope.SERVICE, rule.service),
            (RateLimitScope.TENANT, rule.tenant),
        ]
        return [(scope, limit) for scope, limit in ordered if limit is not None]
