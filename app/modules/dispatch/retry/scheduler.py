"""Retry scheduling with exponential backoff and jitter."""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from infrastructure.logging import get_module_logger
from modules.dispatch.domain.errors import classify_error
from modules.dispatch.domain.models import NotificationRecord, utc_now
from modules.dispatch.domain.types import Channel, ErrorClass
from modules.dispatch.retry.policy import RetryPolicy, RetryPolicyRegistry

logger = get_module_logger()


@dataclass(frozen=True)
class RetryDecision:
    """What should happen to a record after a failed attempt.

    ``attempts`` already counts the failed attempt.
    """

    retry: bool
    attempts: int
    error_class: ErrorClass
    next_attempt_at: Optional[datetime] = None
    delay: Optional[timedelta] = None


class RetryScheduler:
    """Computes retry delays and decides when a record is dead-lettered.

    Args:
        policies: Policy registry
        clock: UTC datetime clock
        rng: Returns a float in [0, 1), used for jitter
    """

    def __init__(
        self,
        policies: Optional[RetryPolicyRegistry] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Callable[[], float] = random.random,
    ):
        self.policies = policies or RetryPolicyRegistry()
        self._clock = clock
        self._rng = rng

    def resolve_policy(self, service_origin: str, channel: Channel) -> RetryPolicy:
        return self.policies.resolve(service_origin, channel)

    def base_delay(self, policy: RetryPolicy, attempt_number: int) -> float:
        """Backoff delay in seconds without jitter, capped at the max delay."""
        try:
            delay = policy.base_delay_seconds * policy.backoff_factor ** attempt_number
        except OverflowError:
            delay = policy.max_delay_seconds
        return min(delay, policy.max_delay_seconds)

    def next_attempt(self, policy: RetryPolicy, attempt_number: int) -> timedelta:
        """Delay before the next attempt.

        ``attempt_number`` is zero for the first retry. The jittered delay
        never exceeds ``max_delay_seconds``.
        """
        jitter = self._rng() * policy.jitter_ms / 1000
        delay = min(
            self.base_delay(policy, attempt_number) + jitter, policy.max_delay_seconds
        )
        return timedelta(seconds=delay)

    def should_retry(
        self, policy: RetryPolicy, attempt_number: int, error_class: ErrorClass
    ) -> bool:
        """``attempt_number`` counts the attempts made so far, the failed one included."""
        if error_class == ErrorClass.PERMANENT:
            return False
        return attempt_number < policy.max_attempts

    def schedule_retry(
        self,
        record: NotificationRecord,
        error_code: Optional[str],
        error_message: Optional[str] = None,
    ) -> RetryDecision:
        """Decide the fate of a record whose delivery attempt just failed."""
        policy = self.resolve_policy(record.intent.service_origin, record.channel)
        attempts = record.attempts + 1
        error_class = classify_error(error_code)

        if not self.should_retry(policy, attempts, error_class):
            logger.info(
                "retry_not_scheduled",
                record_id=record.id,
                error_class=error_class.value,
                attempts=attempts,
                max_attempts=policy.max_attempts,
                error_code=error_code,
                error_message=error_message,
            )
            return RetryDecision(retry=False, attempts=attempts, error_class=error_class)

        delay = self.next_attempt(policy, attempts - 1)
        next_attempt_at = self._clock() + delay
        logger.info(
            "retry_scheduled",
            record_id=record.id,
            attempts=attempts,
            delay_seconds=round(delay.total_seconds(), 3),
            error_code=error_code,
        )
        return RetryDecision(
            retry=True,
            attempts=attempts,
            error_class=error_class,
            next_attempt_at=next_attempt_at,
            delay=delay,
        )
