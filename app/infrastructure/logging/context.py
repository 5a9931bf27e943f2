"""Dispatch-scoped context binding for structured logging.

Binds the correlation key and tenant of the notification being processed so
every log line emitted during a dispatch, a lane delivery or a retry
re-admission carries them.

Usage:
    from infrastructure.logging import bind_dispatch_context

    with bind_dispatch_context(correlation_id=intent.correlation_key,
                               tenant_id=intent.tenant_id):
        logger.info("notification_admitted")
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_dispatch_context(
    correlation_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    record_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind dispatch context to all logs inside the block.

    Keys already bound by an enclosing block are restored on exit.

    Args:
        correlation_id: Idempotency/correlation key. Generated if omitted.
        tenant_id: Tenant owning the notification.
        record_id: Notification record id, once known.
        **extra_context: Additional key-value pairs to include in logs.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}
    if tenant_id is not None:
        context["tenant_id"] = tenant_id
    if record_id is not None:
        context["record_id"] = record_id
    context.update(extra_context)

    tokens = structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def get_correlation_id() -> Optional[str]:
    """Return the correlation id bound in the current context, if any."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


def clear_dispatch_context() -> None:
    """Drop all bound context. Called by worker threads between records."""
    structlog.contextvars.clear_contextvars()
