"""GC Notify integration used for SMS and email delivery."""

from .client import (
    epoch_seconds,
    create_jwt_token,
    create_authorization_header,
    post_notification,
    send_sms,
    send_email,
    get_status,
)

__all__ = [
    "epoch_seconds",
    "create_jwt_token",
    "create_authorization_header",
    "post_notification",
    "send_sms",
    "send_email",
    "get_status",
]
