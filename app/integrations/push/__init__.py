"""Push gateway integration."""

from .client import TOKEN_ERRORS, get_status, send_push

__all__ = ["TOKEN_ERRORS", "get_status", "send_push"]
