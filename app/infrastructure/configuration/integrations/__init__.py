"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.configuration.integrations.push import PushSettings
from infrastructure.configuration.integrations.redis import RedisSettings

__all__ = [
    "AwsSettings",
    "NotifySettings",
    "PushSettings",
    "RedisSettings",
]
