"""Feature settings __init__ - exports all feature settings."""

from infrastructure.configuration.features.dispatch import DispatchSettings
from infrastructure.configuration.features.rate_limit import RateLimitSettings
from infrastructure.configuration.features.budget import BudgetSettings

__all__ = [
    "DispatchSettings",
    "RateLimitSettings",
    "BudgetSettings",
]
