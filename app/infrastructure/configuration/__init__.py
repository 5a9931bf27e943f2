"""Infrastructure configuration module - public API.

Centralized configuration for the dispatch engine using Pydantic
BaseSettings, organized by concern.

Exports:
    Settings: Main settings class (for testing/overrides)
    RetrySettings, CircuitBreakerSettings, BudgetSettings: section classes

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()
    cooldown = settings.circuit_breaker.cooldown_seconds
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.configuration.infrastructure.circuit_breaker import (
    CircuitBreakerSettings,
)
from infrastructure.configuration.features.budget import BudgetSettings

__all__ = ["Settings", "RetrySettings", "CircuitBreakerSettings", "BudgetSettings"]
