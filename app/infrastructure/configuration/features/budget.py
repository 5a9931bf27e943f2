"""Budget enforcement settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings


class BudgetSettings(FeatureSettings):
    """Monthly budget enforcement configuration.

    Environment Variables:
        BUDGET_BACKEND: Ledger store backend, 'memory' or 'dynamodb'
        BUDGET_DEFAULT_MONTHLY_LIMIT_MICROS: Limit applied to ledgers without an
            explicit one, 0 means unlimited
        BUDGET_WARNING_THRESHOLD: Utilization ratio of the first alert (0.8)
        BUDGET_MONITOR_INTERVAL_MINUTES: Budget monitor job interval
    """

    backend: str = Field(default="memory", alias="BUDGET_BACKEND")
    default_monthly_limit_micros: int = Field(
        default=0, alias="BUDGET_DEFAULT_MONTHLY_LIMIT_MICROS"
    )
    warning_threshold: float = Field(default=0.8, alias="BUDGET_WARNING_THRESHOLD")
    monitor_interval_minutes: int = Field(
        default=60, alias="BUDGET_MONITOR_INTERVAL_MINUTES"
    )

    @field_validator("warning_threshold")
    @classmethod
    def validate_threshold(cls, value: float) -> float:
        if not 0 < value < 1:
            raise ValueError("warning_threshold must be between 0 and 1")
        return value
