from pydantic import BaseModel, Field
from models.experiments import ABTestConfig, VariantValue


class VariantResults(BaseModel):
    """Detailed statistics for a single variant."""
    variant: VariantValue
    total_users: int
    total_conversions: int
    conversion_rate: float  # total_conversions / total_users, 0 when no users
    events: dict[str, int] = Field(default_factory=dict)


class ABTestStats(BaseModel):
    duration_days: int = 0
    winner: VariantValue | None = None
    # No significance test is computed.
    is_significant: bool = False


class ABTestResults(BaseModel):
    """Schema returned by GET /tests/{test_id}/results."""
    config: ABTestConfig
    variants: list[VariantResults]
    stats: ABTestStats
