from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr
from datetime import datetime, timezone
from typing import Any, Union
import json

# A variant is any JSON value: text, flag, number or a structured option.
VariantValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, dict[str, Any], list[Any]]


def variant_key(variant: Any) -> str:
    """
    Canonical form used for variant equality.
    Keeps True, 1 and 1.0 apart and makes dict key order irrelevant.
    """
    return json.dumps(variant, sort_keys=True, separators=(",", ":"))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Pydantic Models ---

class ABTestConfig(BaseModel):
    """A test definition: ordered variants and their bucketing weights."""
    test_id: str = Field(..., min_length=1)
    variants: list[VariantValue] = Field(..., description="Ordered variants; order defines bucket order.")
    weights: list[float] = Field(..., description="Aligned with variants, sums to 1.")
    active: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class ABTestCreate(BaseModel):
    """Schema for creating a test via POST /tests."""
    test_id: str
    variants: list[VariantValue]
    weights: list[float] | None = None
    metadata: dict[str, Any] | None = None


class ABTestRun(BaseModel):
    """Schema for POST /tests/{test_id}/run (auto-create and assign in one call)."""
    variants: list[VariantValue]
    weights: list[float] | None = None
    metadata: dict[str, Any] | None = None
    user_id: str | None = None


class UserAssignment(BaseModel):
    """The durable record binding one user to one variant of one test."""
    id: str
    test_id: str
    user_id: str
    variant: VariantValue
    assigned_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] | None = None


class VariantAssignmentResponse(BaseModel):
    """Schema returned by POST /tests/{test_id}/run."""
    variant: VariantValue
    assignment: UserAssignment
    is_fallback: bool = False
