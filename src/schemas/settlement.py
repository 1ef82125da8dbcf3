"""Pydantic schemas for settlement operations."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.settlement import BillingApproach


class CalculateSettlementRequest(BaseModel):
    """Input for a settlement calculation."""

    property_id: int
    period_start: date
    period_end: date
    approach: BillingApproach = BillingApproach.COST_ONLY

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_period(self) -> "CalculateSettlementRequest":
        if self.period_end < self.period_start:
            raise ValueError(
                f"period_end ({self.period_end}) must not be before period_start ({self.period_start})"
            )
        return self


class CreateSettlementRequest(CalculateSettlementRequest):
    """Input for creating a settlement header."""

    title: str | None = Field(None, max_length=200)
    notes: str | None = None


__all__ = ["CalculateSettlementRequest", "CreateSettlementRequest"]
