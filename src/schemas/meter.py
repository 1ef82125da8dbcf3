"""Pydantic schemas for meter operations."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class MeterExchangeRequest(BaseModel):
    """Input for replacing a physical meter."""

    old_meter_id: int = Field(..., description="Meter being taken out of service")
    final_reading: Decimal = Field(..., ge=0, description="Last value shown by the old meter")
    new_meter_number: str | None = Field(None, max_length=50, description="Number of the new meter")
    new_serial_number: str | None = Field(None, max_length=100, description="Serial of the new meter")
    new_initial_reading: Decimal = Field(
        Decimal("0"), ge=0, description="Value shown by the new meter at installation"
    )
    notes: str | None = Field(None, description="Note stored on the final reading")
    exchange_date: date | None = Field(None, description="Date of the swap (default: today)")

    model_config = ConfigDict(frozen=True)


class MeterReadingPayload(BaseModel):
    """Input for a regular meter reading."""

    value: Decimal = Field(..., ge=0)
    reading_date: date | None = None
    notes: str | None = None


__all__ = ["MeterExchangeRequest", "MeterReadingPayload"]
