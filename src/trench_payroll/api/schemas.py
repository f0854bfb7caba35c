"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error body returned for every rejected operation."""

    detail: str
    code: str


# ============================================================================
# Work log schemas
# ============================================================================


class AdditionalItemPayload(BaseModel):
    description: str
    amount: Decimal


class WorkLogCreate(BaseModel):
    """Schema for recording a day's output."""

    project_id: UUID
    labourer_id: UUID
    work_date: date
    open_meters: Decimal = Decimal("0")
    close_meters: Decimal = Decimal("0")
    additional_items: list[AdditionalItemPayload] | None = None


class WorkLogResponse(BaseModel):
    """Schema for work log response."""

    model_config = ConfigDict(from_attributes=True)

    work_log_id: UUID
    project_id: UUID
    labourer_id: UUID
    employee_type_id: UUID
    work_date: date
    open_meters: Decimal
    close_meters: Decimal
    additional_items: list[dict[str, Any]] | None = None
    total_earnings: Decimal
    recorded_by: UUID
    recorded_at: datetime


class WorkLogRecordResponse(BaseModel):
    work_log: WorkLogResponse
    created: bool
    warnings: list[str] = Field(default_factory=list)


# ============================================================================
# Payment period schemas
# ============================================================================


class PaymentPeriodCreate(BaseModel):
    """Schema for opening a payment period. end_date defaults from frequency."""

    project_id: UUID
    start_date: date
    end_date: date | None = None


class PaymentPeriodResponse(BaseModel):
    """Schema for payment period response."""

    model_config = ConfigDict(from_attributes=True)

    payment_period_id: UUID
    project_id: UUID
    start_date: date
    end_date: date
    status: str
    total_amount: Decimal
    submitted_by: UUID | None = None
    submitted_at: datetime | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    paid_by: UUID | None = None
    paid_at: datetime | None = None
    aggregated_at: datetime | None = None
    reopen_count: int
    version: int


class PaymentPeriodEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    payment_period_id: UUID
    labourer_id: UUID
    days_worked: int
    open_meters: Decimal
    close_meters: Decimal
    total_meters: Decimal
    total_earnings: Decimal


class ReasonRequest(BaseModel):
    """Body for reject and reopen."""

    reason: str | None = None


# ============================================================================
# Correction schemas
# ============================================================================


class CorrectionCreate(BaseModel):
    entity_type: str
    entity_id: UUID
    field_name: str
    new_value: Any
    reason: str
    old_value: Any = None


class CorrectionReview(BaseModel):
    decision: str
    notes: str | None = None


class CorrectionResponse(BaseModel):
    """Schema for correction request response."""

    model_config = ConfigDict(from_attributes=True)

    correction_request_id: UUID
    entity_type: str
    entity_id: UUID
    field_name: str
    old_value: str | None = None
    new_value: str
    reason: str
    status: str
    requested_by: UUID
    requested_at: datetime
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    applied_at: datetime | None = None


# ============================================================================
# Rate schemas
# ============================================================================


class PayRateCreate(BaseModel):
    project_id: UUID
    employee_type_id: UUID
    category: str
    amount: Decimal
    effective_date: date
    unit: str = "per_meter"
    category_name: str | None = None


class PayRateResponse(BaseModel):
    """Schema for pay rate response."""

    model_config = ConfigDict(from_attributes=True)

    pay_rate_id: UUID
    project_id: UUID
    employee_type_id: UUID
    category: str
    category_name: str | None = None
    amount: Decimal
    unit: str
    effective_date: date
