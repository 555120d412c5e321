"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_settlement.services.state_machine import CompensationStatus

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


# ============================================================================
# Line items
# ============================================================================


class LineItemSchema(BaseModel):
    """A named allowance, deduction or bonus."""

    name: str = Field(min_length=1)
    amount: Decimal = Field(allow_inf_nan=False)


# ============================================================================
# Compensation record schemas
# ============================================================================


class CompensationRecordCreate(BaseModel):
    """Schema for creating a record with explicit values."""

    employee_id: UUID
    period: str = Field(pattern=PERIOD_PATTERN)
    base_amount: Decimal = Field(ge=0, allow_inf_nan=False)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    facility_id: UUID | None = None
    allowances: list[LineItemSchema] = Field(default_factory=list)
    deductions: list[LineItemSchema] = Field(default_factory=list)
    bonuses: list[LineItemSchema] = Field(default_factory=list)
    status: CompensationStatus = CompensationStatus.DRAFT
    notes: str | None = None
    iban: str | None = None
    bank_name: str | None = None


class CompensationRecordUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    base_amount: Decimal | None = Field(default=None, ge=0, allow_inf_nan=False)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    allowances: list[LineItemSchema] | None = None
    deductions: list[LineItemSchema] | None = None
    bonuses: list[LineItemSchema] | None = None
    notes: str | None = None
    iban: str | None = None
    bank_name: str | None = None
    expected_version: int | None = None


class CompensationRecordResponse(BaseModel):
    """Schema for compensation record response."""

    model_config = ConfigDict(from_attributes=True)

    record_id: UUID
    employee_id: UUID
    facility_id: UUID
    period: str
    base_amount: Decimal
    currency: str
    allowances: list[LineItemSchema]
    deductions: list[LineItemSchema]
    bonuses: list[LineItemSchema]
    gross_amount: Decimal
    total_deductions: Decimal
    net_amount: Decimal
    status: CompensationStatus
    payment_date: date | None = None
    notes: str | None = None
    iban: str | None = None
    bank_name: str | None = None
    signed: bool
    signed_by: str | None = None
    signed_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    employee_name: str | None = None
    employee_code: str | None = None


class CompensationRecordListResponse(BaseModel):
    items: list[CompensationRecordResponse]
    total: int


# ============================================================================
# Operation payloads
# ============================================================================


class MarkPaidRequest(BaseModel):
    payment_date: date | None = None


class SignRequest(BaseModel):
    signer_name: str = Field(min_length=1)


class BulkMarkPaidRequest(BaseModel):
    record_ids: list[UUID] = Field(min_length=1)
    payment_date: date | None = None


class BulkSignRequest(BaseModel):
    record_ids: list[UUID] = Field(min_length=1)
    name_by_employee: dict[str, str] = Field(default_factory=dict)


class GenerateRequest(BaseModel):
    period: str = Field(pattern=PERIOD_PATTERN)
    facility_id: UUID | None = None


class OutcomeError(BaseModel):
    code: str
    detail: str


class ItemOutcomeResponse(BaseModel):
    record_id: UUID
    ok: bool
    record: CompensationRecordResponse | None = None
    error: OutcomeError | None = None


class BulkResultResponse(BaseModel):
    outcomes: list[ItemOutcomeResponse]
    succeeded: int
    failed: int


class GenerationFailureResponse(BaseModel):
    employee_id: UUID
    error: OutcomeError


class GenerationResultResponse(BaseModel):
    period: str
    created: list[CompensationRecordResponse]
    skipped: list[UUID]
    failures: list[GenerationFailureResponse]


class ErrorResponse(BaseModel):
    """Error body returned for domain errors."""

    detail: str
    code: str
    extra: dict[str, Any] | None = None
