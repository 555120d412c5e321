"""Compensation record API endpoints."""

from typing import Annotated, Iterable
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_settlement.api.dependencies import ActorId, Compensation
from payroll_settlement.api.schemas import (
    BulkMarkPaidRequest,
    BulkResultResponse,
    BulkSignRequest,
    CompensationRecordCreate,
    CompensationRecordListResponse,
    CompensationRecordResponse,
    CompensationRecordUpdate,
    ErrorResponse,
    GenerateRequest,
    GenerationFailureResponse,
    GenerationResultResponse,
    ItemOutcomeResponse,
    MarkPaidRequest,
    OutcomeError,
    SignRequest,
)
from payroll_settlement.models import CompensationRecord, Employee
from payroll_settlement.services.compensation_service import CompensationService
from payroll_settlement.services.lifecycle_service import RecordChanges, RecordInput
from payroll_settlement.services.outcomes import BulkResult
from payroll_settlement.services.ports import RecordFilter
from payroll_settlement.services.state_machine import CompensationStatus

router = APIRouter(prefix="/compensation-records", tags=["compensation-records"])

NOT_FOUND = {404: {"model": ErrorResponse}}
CONFLICT = {409: {"model": ErrorResponse}}


def _to_response(
    record: CompensationRecord, employees: dict[UUID, Employee]
) -> CompensationRecordResponse:
    response = CompensationRecordResponse.model_validate(record)
    employee = employees.get(record.employee_id)
    if employee is not None:
        response.employee_name = employee.full_name
        response.employee_code = employee.code
    return response


async def _render(
    service: CompensationService, records: Iterable[CompensationRecord]
) -> list[CompensationRecordResponse]:
    records = list(records)
    employees = await service.directory.get_employees(r.employee_id for r in records)
    return [_to_response(record, employees) for record in records]


async def _render_one(
    service: CompensationService, record: CompensationRecord
) -> CompensationRecordResponse:
    return (await _render(service, [record]))[0]


async def _render_bulk(service: CompensationService, result: BulkResult) -> BulkResultResponse:
    rendered = {r.record_id: r for r in await _render(service, result.succeeded)}
    outcomes = [
        ItemOutcomeResponse(
            record_id=outcome.record_id,
            ok=outcome.ok,
            record=rendered.get(outcome.record_id) if outcome.ok else None,
            error=OutcomeError(**outcome.error.to_dict()) if outcome.error else None,
        )
        for outcome in result.outcomes
    ]
    return BulkResultResponse(
        outcomes=outcomes,
        succeeded=len(result.succeeded),
        failed=len(result.failed),
    )


# ============================================================================
# Reads
# ============================================================================


@router.get("", response_model=CompensationRecordListResponse)
async def list_records(
    service: Compensation,
    employee_id: UUID | None = None,
    department: str | None = None,
    period: Annotated[str | None, Query(pattern=r"^\d{4}-(0[1-9]|1[0-2])$")] = None,
    status_filter: Annotated[CompensationStatus | None, Query(alias="status")] = None,
    facility_id: UUID | None = None,
    include_cancelled: bool = False,
) -> CompensationRecordListResponse:
    """List records; cancelled ones are hidden unless asked for."""
    records = await service.list_records(
        RecordFilter(
            employee_id=employee_id,
            department=department,
            period=period,
            status=status_filter,
            facility_id=facility_id,
            include_cancelled=include_cancelled,
        )
    )
    items = await _render(service, records)
    return CompensationRecordListResponse(items=items, total=len(items))


@router.get("/{record_id}", response_model=CompensationRecordResponse, responses=NOT_FOUND)
async def get_record(
    service: Compensation,
    record_id: Annotated[UUID, Path()],
) -> CompensationRecordResponse:
    return await _render_one(service, await service.get_record(record_id))


# ============================================================================
# Writes
# ============================================================================


@router.post(
    "",
    response_model=CompensationRecordResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**NOT_FOUND, **CONFLICT},
)
async def create_record(
    service: Compensation,
    actor: ActorId,
    payload: CompensationRecordCreate,
) -> CompensationRecordResponse:
    """Create a record with explicit values; totals are derived."""
    record = await service.create_record(
        RecordInput(
            employee_id=payload.employee_id,
            period=payload.period,
            base_amount=payload.base_amount,
            currency=payload.currency,
            facility_id=payload.facility_id,
            allowances=[item.model_dump() for item in payload.allowances],
            deductions=[item.model_dump() for item in payload.deductions],
            bonuses=[item.model_dump() for item in payload.bonuses],
            status=payload.status,
            notes=payload.notes,
            iban=payload.iban,
            bank_name=payload.bank_name,
        ),
        actor_user_id=actor,
    )
    return await _render_one(service, record)


@router.patch(
    "/{record_id}",
    response_model=CompensationRecordResponse,
    responses={**NOT_FOUND, **CONFLICT},
)
async def update_record(
    service: Compensation,
    actor: ActorId,
    record_id: Annotated[UUID, Path()],
    payload: CompensationRecordUpdate,
) -> CompensationRecordResponse:
    """Partially update a record, recomputing totals when amounts change."""

    def items(value):
        return None if value is None else [item.model_dump() for item in value]

    record = await service.update_record(
        record_id,
        RecordChanges(
            base_amount=payload.base_amount,
            currency=payload.currency,
            allowances=items(payload.allowances),
            deductions=items(payload.deductions),
            bonuses=items(payload.bonuses),
            notes=payload.notes,
            iban=payload.iban,
            bank_name=payload.bank_name,
        ),
        actor_user_id=actor,
        expected_version=payload.expected_version,
    )
    return await _render_one(service, record)


# ============================================================================
# Batch operations
# ============================================================================


@router.post("/bulk/mark-paid", response_model=BulkResultResponse)
async def bulk_mark_paid(
    service: Compensation,
    actor: ActorId,
    payload: BulkMarkPaidRequest,
) -> BulkResultResponse:
    """Mark many records paid; one outcome per distinct id."""
    result = await service.bulk_mark_paid(payload.record_ids, payload.payment_date, actor)
    return await _render_bulk(service, result)


@router.post("/bulk/sign", response_model=BulkResultResponse)
async def bulk_sign(
    service: Compensation,
    actor: ActorId,
    payload: BulkSignRequest,
) -> BulkResultResponse:
    result = await service.bulk_sign(payload.record_ids, payload.name_by_employee, actor)
    return await _render_bulk(service, result)


@router.post(
    "/generate",
    response_model=GenerationResultResponse,
    responses=NOT_FOUND,
)
async def generate_period(
    service: Compensation,
    actor: ActorId,
    payload: GenerateRequest,
) -> GenerationResultResponse:
    """Generate drafts for every active employee lacking one in the period."""
    result = await service.generate_period(payload.period, payload.facility_id, actor)
    return GenerationResultResponse(
        period=result.period,
        created=await _render(service, result.created),
        skipped=result.skipped,
        failures=[
            GenerationFailureResponse(
                employee_id=failure.employee_id,
                error=OutcomeError(**failure.error.to_dict()),
            )
            for failure in result.failures
        ],
    )


# ============================================================================
# State transitions
# ============================================================================


@router.post(
    "/{record_id}/approve",
    response_model=CompensationRecordResponse,
    responses={**NOT_FOUND, **CONFLICT},
)
async def approve_record(
    service: Compensation,
    actor: ActorId,
    record_id: Annotated[UUID, Path()],
) -> CompensationRecordResponse:
    return await _render_one(service, await service.approve_record(record_id, actor))


@router.post(
    "/{record_id}/cancel",
    response_model=CompensationRecordResponse,
    responses={**NOT_FOUND, **CONFLICT},
)
async def cancel_record(
    service: Compensation,
    actor: ActorId,
    record_id: Annotated[UUID, Path()],
) -> CompensationRecordResponse:
    return await _render_one(service, await service.cancel_record(record_id, actor))


@router.post(
    "/{record_id}/mark-paid",
    response_model=CompensationRecordResponse,
    responses={**NOT_FOUND, **CONFLICT, 503: {"model": ErrorResponse}},
)
async def mark_paid(
    service: Compensation,
    actor: ActorId,
    record_id: Annotated[UUID, Path()],
    payload: MarkPaidRequest | None = None,
) -> CompensationRecordResponse:
    """Mark a record paid and post its ledger entry."""
    payment_date = payload.payment_date if payload else None
    record = await service.mark_paid(record_id, payment_date, actor)
    return await _render_one(service, record)


@router.post(
    "/{record_id}/sign",
    response_model=CompensationRecordResponse,
    responses={**NOT_FOUND, **CONFLICT},
)
async def sign_record(
    service: Compensation,
    actor: ActorId,
    record_id: Annotated[UUID, Path()],
    payload: SignRequest,
) -> CompensationRecordResponse:
    record = await service.sign(record_id, payload.signer_name, actor)
    return await _render_one(service, record)
