"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payslip_engine.api.dependencies import ActorId, PeriodManager
from payslip_engine.api.schemas import (
    ErrorResponse,
    PayrollCalculationListResponse,
    PayrollCalculationResponse,
    PayrollPeriodCreate,
    PayrollPeriodListResponse,
    PayrollPeriodResponse,
    PeriodSummaryResponse,
    SupersedeResponse,
)
from payslip_engine.services import InvalidPeriodError, PeriodConfig

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


# ============================================================================
# Payroll period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_payroll_period(
    manager: PeriodManager,
    actor_id: ActorId,
    payload: PayrollPeriodCreate,
) -> PayrollPeriodResponse:
    """Create a payroll period in draft status."""
    if payload.year is not None and payload.month is not None:
        config = PeriodConfig.monthly(payload.company_id, payload.year, payload.month)
    elif payload.start_date and payload.end_date and payload.payment_date:
        config = PeriodConfig(
            company_id=payload.company_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            payment_date=payload.payment_date,
            period_type=payload.period_type,
        )
    else:
        raise InvalidPeriodError(
            "Provide start_date, end_date and payment_date, or year and month"
        )

    period_id = await manager.create_payroll_period(config, actor_id)
    period = await manager.get_period(period_id)
    return PayrollPeriodResponse.model_validate(period)


@router.get("", response_model=PayrollPeriodListResponse)
async def list_payroll_periods(
    manager: PeriodManager,
    company_id: Annotated[UUID, Query()],
) -> PayrollPeriodListResponse:
    """List payroll periods of a company, newest first."""
    periods = await manager.list_periods(company_id)
    return PayrollPeriodListResponse(
        items=[PayrollPeriodResponse.model_validate(p) for p in periods],
        total=len(periods),
    )


@router.get(
    "/{payroll_period_id}",
    response_model=PayrollPeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_period(
    manager: PeriodManager,
    payroll_period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    """Get a specific payroll period by ID."""
    period = await manager.get_period(payroll_period_id)
    return PayrollPeriodResponse.model_validate(period)


@router.get(
    "/{payroll_period_id}/calculations",
    response_model=PayrollCalculationListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_period_calculations(
    manager: PeriodManager,
    payroll_period_id: Annotated[UUID, Path()],
) -> PayrollCalculationListResponse:
    """List the calculations of a period."""
    await manager.get_period(payroll_period_id)
    calculations = await manager.get_payroll_calculations(payroll_period_id=payroll_period_id)
    return PayrollCalculationListResponse(
        items=[PayrollCalculationResponse.model_validate(c) for c in calculations],
        total=len(calculations),
    )


# ============================================================================
# Payroll period state transitions
# ============================================================================


@router.post(
    "/{payroll_period_id}/calculate",
    response_model=PeriodSummaryResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def calculate_payroll_period(
    manager: PeriodManager,
    actor_id: ActorId,
    payroll_period_id: Annotated[UUID, Path()],
    generate_payslips: Annotated[bool, Query()] = True,
) -> PeriodSummaryResponse:
    """Run (or re-run) the calculation for every employee. Idempotent."""
    summary = await manager.run_calculation(
        payroll_period_id, actor_id, generate_payslips=generate_payslips
    )
    return PeriodSummaryResponse.model_validate(summary)


@router.post(
    "/{payroll_period_id}/approve",
    response_model=PayrollPeriodResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def approve_payroll_period(
    manager: PeriodManager,
    actor_id: ActorId,
    payroll_period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    """Approve a calculated period."""
    period = await manager.approve_period(payroll_period_id, actor_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post(
    "/{payroll_period_id}/mark-paid",
    response_model=PayrollPeriodResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def mark_payroll_period_paid(
    manager: PeriodManager,
    actor_id: ActorId,
    payroll_period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    """Mark an approved period as paid."""
    period = await manager.mark_paid(payroll_period_id, actor_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post(
    "/{payroll_period_id}/supersede",
    response_model=SupersedeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def supersede_payroll_period(
    manager: PeriodManager,
    actor_id: ActorId,
    payroll_period_id: Annotated[UUID, Path()],
) -> SupersedeResponse:
    """Supersede a period and open a draft replacement."""
    new_id = await manager.supersede_period(payroll_period_id, actor_id)
    return SupersedeResponse(superseded_period_id=payroll_period_id, payroll_period_id=new_id)
