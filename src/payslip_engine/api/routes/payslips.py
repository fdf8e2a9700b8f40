"""Employee calculation and payslip API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from payslip_engine.api.dependencies import ActorId, Payslips, PeriodManager
from payslip_engine.api.schemas import (
    ErrorResponse,
    PayrollCalculationListResponse,
    PayrollCalculationResponse,
    PayslipListResponse,
    PayslipResponse,
    PayslipViewResponse,
)

router = APIRouter(tags=["payslips"])


@router.get(
    "/employees/{employee_id}/calculations",
    response_model=PayrollCalculationListResponse,
)
async def list_employee_calculations(
    manager: PeriodManager,
    employee_id: Annotated[UUID, Path()],
) -> PayrollCalculationListResponse:
    """List an employee's calculations, newest period first."""
    calculations = await manager.get_payroll_calculations(employee_id=employee_id)
    return PayrollCalculationListResponse(
        items=[PayrollCalculationResponse.model_validate(c) for c in calculations],
        total=len(calculations),
    )


@router.get(
    "/employees/{employee_id}/payslips",
    response_model=PayslipListResponse,
)
async def list_employee_payslips(
    payslips: Payslips,
    employee_id: Annotated[UUID, Path()],
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
) -> PayslipListResponse:
    """List an employee's payslips, optionally for one year."""
    items = await payslips.get_payslips(employee_id, year=year)
    return PayslipListResponse(
        items=[PayslipResponse.model_validate(p) for p in items],
        total=len(items),
    )


@router.post(
    "/payroll-calculations/{payroll_calculation_id}/payslip",
    response_model=PayslipResponse,
    status_code=status.HTTP_200_OK,
    responses={404: {"model": ErrorResponse}},
)
async def regenerate_payslip(
    payslips: Payslips,
    actor_id: ActorId,
    payroll_calculation_id: Annotated[UUID, Path()],
) -> PayslipResponse:
    """Render the payslip of a calculation again. Idempotent.

    A rendering failure still returns 200 with render_error set.
    """
    payslip = await payslips.regenerate_payslip(payroll_calculation_id, actor_id)
    return PayslipResponse.model_validate(payslip)


@router.get(
    "/payslips/{payslip_id}/view",
    response_model=PayslipViewResponse,
    responses={404: {"model": ErrorResponse}},
)
async def view_payslip(
    payslips: Payslips,
    payslip_id: Annotated[UUID, Path()],
) -> PayslipViewResponse:
    """Structured payslip content rebuilt from the stored calculation."""
    view_model = await payslips.build_view_model(payslip_id)
    return PayslipViewResponse.model_validate(view_model.to_dict())


@router.get(
    "/payslips/{payslip_id}/document",
    responses={
        200: {"content": {"application/pdf": {}}},
        404: {"model": ErrorResponse},
    },
)
async def download_payslip(
    payslips: Payslips,
    payslip_id: Annotated[UUID, Path()],
) -> Response:
    """Download the stored payslip document."""
    payslip, data = await payslips.open_document(payslip_id)
    filename = f"payslip-{payslip.period_start_date:%Y-%m}-{payslip.payslip_id}.pdf"
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
