"""API endpoint tests.

Runs the FastAPI app in-process against the per-test SQLite database.
"""

from collections.abc import AsyncGenerator
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from payslip_engine.api.app import create_app
from payslip_engine.api.dependencies import get_document_storage, get_session_factory
from payslip_engine.payslips import LocalDocumentStorage

from conftest import standard_week

pytestmark = pytest.mark.asyncio

ADMIN = {"X-User-ID": "admin"}


@pytest.fixture
def app(session_factory, tmp_path) -> FastAPI:
    app = create_app()
    storage = LocalDocumentStorage(tmp_path / "documents", "http://testserver/documents")
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_document_storage] = lambda: storage
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest_asyncio.fixture
async def company(seed):
    await seed.tax_table()
    company = await seed.company()
    employee = await seed.employee(company)
    await seed.timesheet(employee, standard_week())
    return company, employee


async def create_january(client, company_id) -> dict:
    response = await client.post(
        "/api/v1/payroll-periods",
        headers=ADMIN,
        json={"company_id": str(company_id), "year": 2026, "month": 1},
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["document_storage"] == "healthy"
        assert data["tax_table_version"] == "nl-flat-default"

    async def test_health_reports_stored_tax_table(self, client, seed):
        await seed.tax_table(version="2026-h1")
        response = await client.get("/health")
        assert response.json()["tax_table_version"] == "2026-h1"

    async def test_readiness_check(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_not_ready_without_writable_storage(self, app, client, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_bytes(b"")
        storage = LocalDocumentStorage(blocker / "documents", "http://testserver/documents")
        app.dependency_overrides[get_document_storage] = lambda: storage

        response = await client.get("/ready")
        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["document_storage"] == "unhealthy"
        assert data["database"] == "healthy"


class TestPayrollPeriodCRUD:
    async def test_create_monthly_period(self, client, company):
        data = await create_january(client, company[0].company_id)
        assert data["status"] == "draft"
        assert data["start_date"] == "2026-01-01"
        assert data["end_date"] == "2026-01-31"
        assert data["payment_date"] == "2026-02-25"
        assert data["created_by"] == "admin"

    async def test_create_with_explicit_dates(self, client, company):
        response = await client.post(
            "/api/v1/payroll-periods",
            json={
                "company_id": str(company[0].company_id),
                "period_type": "weekly",
                "start_date": "2026-01-05",
                "end_date": "2026-01-11",
                "payment_date": "2026-01-16",
            },
        )
        assert response.status_code == 201, response.text
        assert response.json()["period_type"] == "weekly"

    async def test_invalid_dates_return_400(self, client, company):
        response = await client.post(
            "/api/v1/payroll-periods",
            json={
                "company_id": str(company[0].company_id),
                "start_date": "2026-01-31",
                "end_date": "2026-01-01",
                "payment_date": "2026-02-25",
            },
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PERIOD"

    async def test_missing_dates_return_400(self, client, company):
        response = await client.post(
            "/api/v1/payroll-periods", json={"company_id": str(company[0].company_id)}
        )
        assert response.status_code == 400

    async def test_last_representable_month_is_400(self, client, company):
        response = await client.post(
            "/api/v1/payroll-periods",
            json={"company_id": str(company[0].company_id), "year": 9999, "month": 12},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PERIOD"

    async def test_unknown_period_type_is_422(self, client, company):
        response = await client.post(
            "/api/v1/payroll-periods",
            json={"company_id": str(company[0].company_id), "period_type": "daily"},
        )
        assert response.status_code == 422

    async def test_list_and_get(self, client, company):
        created = await create_january(client, company[0].company_id)

        listed = await client.get(
            "/api/v1/payroll-periods", params={"company_id": str(company[0].company_id)}
        )
        assert listed.status_code == 200
        assert listed.json()["total"] == 1

        fetched = await client.get(f"/api/v1/payroll-periods/{created['payroll_period_id']}")
        assert fetched.status_code == 200
        assert fetched.json()["payroll_period_id"] == created["payroll_period_id"]

    async def test_unknown_period_is_404(self, client):
        response = await client.get(f"/api/v1/payroll-periods/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestPayrollLifecycle:
    async def test_calculate_approve_pay(self, client, company):
        period = await create_january(client, company[0].company_id)
        period_id = period["payroll_period_id"]

        response = await client.post(f"/api/v1/payroll-periods/{period_id}/calculate", headers=ADMIN)
        assert response.status_code == 200, response.text
        summary = response.json()
        assert summary["status"] == "calculated"
        assert summary["employee_count"] == 1
        assert Decimal(summary["total_gross"]) == Decimal("712.50")
        assert Decimal(summary["total_net"]) == Decimal("413.24")
        assert summary["payslips_generated"] == 1
        assert summary["failed"] == []

        calcs = await client.get(f"/api/v1/payroll-periods/{period_id}/calculations")
        [calc] = calcs.json()["items"]
        assert Decimal(calc["overtime_pay"]) == Decimal("112.50")
        assert Decimal(calc["income_tax"]) == Decimal("263.63")

        approved = await client.post(
            f"/api/v1/payroll-periods/{period_id}/approve", headers={"X-User-ID": "controller"}
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approved_by"] == "controller"

        paid = await client.post(f"/api/v1/payroll-periods/{period_id}/mark-paid")
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"

    async def test_invalid_transition_is_400(self, client, company):
        period = await create_january(client, company[0].company_id)
        response = await client.post(
            f"/api/v1/payroll-periods/{period['payroll_period_id']}/approve"
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_recalculating_approved_period_is_400(self, client, company):
        period_id = (await create_january(client, company[0].company_id))["payroll_period_id"]
        await client.post(f"/api/v1/payroll-periods/{period_id}/calculate?generate_payslips=false")
        await client.post(f"/api/v1/payroll-periods/{period_id}/approve")

        response = await client.post(f"/api/v1/payroll-periods/{period_id}/calculate")
        assert response.status_code == 400

    async def test_supersede(self, client, company):
        period_id = (await create_january(client, company[0].company_id))["payroll_period_id"]
        await client.post(f"/api/v1/payroll-periods/{period_id}/calculate?generate_payslips=false")

        response = await client.post(f"/api/v1/payroll-periods/{period_id}/supersede")
        assert response.status_code == 201
        data = response.json()
        assert data["superseded_period_id"] == period_id

        replacement = await client.get(f"/api/v1/payroll-periods/{data['payroll_period_id']}")
        assert replacement.json()["status"] == "draft"
        assert replacement.json()["supersedes_period_id"] == period_id


class TestPayslipEndpoints:
    async def _calculated(self, client, company) -> str:
        period_id = (await create_january(client, company[0].company_id))["payroll_period_id"]
        response = await client.post(f"/api/v1/payroll-periods/{period_id}/calculate", headers=ADMIN)
        assert response.status_code == 200, response.text
        return period_id

    async def test_employee_payslips_and_document(self, client, company):
        _, employee = company
        await self._calculated(client, company)

        listed = await client.get(f"/api/v1/employees/{employee.employee_id}/payslips?year=2026")
        assert listed.status_code == 200
        [payslip] = listed.json()["items"]
        assert payslip["pdf_url"].startswith("http://testserver/documents/payslips/")
        assert payslip["render_error"] is None

        document = await client.get(f"/api/v1/payslips/{payslip['payslip_id']}/document")
        assert document.status_code == 200
        assert document.headers["content-type"] == "application/pdf"
        assert "attachment" in document.headers["content-disposition"]
        assert document.content.startswith(b"%PDF")

    async def test_view_and_regenerate(self, client, company):
        _, employee = company
        await self._calculated(client, company)
        [calc] = (await client.get(f"/api/v1/employees/{employee.employee_id}/calculations")).json()[
            "items"
        ]
        [payslip] = (await client.get(f"/api/v1/employees/{employee.employee_id}/payslips")).json()[
            "items"
        ]

        view = await client.get(f"/api/v1/payslips/{payslip['payslip_id']}/view")
        assert view.status_code == 200
        body = view.json()
        assert Decimal(body["summary"]["net_pay"]) == Decimal("413.24")
        assert [line["description"] for line in body["earnings"]] == ["Normale uren", "Overuren"]

        regenerated = await client.post(
            f"/api/v1/payroll-calculations/{calc['payroll_calculation_id']}/payslip", headers=ADMIN
        )
        assert regenerated.status_code == 200
        assert regenerated.json()["payslip_id"] == payslip["payslip_id"]

        view_again = await client.get(f"/api/v1/payslips/{payslip['payslip_id']}/view")
        assert view_again.json()["summary"] == body["summary"]

    async def test_unknown_payslip_is_404(self, client):
        response = await client.get(f"/api/v1/payslips/{uuid4()}/view")
        assert response.status_code == 404

    async def test_unknown_calculation_is_404(self, client):
        response = await client.post(f"/api/v1/payroll-calculations/{uuid4()}/payslip")
        assert response.status_code == 404

    async def test_employee_without_payslips(self, client):
        response = await client.get(f"/api/v1/employees/{uuid4()}/payslips")
        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}
