"""PDF rendering of payslip view models with ReportLab."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Protocol
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from payslip_engine.payslips.builder import PayslipLine, PayslipSummary, PayslipViewModel


class PayslipRenderer(Protocol):
    """Protocol for payslip renderers: view model in, document bytes out."""

    content_type: str
    file_extension: str

    def render(self, view_model: PayslipViewModel) -> bytes:
        ...


def format_money(amount: Decimal) -> str:
    """Format as Dutch currency, e.g. € 1.234,56."""
    text = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"€ {text}"


def format_date(value: date) -> str:
    return value.strftime("%d-%m-%Y")


def _fmt_number(value: Decimal | None) -> str:
    return "" if value is None else f"{value:.2f}".replace(".", ",")


def summary_rows(s: PayslipSummary) -> list[list[str]]:
    """Overview table: period figures with the year-to-date figure of the same quantity."""
    return [
        ["", "Periode", "Cumulatief"],
        ["Brutoloon", format_money(s.gross_pay), format_money(s.ytd_gross)],
        ["Inhoudingen", format_money(s.total_deductions), ""],
        ["Loonheffing", format_money(s.income_tax), format_money(s.ytd_income_tax)],
        ["Belastingen en premies", format_money(s.total_taxes), ""],
        ["Nettoloon", format_money(s.net_pay), format_money(s.ytd_net)],
    ]


_TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E8EDF3")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.grey),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
)


class PdfPayslipRenderer:
    """Renders an A4 payslip PDF.

    Output is byte-for-byte deterministic for the same view model
    (ReportLab invariant mode fixes document ids and timestamps).
    """

    content_type = "application/pdf"
    file_extension = "pdf"

    def __init__(self):
        self.styles = getSampleStyleSheet()

    def render(self, view_model: PayslipViewModel) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=18 * mm,
            bottomMargin=18 * mm,
            title=f"Loonstrook {view_model.employee.name}",
            author=view_model.company.name,
            invariant=1,
        )
        doc.build(self._story(view_model))
        return buffer.getvalue()

    def _story(self, vm: PayslipViewModel) -> list:
        h1 = self.styles["Heading1"]
        h2 = self.styles["Heading3"]
        body = self.styles["BodyText"]

        company_lines = [
            vm.company.address,
            " ".join(p for p in (vm.company.postal_code, vm.company.city) if p),
            f"KvK: {vm.company.kvk_number}" if vm.company.kvk_number else None,
            f"Loonheffingennummer: {vm.company.tax_number}" if vm.company.tax_number else None,
        ]
        employee_lines = [
            vm.employee.name,
            vm.employee.address,
            " ".join(p for p in (vm.employee.postal_code, vm.employee.city) if p),
            f"Personeelsnummer: {vm.employee.employee_number}",
            f"Functie: {vm.employee.job_title}" if vm.employee.job_title else None,
            f"BSN: {vm.employee.bsn}" if vm.employee.bsn else None,
        ]

        story: list = [
            Paragraph(escape(vm.company.name), h1),
            Paragraph("<br/>".join(escape(line) for line in company_lines if line), body),
            Spacer(1, 6 * mm),
            Paragraph("Loonstrook", h2),
            Paragraph("<br/>".join(escape(line) for line in employee_lines if line), body),
            Spacer(1, 4 * mm),
            Table(
                [
                    ["Periode", "Betaaldatum", "Loonstrooknummer"],
                    [
                        f"{format_date(vm.period.start_date)} t/m {format_date(vm.period.end_date)}",
                        format_date(vm.period.payment_date),
                        vm.period.payroll_number,
                    ],
                ],
                hAlign="LEFT",
                style=_TABLE_STYLE,
            ),
            Spacer(1, 6 * mm),
        ]

        story += self._section("Verdiensten", vm.earnings, with_quantity=True)
        if vm.deductions:
            story += self._section("Inhoudingen", vm.deductions)
        story += self._section("Belastingen en premies", vm.taxes)

        story += [
            Paragraph("Overzicht", h2),
            Table(
                summary_rows(vm.summary),
                colWidths=[70 * mm, 45 * mm, 45 * mm],
                hAlign="LEFT",
                style=_TABLE_STYLE,
            ),
            Spacer(1, 6 * mm),
            Paragraph("Verlof en pensioen", h2),
            Table(
                [
                    ["", "Waarde"],
                    ["Vakantiedagen opgebouwd", _fmt_number(vm.leave.vacation_days_accrued)],
                    ["Vakantiedagen opgenomen", _fmt_number(vm.leave.vacation_days_taken)],
                    ["Vakantiedagen saldo", _fmt_number(vm.leave.vacation_days_balance)],
                    ["Reservering vakantiegeld", format_money(vm.leave.vacation_accrual_amount)],
                    ["Pensioenpremie werknemer", format_money(vm.pension.employee_contribution)],
                    ["Pensioenpremie werkgever", format_money(vm.pension.employer_contribution)],
                ],
                colWidths=[70 * mm, 45 * mm],
                hAlign="LEFT",
                style=_TABLE_STYLE,
            ),
        ]
        return story

    def _section(
        self, title: str, lines: list[PayslipLine], with_quantity: bool = False
    ) -> list:
        if with_quantity:
            rows = [["Omschrijving", "Aantal", "Tarief", "Bedrag"]]
            rows += [
                [
                    line.description,
                    _fmt_number(line.quantity),
                    format_money(line.rate) if line.rate is not None else "",
                    format_money(line.amount),
                ]
                for line in lines
            ]
            widths = [70 * mm, 30 * mm, 30 * mm, 35 * mm]
        else:
            rows = [["Omschrijving", "Bedrag"]]
            rows += [[line.description, format_money(line.amount)] for line in lines]
            widths = [70 * mm, 35 * mm]

        return [
            Paragraph(title, self.styles["Heading3"]),
            Table(rows, colWidths=widths, hAlign="LEFT", style=_TABLE_STYLE),
            Spacer(1, 4 * mm),
        ]
