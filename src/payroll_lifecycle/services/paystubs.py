"""PDF paystub export for payroll periods and departments."""

from __future__ import annotations

import io
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Tuple
from uuid import UUID

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    HRFlowable,
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_lifecycle.errors import NotFoundError, PermissionDeniedError
from payroll_lifecycle.models import Department, PayrollPeriod, PayrollRecord
from payroll_lifecycle.services.period_store import PeriodStore
from payroll_lifecycle.services.record_store import RecordStore
from payroll_lifecycle.services.roles import Actor, Role

logger = logging.getLogger(__name__)


class PaystubExporter:
    """Renders one paystub section per payroll record into a single PDF."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.periods = PeriodStore(session)
        self.records = RecordStore(session)
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom paragraph styles for paystubs."""
        self.styles.add(ParagraphStyle(
            name="StubTitle",
            parent=self.styles["Heading1"],
            fontSize=16,
            alignment=TA_CENTER,
            spaceAfter=12,
            textColor=colors.HexColor("#1a365d"),
        ))
        self.styles.add(ParagraphStyle(
            name="StubSubtitle",
            parent=self.styles["Heading2"],
            fontSize=11,
            alignment=TA_CENTER,
            spaceAfter=8,
            textColor=colors.HexColor("#4a5568"),
        ))
        self.styles.add(ParagraphStyle(
            name="EmployeeHeader",
            parent=self.styles["Heading3"],
            fontSize=11,
            fontName="Helvetica-Bold",
            spaceBefore=10,
            spaceAfter=4,
            textColor=colors.HexColor("#2d3748"),
        ))
        self.styles.add(ParagraphStyle(
            name="StubFooter",
            parent=self.styles["Normal"],
            fontSize=8,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#718096"),
        ))

    # =========================================================================
    # EXPORT ENTRY POINTS
    # =========================================================================

    async def export_period(self, period_id: UUID, actor: Actor) -> Tuple[bytes, str]:
        """Paystubs for every employee in a period."""
        actor.require(Role.HR, action="export period paystubs")
        period = await self.periods.get(period_id)
        records = await self.records.for_period(period.id)

        content = self._generate_pdf(period, records)
        logger.info(
            "Period paystubs exported",
            extra={"period_id": str(period.id), "record_count": len(records)},
        )
        return content, f"paystubs-period-{period.id}.pdf"

    async def export_department(
        self,
        period_id: UUID,
        department_id: UUID,
        actor: Actor,
    ) -> Tuple[bytes, str]:
        """Paystubs for one department's employees in a period."""
        actor.require(Role.HR, action="export department paystubs")
        return await self._export_department(period_id, department_id)

    async def export_department_for_approval(
        self,
        period_id: UUID,
        department_id: UUID,
        actor: Actor,
    ) -> Tuple[bytes, str]:
        """Paystubs a department head reviews before deciding the approval.

        HR may fetch any department; a department head only their own.
        """
        actor.require(Role.HR, Role.DEPARTMENT_HEAD, action="view department paystubs")
        if actor.is_department_head:
            department = await self._get_department(department_id)
            if department.department_head_user_id != actor.user_id:
                raise PermissionDeniedError(
                    "Department heads may only view their own department's paystubs",
                    {"department_id": str(department_id)},
                )
        return await self._export_department(period_id, department_id)

    async def _export_department(
        self,
        period_id: UUID,
        department_id: UUID,
    ) -> Tuple[bytes, str]:
        period = await self.periods.get(period_id)
        department = await self._get_department(department_id)
        records = await self.records.for_period(period.id, department_id=department.id)

        content = self._generate_pdf(period, records, department=department)
        logger.info(
            "Department paystubs exported",
            extra={
                "period_id": str(period.id),
                "department_id": str(department.id),
                "record_count": len(records),
            },
        )
        return content, f"paystubs-{department.id}-{period.id}.pdf"

    async def _get_department(self, department_id: UUID) -> Department:
        department = await self.session.get(Department, department_id)
        if department is None:
            raise NotFoundError("Department", department_id)
        return department

    # =========================================================================
    # PDF GENERATION
    # =========================================================================

    def _generate_pdf(
        self,
        period: PayrollPeriod,
        records: List[PayrollRecord],
        department: Department | None = None,
    ) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.5 * inch,
            leftMargin=0.5 * inch,
            topMargin=0.5 * inch,
            bottomMargin=0.5 * inch,
            title=f"Paystubs - {period.period_name}",
        )

        elements = []
        elements.append(Paragraph(f"Paystubs: {period.period_name}", self.styles["StubTitle"]))
        elements.append(Paragraph(
            f"{period.start_date.strftime('%B %d, %Y')} to {period.end_date.strftime('%B %d, %Y')}",
            self.styles["StubSubtitle"],
        ))
        if department is not None:
            elements.append(Paragraph(f"Department: {department.name}", self.styles["StubSubtitle"]))
        elements.append(Spacer(1, 12))

        if not records:
            elements.append(Paragraph("No payroll records for this selection.", self.styles["Normal"]))

        for record in records:
            elements.append(KeepTogether(self._paystub_section(record)))
            elements.append(Spacer(1, 10))

        elements.append(Spacer(1, 20))
        elements.append(HRFlowable(width="100%", color=colors.gray))
        elements.append(Paragraph(
            f"Generated on {datetime.now().strftime('%Y-%m-%d %H:%M')}",
            self.styles["StubFooter"],
        ))

        doc.build(elements)
        buffer.seek(0)
        return buffer.read()

    def _paystub_section(self, record: PayrollRecord) -> list:
        employee = record.employee
        header = f"{employee.full_name} ({employee.employee_code})"
        if employee.position:
            header += f" - {employee.position}"

        data = [
            ["Item", "Value"],
            ["Base salary", self._format_currency(record.base_salary)],
            ["Hourly rate", self._format_currency(record.hourly_rate)],
            ["Hours worked", self._format_hours(record.total_worked_hours)],
            ["Regular hours", self._format_hours(record.total_regular_hours)],
            ["Overtime hours", self._format_hours(record.total_overtime_hours)],
            ["Late hours", self._format_hours(record.total_late_hours)],
            ["Paid leave hours", self._format_hours(record.paid_leave_hours)],
            ["Gross pay", self._format_currency(record.gross_pay)],
            ["Late deductions", self._format_currency(record.late_deductions)],
            ["Total deductions", self._format_currency(record.total_deductions)],
            ["Total benefits", self._format_currency(record.total_benefits)],
            ["Net pay", self._format_currency(record.net_pay)],
            ["Status", f"{record.status} / {record.approval_status}"],
        ]
        return [
            Paragraph(header, self.styles["EmployeeHeader"]),
            self._create_table(data),
        ]

    def _create_table(self, data: List[List[str]]) -> Table:
        """Create a styled paystub table with the net pay row highlighted."""
        table = Table(data, colWidths=[4.5 * inch, 2 * inch])
        net_row = len(data) - 2
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e2e8f0")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor("#2d3748")),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (1, 1), (1, -1), "RIGHT"),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("LINEBELOW", (0, 0), (-1, 0), 1, colors.HexColor("#cbd5e0")),
            ("FONTNAME", (0, net_row), (-1, net_row), "Helvetica-Bold"),
            ("LINEABOVE", (0, net_row), (-1, net_row), 1, colors.HexColor("#2d3748")),
        ]))
        return table

    @staticmethod
    def _format_currency(amount: Decimal | None) -> str:
        return f"{Decimal(amount or 0):,.2f}"

    @staticmethod
    def _format_hours(hours: Decimal | None) -> str:
        return f"{Decimal(hours or 0):.2f} h"
