"""Goal report export (HTML and PDF).

Goals are first arranged into a :class:`~studyhub.models.Report` (a title
plus three sections: completed, in progress, not started). The HTML document
and the PDF are both rendered from that one report, so they always carry the
same content.

Example:
    >>> report = build_report(goals, ReportType.WEEKLY)
    >>> html_doc = render_html(report)
    >>> pdf_bytes = ReportLabPdfRenderer().render_pdf(report)
"""

import html
from collections.abc import Iterable
from datetime import date, timedelta
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from studyhub.database import DatabaseManager
from studyhub.errors import ExportError, ValidationError
from studyhub.interfaces import IPdfRenderer
from studyhub.logging import logger
from studyhub.models import (
    ExportFormat,
    GoalRow,
    GoalStatus,
    Report,
    ReportSection,
    ReportType,
)
from studyhub.repository import Repository
from studyhub.utils import parse_date

REPORT_TITLES = {
    ReportType.WEEKLY: "Weekly Report",
    ReportType.MONTHLY: "Monthly Report",
}

MEDIA_TYPES = {
    ExportFormat.HTML: "text/html; charset=utf-8",
    ExportFormat.PDF: "application/pdf",
}

# 20px page margins expressed in points
PDF_MARGIN = 15

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>{title}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 40px; }}
    h1 {{ color: #2c3e50; text-align: center; }}
    h2 {{ color: #34495e; margin-top: 20px; }}
    .goal-list {{ margin-left: 20px; }}
    .goal-item {{ margin: 10px 0; }}
    .status-completed {{ color: #27ae60; }}
    .status-in-progress {{ color: #f39c12; }}
    .status-not-started {{ color: #95a5a6; }}
  </style>
</head>
<body>
  <h1>{title}</h1>
{sections}
</body>
</html>
"""

_SECTION_COLORS = {
    "status-completed": "#27ae60",
    "status-in-progress": "#f39c12",
    "status-not-started": "#95a5a6",
}


# =============================================================================
# Report Building
# =============================================================================


def _day(value: str | None) -> str:
    parsed = parse_date(value) if value else None
    return parsed.isoformat() if parsed else "-"


def build_report(goals: Iterable[GoalRow], report_type: ReportType | str) -> Report:
    """Arrange goals into the three report sections, keeping input order.

    Completed goals show the day they were last updated, goals in progress
    show their percentage, and goals not started show their planned start.
    Goal titles are kept verbatim; escaping happens at render time.

    Args:
        goals: Goals to report on (typically newest first)
        report_type: weekly or monthly

    Returns:
        Report with title and three sections (possibly empty)
    """
    completed = ReportSection(heading="Completed Goals", css_class="status-completed")
    in_progress = ReportSection(heading="Goals In Progress", css_class="status-in-progress")
    not_started = ReportSection(heading="Goals Not Started", css_class="status-not-started")

    for goal in goals:
        if goal.status == GoalStatus.COMPLETED:
            completed.lines.append(f"{goal.title} - completed on {_day(goal.updated_at)}")
        elif goal.status == GoalStatus.IN_PROGRESS:
            in_progress.lines.append(f"{goal.title} - progress: {goal.progress}%")
        elif goal.status == GoalStatus.NOT_STARTED:
            not_started.lines.append(f"{goal.title} - planned start: {_day(goal.start_date)}")

    return Report(
        title=REPORT_TITLES[ReportType(report_type)],
        sections=[completed, in_progress, not_started],
    )


# =============================================================================
# Renderers
# =============================================================================


def render_html(report: Report) -> str:
    """Render a report as a standalone HTML document."""
    blocks = []
    for section in report.sections:
        items = "".join(
            f'\n      <div class="goal-item {section.css_class}">{html.escape(line)}</div>'
            for line in section.lines
        )
        blocks.append(
            f"  <h2>{html.escape(section.heading)}</h2>\n"
            f'  <div class="goal-list">{items}\n  </div>'
        )
    return _HTML_TEMPLATE.format(title=html.escape(report.title), sections="\n".join(blocks))


class ReportLabPdfRenderer:
    """Render reports to A4 PDF with reportlab.

    Args:
        pagesize: Page size tuple in points (default A4)
        margin: Page margin in points on every side
    """

    def __init__(self, pagesize: tuple[float, float] = A4, margin: float = PDF_MARGIN):
        self.pagesize = pagesize
        self.margin = margin

        self.title_style = ParagraphStyle(
            "ReportTitle",
            fontSize=22,
            leading=26,
            alignment=1,
            textColor=colors.HexColor("#2c3e50"),
            spaceAfter=16,
            fontName="Helvetica-Bold",
        )
        self.heading_style = ParagraphStyle(
            "ReportHeading",
            fontSize=15,
            leading=20,
            textColor=colors.HexColor("#34495e"),
            spaceBefore=14,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        )

    def _item_style(self, css_class: str) -> ParagraphStyle:
        return ParagraphStyle(
            f"ReportItem-{css_class}",
            fontSize=11,
            leading=16,
            leftIndent=20,
            textColor=colors.HexColor(_SECTION_COLORS.get(css_class, "#4a4a4a")),
        )

    def render_pdf(self, report: Report) -> bytes:
        """Render ``report`` and return the PDF bytes."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=report.title,
        )

        # Paragraph parses mini-markup, so text is escaped like the HTML output
        flow = [Paragraph(html.escape(report.title), self.title_style)]
        for section in report.sections:
            flow.append(Paragraph(html.escape(section.heading), self.heading_style))
            item_style = self._item_style(section.css_class)
            for line in section.lines:
                flow.append(Paragraph(html.escape(line), item_style))
            flow.append(Spacer(1, 6))

        doc.build(flow)
        return buffer.getvalue()


def render(
    goals: Iterable[GoalRow],
    report_type: ReportType | str,
    fmt: ExportFormat | str,
    pdf_renderer: IPdfRenderer | None = None,
) -> str | bytes:
    """Render goals as an HTML string or PDF bytes.

    Args:
        goals: Goals to report on
        report_type: weekly or monthly
        fmt: html or pdf
        pdf_renderer: PDF backend (defaults to :class:`ReportLabPdfRenderer`)

    Returns:
        HTML document text, or PDF bytes

    Raises:
        ExportError: If the PDF backend fails
    """
    report = build_report(goals, report_type)
    if ExportFormat(fmt) == ExportFormat.HTML:
        return render_html(report)

    renderer = pdf_renderer or ReportLabPdfRenderer()
    try:
        return renderer.render_pdf(report)
    except Exception as e:
        logger.exception(f"PDF rendering failed for {report.title}: {e}")
        raise ExportError() from e


# =============================================================================
# Export Service
# =============================================================================


class ExportService:
    """Select a user's goals for a date range and render them.

    Args:
        db: Initialized database manager
        pdf_renderer: PDF backend (defaults to :class:`ReportLabPdfRenderer`)
    """

    def __init__(self, db: DatabaseManager, pdf_renderer: IPdfRenderer | None = None):
        self.db = db
        self.pdf_renderer = pdf_renderer

    def export(
        self,
        user_id: str,
        report_type: ReportType | str,
        fmt: ExportFormat | str,
        start: date | str,
        end: date | str,
    ) -> tuple[str | bytes, str, str]:
        """Render the goals the user created between ``start`` and ``end``.

        Both bounds are inclusive whole days.

        Returns:
            Tuple of (payload, media type, attachment filename)

        Raises:
            ValidationError: If ``end`` is before ``start``
            ExportError: If rendering fails
        """
        report_type = ReportType(report_type)
        fmt = ExportFormat(fmt)
        start_day = parse_date(start)
        end_day = parse_date(end)
        if start_day is None or end_day is None or end_day < start_day:
            raise ValidationError(
                "endDate must not be before startDate",
                details=[{"field": "endDate", "value": str(end)}],
            )

        lower = start_day.isoformat()
        upper = (end_day + timedelta(days=1)).isoformat()

        with self.db.session() as session:
            goals = Repository[GoalRow](session, GoalRow).find(
                user_id, criteria=[GoalRow.created_at >= lower, GoalRow.created_at < upper]
            )
            payload = render(goals, report_type, fmt, self.pdf_renderer)

        filename = f"{report_type.value}-{start_day.isoformat()}-{end_day.isoformat()}.{fmt.value}"
        logger.info(f"📄 Exported {len(goals)} goals as {filename}")
        return payload, MEDIA_TYPES[fmt], filename


__all__ = [
    "build_report",
    "render_html",
    "render",
    "ReportLabPdfRenderer",
    "ExportService",
]
