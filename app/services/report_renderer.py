"""Render a stored analysis as an HTML report and print it to PDF with headless Chromium."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, FileSystemLoader, select_autoescape
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

if TYPE_CHECKING:
    from app.core.config import Settings
    from app.models import Analysis

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
REPORT_TEMPLATE = "report.html"

DEFECT_LABELS = {
    "broken": "Broken",
    "damaged": "Damaged",
    "discolored": "Discolored",
    "foreignMatter": "Foreign matter",
}

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


class ReportRenderError(Exception):
    """Raised when the browser cannot be launched or the PDF cannot be produced."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


@dataclass(frozen=True)
class ReportData:
    """Values shown in a report, decoupled from the ORM row."""

    analysis_id: str
    grain_type: str
    date: datetime
    total_grains: int
    healthy_grains: int
    defective_grains: int
    defects_breakdown: dict[str, int]
    purity_percentage: float
    impurity_percentage: float

    @classmethod
    def from_analysis(cls, analysis: "Analysis") -> "ReportData":
        return cls(
            analysis_id=analysis.id,
            grain_type=analysis.grain_type,
            date=analysis.created_at,
            total_grains=analysis.total_grains,
            healthy_grains=analysis.healthy_grains,
            defective_grains=analysis.defective_grains,
            defects_breakdown=dict(analysis.defects_breakdown or {}),
            purity_percentage=analysis.purity_percentage,
            impurity_percentage=analysis.impurity_percentage,
        )


def report_filename(analysis_id: str) -> str:
    return f"analysis-report-{analysis_id}.pdf"


def render_report_html(report: ReportData) -> str:
    """Fill the report template; pure, no browser involved."""
    defects = [
        {"label": DEFECT_LABELS.get(key, key), "count": count}
        for key, count in report.defects_breakdown.items()
    ]
    return _env.get_template(REPORT_TEMPLATE).render(
        report=report,
        defects=defects,
        date_label=report.date.strftime("%d/%m/%Y %H:%M") if report.date else "",
    )


async def render_report_pdf(report: ReportData, settings: "Settings") -> bytes:
    """
    Print the HTML report to an A4 PDF with Playwright Chromium.

    Raises ReportRenderError if Chromium is unavailable or rendering fails.
    """
    html = render_report_html(report)
    timeout_ms = settings.REPORT_RENDER_TIMEOUT_SEC * 1000
    start = time.perf_counter()
    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(
                headless=True,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
                timeout=timeout_ms,
            )
            try:
                page = await browser.new_page()
                page.set_default_timeout(timeout_ms)
                await page.set_content(html, wait_until="networkidle", timeout=timeout_ms)
                # page.pdf takes no timeout of its own.
                pdf = await asyncio.wait_for(
                    page.pdf(
                        format="A4",
                        print_background=True,
                        margin={"top": "20mm", "right": "20mm", "bottom": "20mm", "left": "20mm"},
                    ),
                    timeout=settings.REPORT_RENDER_TIMEOUT_SEC,
                )
            finally:
                await browser.close()
    except (PlaywrightError, TimeoutError) as e:
        logger.warning(
            "Report rendering failed",
            extra={
                "analysis_id": report.analysis_id,
                "render_seconds": time.perf_counter() - start,
                "status": "error",
            },
        )
        raise ReportRenderError("Unable to render the PDF report.", cause=e) from e

    logger.info(
        "Report rendered",
        extra={
            "analysis_id": report.analysis_id,
            "render_seconds": time.perf_counter() - start,
            "pdf_bytes": len(pdf),
        },
    )
    return pdf
