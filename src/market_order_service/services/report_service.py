"""CSV exports of the daily summary."""

import csv
import io
from datetime import date
from decimal import Decimal
from enum import Enum

from market_order_service.models.summary_models import Summary
from market_order_service.services.aggregation_service import AggregationService

SUMMARY_COLUMNS = [
    "date",
    "orders_today",
    "revenue_kw",
    "tax_kw",
    "active_orders",
    "avg_prep_minutes",
]
VENDOR_COLUMNS = ["date", "vendor_id", "vendor_name", "revenue_kw"]


class ReportType(str, Enum):
    """Available CSV reports."""

    SUMMARY = "summary"
    VENDORS = "vendors"


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _write_csv(rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def summary_csv(summary: Summary) -> str:
    """Render the one-row summary report."""
    avg = summary.avg_prep_minutes
    return _write_csv(
        [
            SUMMARY_COLUMNS,
            [
                summary.day.isoformat(),
                str(summary.orders_count),
                _money(summary.revenue),
                _money(summary.tax),
                str(summary.active_orders),
                f"{avg:.2f}" if avg is not None else "",
            ],
        ]
    )


def vendors_csv(summary: Summary) -> str:
    """Render one row per vendor that took orders on the day."""
    rows = [VENDOR_COLUMNS]
    rows.extend(
        [summary.day.isoformat(), sale.vendor_id, sale.vendor_name, _money(sale.total)]
        for sale in summary.vendor_sales
    )
    return _write_csv(rows)


class ReportService:
    """Builds CSV reports from a strict daily summary.

    Unlike the dashboard, reports fail when the day's orders cannot be
    loaded rather than exporting a misleading empty file.
    """

    def __init__(self, aggregation_service: AggregationService) -> None:
        self.aggregation_service = aggregation_service

    async def build(self, report_type: ReportType, day: date | None = None) -> tuple[str, str]:
        """Build a report.

        Args:
            report_type: Which report to build
            day: Day to report on; today when omitted

        Returns:
            Tuple of (filename, csv_text)

        Raises:
            InternalError: If the day's orders cannot be loaded
        """
        summary = await self.aggregation_service.summarize(day, strict=True)

        if report_type == ReportType.VENDORS:
            body = vendors_csv(summary)
        else:
            body = summary_csv(summary)

        filename = f"market-square-{report_type.value}-{summary.day.isoformat()}.csv"
        return filename, body
