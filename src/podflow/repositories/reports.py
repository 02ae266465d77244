"""Reporting queries: revenue, per-campaign summaries and custom reports.

Custom reports are assembled from a fixed vocabulary of dimensions and
metrics. Every SQL fragment below is a constant; request values only ever
reach the database as bound parameters.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Any

from src.podflow.repositories.base import Row, TenantRepository, as_float
from src.podflow.schemas.common import Listing
from src.podflow.schemas.reports import (
    CampaignReportRow,
    CustomReport,
    CustomReportRequest,
    DateRangePreset,
    FilterOperator,
    ReportDimension,
    ReportMetric,
    RevenueMonth,
    RevenueReport,
)

DIMENSION_SQL: dict[ReportDimension, str] = {
    ReportDimension.CAMPAIGN_NAME: "c.name",
    ReportDimension.CAMPAIGN_STATUS: "c.status",
    ReportDimension.SHOW_NAME: "s.name",
    ReportDimension.SHOW_CATEGORY: "s.category",
    ReportDimension.PLACEMENT_TYPE: "si.placement_type",
    ReportDimension.MONTH: "to_char(si.air_date, 'YYYY-MM')",
}

METRIC_SQL: dict[ReportMetric, str] = {
    ReportMetric.SPOTS: "COUNT(si.id)",
    ReportMetric.REVENUE: "COALESCE(SUM(si.negotiated_price), 0)",
    ReportMetric.RATE_CARD_VALUE: "COALESCE(SUM(si.rate_card_price), 0)",
    ReportMetric.DISCOUNT: "COALESCE(SUM(si.rate_card_price - si.negotiated_price), 0)",
    ReportMetric.AVERAGE_PRICE: "COALESCE(AVG(si.negotiated_price), 0)",
}

_OPERATOR_SQL: dict[FilterOperator, str] = {
    FilterOperator.EQUALS: "=",
    FilterOperator.NOT_EQUALS: "<>",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.LESS_THAN: "<",
}


def resolve_date_range(request: CustomReportRequest, today: date | None = None) -> tuple[date, date]:
    """Turn a preset (or custom bounds) into an inclusive ``(start, end)``."""
    today = today or datetime.now(timezone.utc).date()
    preset = request.date_range
    if preset == DateRangePreset.CUSTOM:
        return request.start_date, request.end_date
    if preset == DateRangePreset.TODAY:
        return today, today
    if preset == DateRangePreset.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday
    if preset == DateRangePreset.LAST_7_DAYS:
        return today - timedelta(days=7), today
    if preset == DateRangePreset.LAST_90_DAYS:
        return today - timedelta(days=90), today
    if preset == DateRangePreset.THIS_MONTH:
        return today.replace(day=1), today
    if preset == DateRangePreset.LAST_MONTH:
        last_of_previous = today.replace(day=1) - timedelta(days=1)
        return last_of_previous.replace(day=1), last_of_previous
    if preset == DateRangePreset.THIS_QUARTER:
        first_month = (today.month - 1) // 3 * 3 + 1
        return date(today.year, first_month, 1), today
    if preset == DateRangePreset.YEAR_TO_DATE:
        return date(today.year, 1, 1), today
    return today - timedelta(days=30), today


def build_custom_report_query(
    request: CustomReportRequest, start: date, end: date
) -> tuple[str, list[Any]]:
    """SQL over scheduled placements for the requested dimensions and metrics."""
    params: list[Any] = [start, end]
    select_parts: list[str] = []
    group_parts: list[str] = []

    for dimension in request.dimensions:
        expression = DIMENSION_SQL[dimension]
        select_parts.append(f"{expression} AS {dimension.value}")
        group_parts.append(expression)
    for metric in request.metrics:
        select_parts.append(f"{METRIC_SQL[metric]} AS {metric.value}")

    where = ["si.air_date >= $1", "si.air_date <= $2"]
    for report_filter in request.filters:
        column = DIMENSION_SQL[report_filter.field]
        if report_filter.operator == FilterOperator.CONTAINS:
            params.append(f"%{report_filter.value}%")
            where.append(f"{column} ILIKE ${len(params)}")
        elif report_filter.operator == FilterOperator.BETWEEN:
            params.append(str(report_filter.value))
            params.append(str(report_filter.value2))
            where.append(f"{column} BETWEEN ${len(params) - 1} AND ${len(params)}")
        else:
            params.append(str(report_filter.value))
            where.append(f"{column} {_OPERATOR_SQL[report_filter.operator]} ${len(params)}")

    sql = f"""
        SELECT {', '.join(select_parts)}
        FROM schedule_items si
        JOIN schedules sc ON sc.id = si.schedule_id
        JOIN campaigns c ON c.id = sc.campaign_id
        JOIN shows s ON s.id = si.show_id
        WHERE {' AND '.join(where)}
    """
    if group_parts:
        sql += f" GROUP BY {', '.join(group_parts)} ORDER BY {', '.join(group_parts)}"
    return sql, params


def _normalize_cell(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, bool)):
        return value
    return as_float(value)


def _months_between(start: date, end: date) -> list[str]:
    months = []
    cursor = start.replace(day=1)
    while cursor <= end:
        months.append(f"{cursor:%Y-%m}")
        days = calendar.monthrange(cursor.year, cursor.month)[1]
        cursor = cursor + timedelta(days=days)
    return months


class ReportRepository(TenantRepository):
    resource = "reports"

    async def revenue(self, organization_slug: str, start: date, end: date) -> RevenueReport:
        """Booked (orders) against invoiced/paid (invoices) per month."""
        result = await self._executor.execute(
            organization_slug,
            """
            SELECT month, SUM(booked) AS booked, SUM(invoiced) AS invoiced, SUM(paid) AS paid
            FROM (
                SELECT to_char(oi.air_date, 'YYYY-MM') AS month, oi.rate AS booked,
                       0 AS invoiced, 0 AS paid
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                WHERE o.status IN ('approved', 'booked') AND oi.air_date BETWEEN $1 AND $2
                UNION ALL
                SELECT to_char(i.issue_date, 'YYYY-MM'), 0, i.total_amount,
                       CASE WHEN i.status = 'paid' THEN i.total_amount ELSE 0 END
                FROM invoices i
                WHERE i.status IN ('sent', 'paid') AND i.issue_date BETWEEN $1 AND $2
            ) figures
            GROUP BY month
            ORDER BY month
            """,
            [start, end],
        )
        if result.degraded:
            self._degraded(organization_slug, result.error)
            return RevenueReport(start_date=start, end_date=end, degraded=True)

        by_month = {row["month"]: row for row in result.rows()}
        months = []
        for month in _months_between(start, end):
            row = by_month.get(month, {})
            months.append(
                RevenueMonth(
                    month=month,
                    booked=as_float(row.get("booked")) or 0.0,
                    invoiced=as_float(row.get("invoiced")) or 0.0,
                    paid=as_float(row.get("paid")) or 0.0,
                )
            )
        booked = round(sum(m.booked for m in months), 2)
        invoiced = round(sum(m.invoiced for m in months), 2)
        paid = round(sum(m.paid for m in months), 2)
        return RevenueReport(
            start_date=start,
            end_date=end,
            booked_total=booked,
            invoiced_total=invoiced,
            paid_total=paid,
            outstanding_total=round(invoiced - paid, 2),
            months=months,
        )

    async def campaigns(self, organization_slug: str) -> Listing[CampaignReportRow]:
        return await self._list(
            organization_slug,
            """
            SELECT c.id, c.name, c.status, c.budget,
                   COALESCE(sp.spots, 0) AS spots,
                   COALESCE(ob.booked, 0) AS booked_amount,
                   COALESCE(iv.invoiced, 0) AS invoiced_amount,
                   COALESCE(iv.paid, 0) AS paid_amount
            FROM campaigns c
            LEFT JOIN (
                SELECT sc.campaign_id, COUNT(si.id) AS spots
                FROM schedules sc JOIN schedule_items si ON si.schedule_id = sc.id
                GROUP BY sc.campaign_id
            ) sp ON sp.campaign_id = c.id
            LEFT JOIN (
                SELECT campaign_id, SUM(total_amount) AS booked
                FROM orders WHERE status IN ('approved', 'booked')
                GROUP BY campaign_id
            ) ob ON ob.campaign_id = c.id
            LEFT JOIN (
                SELECT campaign_id,
                       SUM(total_amount) FILTER (WHERE status IN ('sent', 'paid')) AS invoiced,
                       SUM(total_amount) FILTER (WHERE status = 'paid') AS paid
                FROM invoices GROUP BY campaign_id
            ) iv ON iv.campaign_id = c.id
            ORDER BY c.name
            """,
            None,
            _row_to_campaign_report,
        )

    async def custom(self, organization_slug: str, request: CustomReportRequest) -> CustomReport:
        start, end = resolve_date_range(request)
        sql, params = build_custom_report_query(request, start, end)
        result = await self._executor.execute(organization_slug, sql, params)
        generated_at = datetime.now(timezone.utc)
        report = CustomReport(
            name=request.name,
            dimensions=request.dimensions,
            metrics=request.metrics,
            start_date=start,
            end_date=end,
            generated_at=generated_at,
        )
        if result.degraded:
            self._degraded(organization_slug, result.error)
            report.degraded = True
            return report
        report.rows = [{k: _normalize_cell(v) for k, v in row.items()} for row in result.rows()]
        report.total_rows = len(report.rows)
        return report


def _row_to_campaign_report(row: Row) -> CampaignReportRow:
    return CampaignReportRow(
        campaign_id=str(row["id"]),
        name=row["name"],
        status=row["status"],
        budget=as_float(row.get("budget")) or 0.0,
        spots=int(row.get("spots") or 0),
        booked_amount=as_float(row.get("booked_amount")) or 0.0,
        invoiced_amount=as_float(row.get("invoiced_amount")) or 0.0,
        paid_amount=as_float(row.get("paid_amount")) or 0.0,
    )
