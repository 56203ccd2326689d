"""Reports and exports computed from state snapshots."""

from expenseflow.reports.aggregations import (
    BudgetHealth,
    BudgetStatus,
    CategoryTotal,
    DateRange,
    MemberContribution,
    PeriodSummary,
    RangePreset,
    ReportStats,
    Totals,
    TrendPoint,
    TrendView,
    budget_status,
    budget_statuses,
    category_breakdown,
    current_month_budgets,
    date_range,
    filter_by_date_range,
    member_contributions,
    period_summary,
    report_stats,
    totals,
    trend_data,
)
from expenseflow.reports.export import (
    CSV_COLUMNS,
    Backup,
    export_backup,
    import_backup,
    transactions_to_csv,
)

__all__ = [
    "CSV_COLUMNS",
    "Backup",
    "BudgetHealth",
    "BudgetStatus",
    "CategoryTotal",
    "DateRange",
    "MemberContribution",
    "PeriodSummary",
    "RangePreset",
    "ReportStats",
    "Totals",
    "TrendPoint",
    "TrendView",
    "budget_status",
    "budget_statuses",
    "category_breakdown",
    "current_month_budgets",
    "date_range",
    "export_backup",
    "filter_by_date_range",
    "import_backup",
    "member_contributions",
    "period_summary",
    "report_stats",
    "totals",
    "trend_data",
    "transactions_to_csv",
]
