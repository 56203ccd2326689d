"""
Streamlit Frontend for ExpenseFlow

A thin dashboard over ``ExpenseSession``. Authentication lives outside
this package, so the dashboard runs signed out: data is hydrated from
local storage and every change is mirrored back to it.

DESIGN PRINCIPLES:
1. The page only reads ``session.state``; it never keeps its own copy
2. Forms are validated before anything is dispatched
3. Errors are shown in plain language next to the form
"""

import asyncio
from datetime import date

import pandas as pd
import streamlit as st

from expenseflow.config import validate_all_settings
from expenseflow.models import EXPENSE_CATEGORIES, TransactionType
from expenseflow.reports import (
    budget_statuses,
    category_breakdown,
    current_month_budgets,
    date_range,
    filter_by_date_range,
    period_summary,
    report_stats,
    totals,
    transactions_to_csv,
    trend_data,
)
from expenseflow.session import ExpenseSession, create_session
from expenseflow.utils.dates import COMMON_TIMEZONES, format_display_date
from expenseflow.validation import (
    ValidationError,
    build_budget,
    build_transaction,
    validate_transaction_form,
)


# Page configuration
st.set_page_config(
    page_title="ExpenseFlow",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_session() -> ExpenseSession:
    """Get or create the session (cached), hydrated from local storage."""
    session = create_session(use_firestore=False)
    run_async(session.set_identity(None))
    return session


def main():
    """Main application entry point."""
    session = get_session()

    st.sidebar.title("💰 ExpenseFlow")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "➕ Add Transaction", "🎯 Budgets", "📈 Reports", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.caption("Data is stored on this device until you sign in.")

    with st.sidebar.expander("Configuration"):
        for name, ok in validate_all_settings().items():
            if name.endswith("_error"):
                st.caption(ok)
            else:
                st.write(f"{'✅' if ok else '❌'} {name}")

    if page == "📊 Dashboard":
        render_dashboard_page(session)
    elif page == "➕ Add Transaction":
        render_add_page(session)
    elif page == "🎯 Budgets":
        render_budgets_page(session)
    elif page == "📈 Reports":
        render_reports_page(session)
    elif page == "⚙️ Settings":
        render_settings_page(session)


def render_dashboard_page(session: ExpenseSession):
    """Balance, this month at a glance and the latest transactions."""
    state = session.state
    tz = state.settings.timezone
    currency = state.settings.currency

    st.title("📊 Dashboard")

    overall = totals(state.transactions)
    summary = period_summary(state.transactions, date.today(), tz)

    col1, col2, col3 = st.columns(3)
    col1.metric("Balance", f"{overall.balance} {currency}")
    col2.metric("Income this month", f"{summary.month_income} {currency}")
    col3.metric("Expenses this month", f"{summary.month_expense} {currency}")

    st.markdown("---")
    st.markdown("### Recent Transactions")

    if not state.transactions:
        st.info("No transactions yet. Use 'Add Transaction' to record your first one.")
        return

    for t in state.transactions[:20]:
        left, middle, right = st.columns([5, 2, 1])
        left.markdown(f"**{t.text}**  \n{t.category} · {format_display_date(t.date, tz)}")
        middle.markdown(f"{t.amount:+.2f} {currency}")
        if right.button("🗑️", key=f"delete-{t.id}"):
            run_async(session.delete_transaction(t))
            st.rerun()


def render_add_page(session: ExpenseSession):
    """Transaction form; nothing is saved until it validates."""
    state = session.state
    st.title("➕ Add Transaction")

    with st.form("transaction"):
        text = st.text_input("Description")
        amount = st.text_input("Amount", placeholder="0.00")
        kind = st.radio(
            "Type",
            [TransactionType.EXPENSE.value, TransactionType.INCOME.value],
            format_func=str.title,
            horizontal=True,
        )
        category = st.selectbox("Category", list(state.categories))
        day = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button("💾 Save")

    if not submitted:
        return

    result = validate_transaction_form(text, amount, kind, day.isoformat(), state.settings.timezone)
    if not result.is_valid:
        for message in result.errors:
            st.error(message)
        return

    transaction = build_transaction(
        text,
        amount,
        kind,
        category=category,
        date_text=day.isoformat(),
        timezone=state.settings.timezone,
    )
    run_async(session.add_transaction(transaction))
    st.success(f"✅ Saved '{transaction.text}'")


def render_budgets_page(session: ExpenseSession):
    """Budgets of the current month with their usage."""
    state = session.state
    today = date.today()
    st.title("🎯 Budgets")

    statuses = budget_statuses(
        current_month_budgets(state.budgets, today),
        state.transactions,
        state.family_transactions,
        state.settings.warning_threshold,
        state.settings.timezone,
    )
    if not statuses:
        st.info("No budgets for this month yet.")

    for status in statuses:
        st.markdown(
            f"**{status.budget.category}**: {status.spent} of "
            f"{status.budget.limit:.2f} ({status.percentage}%)"
        )
        st.progress(min(float(status.percentage) / 100, 1.0))
        if status.status.value == "over":
            st.error("Over budget")
        elif status.status.value == "warning":
            st.warning("Close to the limit")

    st.markdown("---")
    with st.form("budget"):
        category = st.selectbox(
            "Category",
            [c for c in state.categories if c in EXPENSE_CATEGORIES] or list(state.categories),
        )
        limit = st.text_input("Monthly limit")
        submitted = st.form_submit_button("Add Budget")

    if submitted:
        try:
            budget = build_budget(category, limit, today.month, today.year)
        except ValidationError as e:
            st.error(str(e))
            return
        run_async(session.add_budget(budget))
        st.rerun()


def render_reports_page(session: ExpenseSession):
    """Date-range report, category breakdown, trend and CSV download."""
    state = session.state
    tz = state.settings.timezone
    st.title("📈 Reports")

    preset = st.selectbox(
        "Period",
        ["thisMonth", "lastMonth", "last3Months", "thisYear"],
        format_func=lambda p: {
            "thisMonth": "This Month",
            "lastMonth": "Last Month",
            "last3Months": "Last 3 Months",
            "thisYear": "This Year",
        }[p],
    )
    period = date_range(preset, date.today())
    selected = filter_by_date_range(state.transactions, period, tz)
    stats = report_stats(selected, period)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", str(stats.income))
    col2.metric("Expenses", str(stats.expenses))
    col3.metric("Net", str(stats.net))
    col4.metric("Avg / day", str(stats.average_daily_spend))

    breakdown = category_breakdown(selected)
    if breakdown:
        st.markdown("### Spending by Category")
        st.bar_chart(pd.DataFrame(
            {"Amount": [float(row.amount) for row in breakdown]},
            index=[row.category for row in breakdown],
        ))

    view = st.radio("Trend", ["daily", "weekly", "monthly"], format_func=str.title, horizontal=True)
    points = trend_data(selected, view, tz)
    if points:
        st.line_chart(pd.DataFrame(
            {
                "Income": [float(p.income) for p in points],
                "Expenses": [float(p.expenses) for p in points],
            },
            index=[p.label for p in points],
        ))

    st.download_button(
        "⬇️ Download CSV",
        data=transactions_to_csv(selected, tz),
        file_name=f"transactions_{period.start}_{period.end}.csv",
        mime="text/csv",
    )


def render_settings_page(session: ExpenseSession):
    """Preferences and the local data reset."""
    settings = session.state.settings
    st.title("⚙️ Settings")

    zones = [value for value, _ in COMMON_TIMEZONES]
    labels = dict(COMMON_TIMEZONES)

    with st.form("settings"):
        currency = st.text_input("Currency", value=settings.currency)
        theme = st.radio(
            "Theme", ["dark", "light"], index=0 if settings.theme == "dark" else 1, horizontal=True
        )
        threshold = st.slider("Budget warning at (%)", 1, 100, settings.warning_threshold)
        timezone = st.selectbox(
            "Timezone",
            zones,
            index=zones.index(settings.timezone) if settings.timezone in zones else 0,
            format_func=lambda z: labels[z],
        )
        submitted = st.form_submit_button("Save Settings")

    if submitted:
        run_async(session.update_settings({
            "currency": currency.strip().upper(),
            "theme": theme,
            "warningThreshold": threshold,
            "timezone": timezone,
        }))
        st.success("✅ Settings saved")

    st.markdown("---")
    st.markdown("### Danger Zone")
    if st.button("Clear all data"):
        run_async(session.clear_all_data())
        st.warning("All local data was cleared.")


if __name__ == "__main__":
    main()
