import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import atexit
import json
import streamlit as st
import pandas as pd
import plotly.graph_objects as go
import plotly.express as px

from budget_core.catalog import format_currency
from budget_core.config import configure_logging, ensure_data_directories, load_settings
from budget_core.controller import BudgetController
from budget_core.domain import EXPENSE, INCOME, INCOME_CATEGORY
from budget_core.functional import validate_transaction_input
from budget_core.lazy import iter_transactions, recent_transactions, top_categories
from budget_core.monthly import ReportTracker, file_report_sender, generate_monthly_report
from budget_core.sms_parser import parse_messages
from budget_core.totals import category_remaining

st.set_page_config(page_title="Budget Planner", layout="wide")

if "controller" not in st.session_state:
    settings = load_settings()
    configure_logging(settings.log_level)
    ensure_data_directories(settings)
    controller = BudgetController(settings=settings)
    controller.hydrate()
    atexit.register(controller.close)
    send_report = file_report_sender(settings.data_dir / "reports")
    monthly_result = asyncio.run(
        controller.run_monthly_check(send_report, ReportTracker(settings.report_log_path))
    )
    st.session_state.controller = controller
    st.session_state.send_report = send_report
    st.session_state.monthly_result = monthly_result
    st.session_state.parsed_sms = []

controller: BudgetController = st.session_state.controller
monthly_result = st.session_state.pop("monthly_result", {})
if monthly_result.get("processed"):
    if monthly_result.get("success"):
        st.toast("Monthly report saved and a new month started")
    else:
        st.sidebar.error(f"Monthly report failed: {monthly_result.get('error')}")
state = controller.state
category_names = {c.id: c.name for c in state.categories}


def tx_to_df(transactions):
    rows = [
        {
            "date": pd.to_datetime(t.date, errors="coerce"),
            "type": t.type,
            "amount": float(t.amount),
            "category": category_names.get(t.category, t.category),
            "description": t.description,
            "id": t.id,
            "category_id": t.category,
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=["date", "type", "amount", "category", "description", "id", "category_id"])


menu = st.sidebar.radio(
    "Menu",
    ["🏠 Overview", "🗂 Categories", "🧾 Transactions", "📩 SMS", "📅 Month"]
)

for alert in controller.alerts[-3:]:
    st.sidebar.warning(alert)

if menu == "🏠 Overview":
    st.title(f"🏠 Overview · {state.current_month}")
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Income", format_currency(state.total_income))
    with k2:
        st.metric("Budget", format_currency(state.total_budget))
    with k3:
        st.metric("Spent", format_currency(state.total_spent))
    with k4:
        st.metric("Remaining", format_currency(state.remaining_balance))

    fig = go.Figure()
    fig.add_trace(go.Bar(name="Budget", x=[c.name for c in state.categories], y=[float(c.budget) for c in state.categories]))
    fig.add_trace(go.Bar(name="Spent", x=[c.name for c in state.categories], y=[float(c.spent) for c in state.categories]))
    fig.update_layout(barmode="group", title="Budget vs Spent", template="plotly_dark")
    st.plotly_chart(fig, use_container_width=True)

    top = list(top_categories(state, 5))
    if top:
        df_top = pd.DataFrame(top, columns=["Category", "Spent"]).assign(Spent=lambda x: x["Spent"].astype(float))
        st.plotly_chart(px.pie(df_top, values="Spent", names="Category", title="Top Categories"), use_container_width=True)
    else:
        st.info("No expenses recorded this month.")

elif menu == "🗂 Categories":
    st.title("🗂 Categories")
    for cat in state.categories:
        col1, col2, col3 = st.columns([2, 2, 2])
        with col1:
            st.markdown(f"### {cat.icon} {cat.name}")
            st.caption(f"{format_currency(cat.spent)} spent · {format_currency(category_remaining(cat))} left")
            if cat.budget > 0:
                st.progress(min(1.0, float(cat.spent / cat.budget)))
        with col2:
            new_budget = st.number_input("Budget", min_value=0.0, value=float(cat.budget), step=500.0, key=f"budget_{cat.id}")
            if st.button("Save budget", key=f"btn_budget_{cat.id}"):
                controller.set_budget(cat.id, str(new_budget))
                st.rerun()
        with col3:
            new_spent = st.number_input("Spent (manual)", min_value=0.0, value=float(cat.spent), step=100.0, key=f"spent_{cat.id}")
            if st.button("Override spent", key=f"btn_spent_{cat.id}"):
                controller.set_spent(cat.id, str(new_spent))
                st.rerun()

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")

    with st.form("input_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            tx_type = st.radio("Type", [EXPENSE, INCOME], horizontal=True)
            amount = st.number_input("Amount (₹)", min_value=0.0, step=100.0, format="%.2f")
        with col2:
            category = st.selectbox("Category", [c.id for c in state.categories], format_func=lambda cid: category_names[cid])
            description = st.text_input("Description")
        submitted = st.form_submit_button("Add Transaction")

        if submitted:
            checked = validate_transaction_input(tx_type, str(amount), category, description, state)
            if checked.is_left():
                st.error(checked.get_error()["message"])
            else:
                fields = checked.get_or_else({})
                controller.add_transaction(fields["type"], fields["amount"], fields["category"], fields["description"])
                st.success("Transaction added")
                st.rerun()

    df = tx_to_df(recent_transactions(state, limit=200))
    if df.empty:
        st.info("No transactions yet.")
    else:
        display_df = df.assign(
            date=lambda x: x["date"].dt.strftime("%Y-%m-%d %H:%M").fillna("-"),
            amount=lambda x: x["amount"].map(lambda v: f"₹{v:,.2f}"),
        )[["date", "type", "amount", "category", "description"]]
        st.dataframe(display_df.reset_index(drop=True), use_container_width=True)
        st.download_button("⬇ Download CSV", df.to_csv(index=False), file_name="transactions.csv")

        choice = st.selectbox(
            "Delete transaction",
            options=list(df.index),
            format_func=lambda i: f"{df.at[i, 'description']} · ₹{df.at[i, 'amount']:,.2f}",
        )
        if st.button("🗑 Delete"):
            row = df.loc[choice]
            target = INCOME_CATEGORY if row["type"] == INCOME else row["category_id"]
            controller.delete_transaction(row["id"], target)
            st.rerun()

elif menu == "📩 SMS":
    st.title("📩 SMS Tracking")
    sender = st.text_input("Sender (optional)", placeholder="VM-HDFCBK")
    raw = st.text_area("Paste bank messages, one per line", height=180)

    if st.button("🔍 Scan messages"):
        lines = [line for line in raw.splitlines() if line.strip()]
        found = list(parse_messages((line, sender or None) for line in lines))
        st.session_state.parsed_sms = found
        st.caption(f"{len(found)} of {len(lines)} messages look like transactions")

    parsed_list = st.session_state.parsed_sms
    if parsed_list:
        st.subheader(f"Found Transactions ({len(parsed_list)})")
        for idx, parsed in enumerate(parsed_list):
            col1, col2 = st.columns([4, 1])
            with col1:
                label = "Income" if parsed.type == INCOME else "Expense"
                cat = category_names.get(parsed.category, parsed.category) if parsed.type == EXPENSE else "Income"
                st.markdown(f"**{format_currency(parsed.amount)}** · {label} · {cat}")
                st.caption(parsed.description + (f" · Merchant: {parsed.merchant}" if parsed.merchant else ""))
            with col2:
                if st.button("Add", key=f"add_sms_{idx}"):
                    controller.add_parsed(parsed)
                    st.session_state.parsed_sms = parsed_list[:idx] + parsed_list[idx + 1:]
                    st.rerun()
        if st.button(f"Add all {len(parsed_list)}"):
            added = controller.add_all_parsed(parsed_list)
            st.session_state.parsed_sms = []
            st.success(f"Added {added} transactions")
            st.rerun()

elif menu == "📅 Month":
    st.title(f"📅 Month · {state.current_month}")
    st.caption(f"Last reset: {state.last_reset_date}")

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("🔄 Reset month"):
            controller.reset_monthly_budget()
            st.rerun()
    with col2:
        if st.button("➡ Carry over balance", disabled=state.remaining_balance <= 0):
            controller.carry_over_balance()
            st.rerun()
    with col3:
        savings = st.number_input("Allocate to savings (₹)", min_value=0.0, step=500.0)
        if st.button("💰 Allocate"):
            controller.allocate_to_savings(str(savings))
            st.rerun()

    report = generate_monthly_report(state)
    income_df = tx_to_df(state.income_transactions)
    expense_df = tx_to_df(iter_transactions(state, lambda t: t.type == EXPENSE))
    st.subheader("Income")
    st.dataframe(income_df[["date", "amount", "description"]], use_container_width=True)
    st.subheader("Expenses")
    st.dataframe(expense_df[["date", "amount", "category", "description"]], use_container_width=True)
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "⬇ Download monthly report (JSON)",
            json.dumps(report.to_dict(), ensure_ascii=False, indent=2),
            file_name=f"budget_report_{report.month}.json",
            mime="application/json",
        )
    with col2:
        if st.button("📤 Send report"):
            sent = asyncio.run(controller.send_report(st.session_state.send_report))
            if sent["success"]:
                st.success(f"Report for {report.month} saved to the reports folder")
            else:
                st.error(sent["error"])
