"""
Monthly report: income/expense totals, budget-vs-spend rows and the
threshold notifications derived from them.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import case, func
from sqlmodel import Session, select

from .config import settings
from .models import Budget, Transaction, TransactionType, Wallet
from .schemas import to_money


def month_window(today: date) -> Tuple[date, date]:
    """First and last calendar day of today's month, inclusive."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def month_key(today: date) -> str:
    return today.strftime("%Y-%m")


def format_amount(value: Decimal) -> str:
    """20.00 -> '20', 12.50 -> '12.50'."""
    value = to_money(value)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def budget_notifications(budget_status: List[dict], warning_ratio: Optional[float] = None) -> List[str]:
    """
    Messages for budgets at or past the warning ratio of their ceiling.

    A row only qualifies when something was spent. Spending strictly above
    the budget is reported as exceeded; anything else that qualifies
    (including exactly the threshold or exactly the budget) as approaching.
    """
    ratio = Decimal(str(warning_ratio if warning_ratio is not None else settings.BUDGET_WARNING_RATIO))
    notifications = []
    for row in budget_status:
        spent, budget, remaining = row["spent"], row["budget"], row["remaining"]
        if not (spent > 0 and spent >= budget * ratio):
            continue
        if spent > budget:
            notifications.append(
                f"You have exceeded your '{row['category']}' budget by {format_amount(abs(remaining))}."
            )
        else:
            notifications.append(
                f"You are approaching your '{row['category']}' budget. Only {format_amount(remaining)} left."
            )
    return notifications


def _income_expense_totals(session: Session, user_id: int, start: date, end: date) -> Tuple[Decimal, Decimal]:
    income = func.coalesce(func.sum(case(
        (Transaction.type == TransactionType.income, Transaction.amount), else_=0
    )), 0)
    expenses = func.coalesce(func.sum(case(
        (Transaction.type == TransactionType.expense, Transaction.amount), else_=0
    )), 0)
    row = session.exec(
        select(income, expenses)
        .select_from(Transaction)
        .join(Wallet, Transaction.wallet_id == Wallet.id)
        .where(Wallet.user_id == user_id, Transaction.date.between(start, end))
    ).one()
    return to_money(row[0]), to_money(row[1])


def _spent_by_category(session: Session, user_id: int, start: date, end: date) -> dict:
    rows = session.exec(
        select(Transaction.category, func.sum(Transaction.amount))
        .join(Wallet, Transaction.wallet_id == Wallet.id)
        .where(
            Wallet.user_id == user_id,
            Transaction.type == TransactionType.expense,
            Transaction.date.between(start, end),
        )
        .group_by(Transaction.category)
    ).all()
    return {category: to_money(spent) for category, spent in rows}


def build_monthly_report(session: Session, user_id: int, today: Optional[date] = None) -> dict:
    """
    Totals and budget status for the calendar month containing `today`
    (defaults to the current date).
    """
    today = today or date.today()
    start, end = month_window(today)

    total_income, total_expenses = _income_expense_totals(session, user_id, start, end)
    spent_by_category = _spent_by_category(session, user_id, start, end)

    budgets = session.exec(
        select(Budget)
        .where(Budget.user_id == user_id, Budget.month == month_key(today))
        .order_by(Budget.category)
    ).all()

    budget_status = []
    for b in budgets:
        budget = to_money(b.amount)
        spent = spent_by_category.get(b.category, Decimal("0.00"))
        budget_status.append({
            "category": b.category,
            "budget": budget,
            "spent": spent,
            "remaining": budget - spent,
        })

    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_savings": total_income - total_expenses,
        "budget_status": budget_status,
        "notifications": budget_notifications(budget_status),
    }
