"""
CRUD operations (Create, Read, Update, Delete) for users, wallets, budgets
and transaction reads. Balance-changing writes live in ledger.py.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .database import transactional_unit
from .errors import EmailInUse, NotFound, StoreFailure
from .models import Budget, Transaction, User, Wallet
from .ownership import lock_wallet_transactions, lock_wallets, verify_wallet_ownership

logger = logging.getLogger(__name__)


# ============================================
# User CRUD Operations
# ============================================

def create_user(session: Session, email: str, hashed_password: str) -> User:
    """Create a new user. Raises EmailInUse when the email is taken."""
    if get_user_by_email(session, email):
        raise EmailInUse()

    try:
        with transactional_unit(session):
            user = User(email=email, hashed_password=hashed_password)
            session.add(user)
    except StoreFailure as exc:
        # lost a race with a concurrent registration
        if isinstance(exc.__cause__, IntegrityError):
            raise EmailInUse()
        raise
    session.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def get_user(session: Session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    """Get user by email."""
    statement = select(User).where(User.email == email)
    return session.exec(statement).first()


# ============================================
# Wallet CRUD Operations
# ============================================

def create_wallet(session: Session, user_id: int, name: str) -> Wallet:
    """Create a wallet with a zero balance."""
    with transactional_unit(session):
        wallet = Wallet(user_id=user_id, name=name, balance=Decimal("0.00"))
        session.add(wallet)
    session.refresh(wallet)
    logger.info("User %s created wallet %s", user_id, wallet.id)
    return wallet


def get_wallets_by_user(session: Session, user_id: int) -> List[Wallet]:
    statement = select(Wallet).where(Wallet.user_id == user_id).order_by(Wallet.id)
    return session.exec(statement).all()


def delete_wallet(session: Session, user_id: int, wallet_id: int) -> None:
    """
    Delete a wallet together with all of its transactions.

    Absent and foreign wallets both raise the same NotFound. Transaction rows
    are locked before the wallet row, the same order edit and delete use.
    """
    with transactional_unit(session):
        if verify_wallet_ownership(session, wallet_id, user_id) is None:
            raise NotFound("Wallet not found or user not authorized.")

        transactions = lock_wallet_transactions(session, wallet_id)
        wallet = lock_wallets(session, [wallet_id]).get(wallet_id)
        if wallet is None:
            raise NotFound("Wallet not found or user not authorized.")
        for t in transactions:
            session.delete(t)
        session.flush()
        session.delete(wallet)
    logger.info("User %s deleted wallet %s (%d transactions)", user_id, wallet_id, len(transactions))


# ============================================
# Transaction read operations
# ============================================

def get_transactions_by_user(
    session: Session,
    user_id: int,
    wallet_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[Transaction]:
    """List the caller's transactions, newest date first."""
    statement = (
        select(Transaction)
        .join(Wallet, Transaction.wallet_id == Wallet.id)
        .where(Wallet.user_id == user_id)
    )

    if wallet_id is not None:
        statement = statement.where(Transaction.wallet_id == wallet_id)

    # the range only applies when both ends are given
    if start_date and end_date:
        statement = statement.where(Transaction.date.between(start_date, end_date))

    statement = statement.order_by(Transaction.date.desc(), Transaction.id.desc())
    return session.exec(statement).all()


# ============================================
# Budget CRUD Operations
# ============================================

def upsert_budget(
    session: Session,
    user_id: int,
    category: str,
    amount: Decimal,
    month: str
) -> Tuple[Budget, bool]:
    """
    Set the budget for (user, category, month).

    Returns (budget, created). A second call for the same key overwrites the
    amount instead of adding a row.
    """
    try:
        with transactional_unit(session):
            budget, created = _write_budget(session, user_id, category, amount, month)
    except StoreFailure as exc:
        if not isinstance(exc.__cause__, IntegrityError):
            raise
        # a concurrent request inserted the same key first; update it instead
        with transactional_unit(session):
            budget, created = _write_budget(session, user_id, category, amount, month)

    session.refresh(budget)
    return budget, created


def _write_budget(session, user_id, category, amount, month):
    budget = session.exec(
        select(Budget)
        .where(
            Budget.user_id == user_id,
            Budget.category == category,
            Budget.month == month,
        )
        .with_for_update()
    ).first()

    if budget is None:
        budget = Budget(user_id=user_id, category=category, month=month, amount=amount)
        session.add(budget)
        session.flush()
        return budget, True

    budget.amount = amount
    session.add(budget)
    return budget, False


def get_budgets_for_month(session: Session, user_id: int, month: str) -> List[Budget]:
    statement = (
        select(Budget)
        .where(Budget.user_id == user_id, Budget.month == month)
        .order_by(Budget.category)
    )
    return session.exec(statement).all()
