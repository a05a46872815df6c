"""
Ownership checks shared by every wallet- and transaction-scoped operation.

Transaction lookups bind transaction.wallet_id = wallet.id AND
wallet.user_id = caller in one query, so "does not exist" and "belongs to
someone else" come back as the same None.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from .models import Transaction, Wallet


def verify_wallet_ownership(
    session: Session,
    wallet_id: int,
    user_id: int,
    lock: bool = False
) -> Optional[Wallet]:
    """Return the wallet if it exists and belongs to user_id, else None."""
    statement = select(Wallet).where(Wallet.id == wallet_id, Wallet.user_id == user_id)
    if lock:
        statement = statement.with_for_update().execution_options(populate_existing=True)
    return session.exec(statement).first()


def lock_wallets(session: Session, wallet_ids: Iterable[int]) -> Dict[int, Wallet]:
    """
    Row-lock the given wallets and return them keyed by id.

    Locks are taken in ascending id order so two units touching the same pair
    of wallets cannot deadlock. Balances are re-read from the store.
    """
    ids = sorted(set(wallet_ids))
    statement = (
        select(Wallet)
        .where(Wallet.id.in_(ids))
        .order_by(Wallet.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {w.id: w for w in session.exec(statement).all()}


def get_owned_transaction(
    session: Session,
    transaction_id: int,
    user_id: int,
    lock: bool = False
) -> Optional[Transaction]:
    statement = (
        select(Transaction)
        .join(Wallet, Transaction.wallet_id == Wallet.id)
        .where(Transaction.id == transaction_id, Wallet.user_id == user_id)
    )
    if lock:
        statement = statement.with_for_update(of=Transaction).execution_options(populate_existing=True)
    return session.exec(statement).first()


def get_transaction_with_wallet(
    session: Session,
    transaction_id: int,
    lock: bool = False
) -> Optional[Tuple[Transaction, Wallet]]:
    """Unscoped lookup for callers that report not-found and forbidden separately."""
    statement = (
        select(Transaction, Wallet)
        .join(Wallet, Transaction.wallet_id == Wallet.id)
        .where(Transaction.id == transaction_id)
    )
    if lock:
        statement = statement.with_for_update(of=Transaction).execution_options(populate_existing=True)
    return session.exec(statement).first()


def lock_wallet_transactions(session: Session, wallet_id: int) -> List[Transaction]:
    """Row-lock and return every transaction recorded against wallet_id."""
    statement = (
        select(Transaction)
        .where(Transaction.wallet_id == wallet_id)
        .order_by(Transaction.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).all()
