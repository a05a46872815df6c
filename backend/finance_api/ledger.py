"""
Wallet balance bookkeeping.

A wallet's cached balance must always equal the sum of its signed
transaction amounts (income positive, expense negative). Every function here
writes the transaction row and the matching balance change inside a single
transactional_unit, so either both land or neither does.
"""

import logging
from decimal import Decimal
from typing import Tuple

from sqlalchemy import case, func
from sqlmodel import Session, select

from .database import transactional_unit
from .errors import Forbidden, InsufficientFunds, NotFound
from .models import Transaction, TransactionType, Wallet, utcnow
from .ownership import (
    get_owned_transaction,
    get_transaction_with_wallet,
    lock_wallets,
    verify_wallet_ownership,
)
from .schemas import TransactionCreate, TransactionUpdate, to_money

logger = logging.getLogger(__name__)


def signed_amount(type, amount) -> Decimal:
    """+amount for income, -amount for expense."""
    amount = to_money(amount)
    if TransactionType(type) == TransactionType.income:
        return amount
    return -amount


def _apply_delta(session: Session, wallet: Wallet, delta: Decimal) -> None:
    wallet.balance = to_money(to_money(wallet.balance) + delta)
    session.add(wallet)
    session.flush()
    logger.debug("Wallet %s balance %+.2f -> %s", wallet.id, delta, wallet.balance)


def create_transaction(
    session: Session,
    user_id: int,
    data: TransactionCreate
) -> Tuple[Transaction, Decimal]:
    """
    Record a transaction and apply it to its wallet.

    Returns the stored transaction and the wallet's new balance. An expense
    larger than the current balance is rejected before anything is written;
    an expense equal to the balance is allowed and leaves it at zero.
    """
    with transactional_unit(session):
        wallet = verify_wallet_ownership(session, data.wallet_id, user_id, lock=True)
        if wallet is None:
            logger.info("User %s denied access to wallet %s", user_id, data.wallet_id)
            raise Forbidden("Access denied to this wallet.")

        delta = signed_amount(data.type, data.amount)
        if data.type == TransactionType.expense and to_money(wallet.balance) < data.amount:
            logger.info(
                "Rejected expense of %s on wallet %s (balance %s)",
                data.amount, wallet.id, wallet.balance,
            )
            raise InsufficientFunds()

        transaction = Transaction(
            wallet_id=wallet.id,
            type=data.type,
            amount=data.amount,
            category=data.category,
            date=data.date,
            description=data.description or None,
        )
        session.add(transaction)
        session.flush()
        _apply_delta(session, wallet, delta)

    session.refresh(transaction)
    new_balance = to_money(wallet.balance)
    logger.info("Transaction %s created on wallet %s, balance %s", transaction.id, wallet.id, new_balance)
    return transaction, new_balance


def update_transaction(
    session: Session,
    user_id: int,
    transaction_id: int,
    data: TransactionUpdate
) -> Transaction:
    """
    Replace every field of a transaction, possibly moving it to another wallet.

    The old amount is reverted from the original wallet and the new amount
    applied to the target wallet. Unlike create, no funds check is made, so a
    correction can take a wallet below zero.
    """
    with transactional_unit(session):
        transaction = get_owned_transaction(session, transaction_id, user_id, lock=True)
        if transaction is None:
            raise NotFound("Transaction not found or access denied.")

        wallets = lock_wallets(session, [transaction.wallet_id, data.wallet_id])

        old_wallet = wallets[transaction.wallet_id]
        _apply_delta(session, old_wallet, -signed_amount(transaction.type, transaction.amount))

        new_wallet = wallets.get(data.wallet_id)
        if new_wallet is None or new_wallet.user_id != user_id:
            logger.info("User %s denied access to wallet %s", user_id, data.wallet_id)
            raise Forbidden("Access denied to new wallet.")
        _apply_delta(session, new_wallet, signed_amount(data.type, data.amount))

        transaction.wallet_id = new_wallet.id
        transaction.type = data.type
        transaction.amount = data.amount
        transaction.category = data.category
        transaction.date = data.date
        transaction.description = data.description or None
        transaction.updated_at = utcnow()
        session.add(transaction)

    session.refresh(transaction)
    logger.info("Transaction %s updated", transaction.id)
    return transaction


def delete_transaction(session: Session, user_id: int, transaction_id: int) -> Decimal:
    """
    Delete a transaction and revert its effect. Returns the wallet's new balance.

    Deletion is always allowed for the owner, even when reverting an income
    leaves the wallet negative.
    """
    with transactional_unit(session):
        row = get_transaction_with_wallet(session, transaction_id, lock=True)
        if row is None:
            raise NotFound("Transaction not found.")

        transaction, wallet = row
        if wallet.user_id != user_id:
            logger.info("User %s denied access to transaction %s", user_id, transaction_id)
            raise Forbidden("Access denied.")

        wallet = lock_wallets(session, [wallet.id])[wallet.id]
        _apply_delta(session, wallet, -signed_amount(transaction.type, transaction.amount))
        session.delete(transaction)

    new_balance = to_money(wallet.balance)
    logger.info("Transaction %s deleted from wallet %s, balance %s", transaction_id, wallet.id, new_balance)
    return new_balance


def ledger_balance(session: Session, wallet_id: int) -> Decimal:
    """Σ income − Σ expense over the wallet's current transactions."""
    signed = case(
        (Transaction.type == TransactionType.income, Transaction.amount),
        else_=-Transaction.amount,
    )
    total = session.exec(
        select(func.coalesce(func.sum(signed), 0)).where(Transaction.wallet_id == wallet_id)
    ).one()
    return to_money(total)


def reconcile_wallet(session: Session, user_id: int, wallet_id: int) -> Wallet:
    """Recompute a wallet's cached balance from its transactions."""
    with transactional_unit(session):
        wallet = verify_wallet_ownership(session, wallet_id, user_id, lock=True)
        if wallet is None:
            raise NotFound("Wallet not found or user not authorized.")

        balance = ledger_balance(session, wallet.id)
        if balance != to_money(wallet.balance):
            logger.warning(
                "Wallet %s balance drifted: cached %s, ledger %s",
                wallet.id, wallet.balance, balance,
            )
        wallet.balance = balance
        session.add(wallet)

    session.refresh(wallet)
    return wallet
