"""Wallet Ledger API: wallets, transactions, budgets and monthly reports."""
