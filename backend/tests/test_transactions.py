"""Tests for transaction endpoints and the wallet balance they maintain."""
import pytest


def test_income_then_expense_updates_balance(client, alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)

    response = add_transaction(alice, wallet_id, "income", 1000, category="salary")
    assert response.status_code == 201
    assert response.json()["newBalance"] == 1000

    response = add_transaction(alice, wallet_id, "expense", 299.99, category="food", description="groceries")
    assert response.status_code == 201
    data = response.json()
    assert data["newBalance"] == 700.01
    assert data["transaction"]["description"] == "groceries"
    assert data["transaction"]["walletId"] == wallet_id
    assert balance_of(alice, wallet_id) == 700.01


def test_insufficient_funds_has_no_side_effect(client, alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    add_transaction(alice, wallet_id, "income", 50)

    response = add_transaction(alice, wallet_id, "expense", 50.01)
    assert response.status_code == 400
    assert response.json() == {"message": "Insufficient funds."}
    assert balance_of(alice, wallet_id) == 50
    assert len(client.get("/api/transactions", headers=alice).json()) == 1


def test_expense_equal_to_balance_succeeds(alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    add_transaction(alice, wallet_id, "income", 80)

    response = add_transaction(alice, wallet_id, "expense", 80)
    assert response.status_code == 201
    assert response.json()["newBalance"] == 0
    assert balance_of(alice, wallet_id) == 0


@pytest.mark.parametrize("overrides", [
    {"amount": 0},
    {"amount": -10},
    {"amount": "ten"},
    {"amount": 0.001},
    {"amount": 1e30},
    {"amount": 1e11},
    {"type": "transfer"},
    {"category": ""},
    {"date": "not-a-date"},
    {"walletId": None},
])
def test_create_validation_errors(client, alice, make_wallet, overrides):
    wallet_id = make_wallet(alice)
    payload = {"walletId": wallet_id, "type": "income", "amount": 10, "category": "misc", "date": "2024-05-10"}
    payload.update(overrides)

    response = client.post("/api/transactions", json=payload, headers=alice)
    assert response.status_code == 400
    assert "message" in response.json()


def test_create_in_other_users_wallet_is_403(alice, bob, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)

    response = add_transaction(bob, wallet_id, "income", 10)
    assert response.status_code == 403
    assert response.json() == {"message": "Access denied to this wallet."}
    assert balance_of(alice, wallet_id) == 0


def test_create_in_missing_wallet_is_403(alice, add_transaction):
    assert add_transaction(alice, 9999, "income", 10).status_code == 403


def test_list_filters_and_orders_newest_first(client, alice, make_wallet, add_transaction):
    cash = make_wallet(alice, "Cash")
    bank = make_wallet(alice, "Bank")
    add_transaction(alice, cash, "income", 10, date="2024-05-01")
    add_transaction(alice, cash, "income", 20, date="2024-05-20")
    add_transaction(alice, bank, "income", 30, date="2024-05-10")
    add_transaction(alice, bank, "income", 40, date="2024-06-02")

    everything = client.get("/api/transactions", headers=alice).json()
    assert [t["date"] for t in everything] == ["2024-06-02", "2024-05-20", "2024-05-10", "2024-05-01"]

    only_cash = client.get("/api/transactions", params={"walletId": cash}, headers=alice).json()
    assert [t["amount"] for t in only_cash] == [20, 10]

    may = client.get(
        "/api/transactions",
        params={"startDate": "2024-05-01", "endDate": "2024-05-31"},
        headers=alice,
    ).json()
    assert len(may) == 3

    # a lone startDate is ignored
    assert len(client.get("/api/transactions", params={"startDate": "2024-06-01"}, headers=alice).json()) == 4


def test_list_never_shows_other_users_transactions(client, alice, bob, make_wallet, add_transaction):
    add_transaction(alice, make_wallet(alice), "income", 10)
    assert client.get("/api/transactions", headers=bob).json() == []


def test_delete_reverts_balance(client, alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    add_transaction(alice, wallet_id, "income", 100)
    expense_id = add_transaction(alice, wallet_id, "expense", 30).json()["transaction"]["id"]

    response = client.delete(f"/api/transactions/{expense_id}", headers=alice)
    assert response.status_code == 200
    assert response.json()["newBalance"] == 100
    assert client.get(f"/api/transactions/{expense_id}", headers=alice).status_code == 404


def test_delete_income_may_go_negative(client, alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    income_id = add_transaction(alice, wallet_id, "income", 100).json()["transaction"]["id"]
    add_transaction(alice, wallet_id, "expense", 60)

    response = client.delete(f"/api/transactions/{income_id}", headers=alice)
    assert response.status_code == 200
    assert response.json()["newBalance"] == -60
    assert balance_of(alice, wallet_id) == -60


def test_delete_not_found_vs_forbidden(client, alice, bob, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    transaction_id = add_transaction(alice, wallet_id, "income", 100).json()["transaction"]["id"]

    assert client.delete("/api/transactions/9999", headers=alice).status_code == 404

    response = client.delete(f"/api/transactions/{transaction_id}", headers=bob)
    assert response.status_code == 403
    assert balance_of(alice, wallet_id) == 100


def test_read_other_users_transaction_is_404(client, alice, bob, make_wallet, add_transaction):
    transaction_id = add_transaction(alice, make_wallet(alice), "income", 5).json()["transaction"]["id"]
    assert client.get(f"/api/transactions/{transaction_id}", headers=bob).status_code == 404


def _edit(client, headers, transaction_id, wallet_id, type, amount, category="general", date="2024-05-10"):
    return client.put(
        f"/api/transactions/{transaction_id}",
        json={"walletId": wallet_id, "type": type, "amount": amount, "category": category, "date": date},
        headers=headers,
    )


def test_edit_in_place(client, alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    add_transaction(alice, wallet_id, "income", 500)
    transaction_id = add_transaction(alice, wallet_id, "expense", 100).json()["transaction"]["id"]

    response = _edit(client, alice, transaction_id, wallet_id, "expense", 150, category="rent")
    assert response.status_code == 200
    assert response.json()["transaction"]["category"] == "rent"
    assert balance_of(alice, wallet_id) == 350

    # switching the type flips the sign
    _edit(client, alice, transaction_id, wallet_id, "income", 150)
    assert balance_of(alice, wallet_id) == 650


def test_edit_moves_transaction_between_wallets(client, alice, make_wallet, add_transaction, balance_of):
    cash = make_wallet(alice, "Cash")
    bank = make_wallet(alice, "Bank")
    add_transaction(alice, cash, "income", 200)
    add_transaction(alice, bank, "income", 50)
    transaction_id = add_transaction(alice, cash, "expense", 80).json()["transaction"]["id"]
    assert balance_of(alice, cash) == 120

    response = _edit(client, alice, transaction_id, bank, "expense", 30)
    assert response.status_code == 200
    assert response.json()["transaction"]["walletId"] == bank

    assert balance_of(alice, cash) == 200
    assert balance_of(alice, bank) == 20


def test_edit_skips_funds_check(client, alice, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    add_transaction(alice, wallet_id, "income", 100)
    transaction_id = add_transaction(alice, wallet_id, "expense", 10).json()["transaction"]["id"]

    response = _edit(client, alice, transaction_id, wallet_id, "expense", 500)
    assert response.status_code == 200
    assert balance_of(alice, wallet_id) == -400


def test_edit_other_users_transaction_is_404(client, alice, bob, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    transaction_id = add_transaction(alice, wallet_id, "income", 100).json()["transaction"]["id"]
    bob_wallet = make_wallet(bob)

    response = _edit(client, bob, transaction_id, bob_wallet, "income", 1)
    assert response.status_code == 404
    assert response.json() == {"message": "Transaction not found or access denied."}
    assert _edit(client, alice, 9999, wallet_id, "income", 1).status_code == 404
    assert balance_of(alice, wallet_id) == 100


def test_edit_into_other_users_wallet_is_403_and_rolls_back(client, alice, bob, make_wallet, add_transaction, balance_of):
    wallet_id = make_wallet(alice)
    transaction_id = add_transaction(alice, wallet_id, "income", 100).json()["transaction"]["id"]
    bob_wallet = make_wallet(bob)

    response = _edit(client, alice, transaction_id, bob_wallet, "income", 100)
    assert response.status_code == 403
    assert response.json() == {"message": "Access denied to new wallet."}

    # the revert applied before the ownership check was rolled back
    assert balance_of(alice, wallet_id) == 100
    assert balance_of(bob, bob_wallet) == 0
    assert client.get(f"/api/transactions/{transaction_id}", headers=alice).json()["walletId"] == wallet_id


def test_edit_validation_error(client, alice, make_wallet, add_transaction):
    wallet_id = make_wallet(alice)
    transaction_id = add_transaction(alice, wallet_id, "income", 100).json()["transaction"]["id"]
    assert _edit(client, alice, transaction_id, wallet_id, "income", -1).status_code == 400


def test_balance_matches_ledger_after_mixed_operations(client, alice, make_wallet, add_transaction, balance_of):
    cash = make_wallet(alice, "Cash")
    bank = make_wallet(alice, "Bank")

    add_transaction(alice, cash, "income", 1000)
    add_transaction(alice, bank, "income", 300)
    t1 = add_transaction(alice, cash, "expense", 120.25).json()["transaction"]["id"]
    t2 = add_transaction(alice, bank, "expense", 45.10).json()["transaction"]["id"]
    add_transaction(alice, cash, "expense", 0.35)
    _edit(client, alice, t1, bank, "expense", 99.99)
    client.delete(f"/api/transactions/{t2}", headers=alice)
    add_transaction(alice, bank, "income", 12.01)

    for wallet_id in (cash, bank):
        rows = client.get("/api/transactions", params={"walletId": wallet_id}, headers=alice).json()
        expected = sum(r["amount"] if r["type"] == "income" else -r["amount"] for r in rows)
        assert balance_of(alice, wallet_id) == pytest.approx(expected)
        reconciled = client.post(f"/api/wallets/{wallet_id}/reconcile", headers=alice).json()
        assert reconciled["balance"] == balance_of(alice, wallet_id)
