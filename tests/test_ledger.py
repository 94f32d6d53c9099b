import math

import pytest

from carmarket.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)


def balances(store):
    return {u["id"]: u["balance"] for u in store.load("users")}


def owner_of(store, car_id):
    return next(c for c in store.load("cars") if c["id"] == car_id)["ownerId"]


@pytest.fixture
def alice(sessions):
    return sessions.create_user("alice", "pw")


@pytest.fixture
def bob(sessions):
    return sessions.create_user("bob", "pw")


# ---------------------------------------------------------------- admin fund


def test_admin_fund_credits_and_debits(ledger, admin, alice, store):
    assert ledger.admin_fund(admin, alice.id, 500).balance == 500
    assert ledger.admin_fund(admin, alice.id, -200).balance == 300
    assert balances(store)[alice.id] == 300


@pytest.mark.parametrize("amount", [1_000_000, -1_000_000, 0.01])
def test_admin_fund_accepts_bounds(ledger, admin, alice, amount):
    assert ledger.admin_fund(admin, alice.id, amount).balance == amount


@pytest.mark.parametrize(
    "amount",
    [1_000_001, -1_000_001, 0, 0.0, None, "100", True, math.inf, -math.inf, math.nan],
)
def test_admin_fund_rejects_bad_amounts(ledger, admin, alice, store, recorder, amount):
    with pytest.raises(ValidationError):
        ledger.admin_fund(admin, alice.id, amount)
    assert balances(store)[alice.id] == 0
    assert recorder.frames == []
    assert store.load("audit") == []


def test_admin_fund_requires_admin(ledger, alice, bob, store):
    with pytest.raises(ForbiddenError):
        ledger.admin_fund(alice, bob.id, 100)
    assert balances(store)[bob.id] == 0


def test_admin_fund_unknown_user(ledger, admin):
    with pytest.raises(NotFoundError):
        ledger.admin_fund(admin, "missing", 100)


def test_admin_fund_audits_and_broadcasts(ledger, admin, alice, store, recorder):
    ledger.admin_fund(admin, alice.id, 250)
    [entry] = store.load("audit")
    assert entry["type"] == "admin-fund"
    assert entry["adminId"] == admin.id
    assert entry["userId"] == alice.id
    assert entry["amount"] == 250
    assert isinstance(entry["ts"], int)

    [(name, data)] = recorder.events()
    assert name == "fund"
    assert data["by"] == "admin"
    assert data["adminId"] == admin.id
    assert data["userId"] == alice.id
    assert data["amount"] == 250


# -------------------------------------------------------------------- faucet


@pytest.mark.parametrize("amount", [10_000, 1, 0.5])
def test_faucet_accepts(ledger, alice, amount):
    assert ledger.faucet(alice.id, amount).balance == amount


@pytest.mark.parametrize("amount", [0, 10_001, -5, None, math.nan, math.inf, "10"])
def test_faucet_rejects(ledger, alice, store, amount):
    with pytest.raises(ValidationError):
        ledger.faucet(alice.id, amount)
    assert balances(store)[alice.id] == 0


def test_faucet_unknown_user(ledger):
    with pytest.raises(NotFoundError):
        ledger.faucet("missing", 10)


def test_faucet_audits_and_broadcasts(ledger, alice, store, recorder):
    ledger.faucet(alice.id, 75)
    [entry] = store.load("audit")
    assert entry["type"] == "dev-faucet"
    assert entry["userId"] == alice.id
    [(name, data)] = recorder.events()
    assert name == "fund"
    assert data["by"] == "faucet"
    assert "adminId" not in data


# ------------------------------------------------------------------ purchase


@pytest.fixture
def civic(cars, alice):
    return cars.create_car(alice, "Civic", 300)


def test_purchase_moves_money_and_ownership(ledger, admin, alice, bob, civic, store, recorder):
    ledger.admin_fund(admin, bob.id, 1000)
    before = balances(store)
    recorder.frames.clear()

    result = ledger.purchase(bob.id, civic.id)

    after = balances(store)
    assert after[bob.id] == 700
    assert after[alice.id] == 300
    assert before[bob.id] + before[alice.id] == after[bob.id] + after[alice.id]
    assert owner_of(store, civic.id) == bob.id
    assert result.car.owner_id == bob.id
    assert result.buyer.balance == 700
    assert result.seller.balance == 300

    [(name, data)] = recorder.events()
    assert name == "purchase"
    assert data == {
        "event": "purchase",
        "carId": civic.id,
        "model": "Civic",
        "price": 300,
        "buyerId": bob.id,
        "sellerId": alice.id,
        "ts": data["ts"],
    }
    audit = store.load("audit")[-1]
    assert audit["type"] == "purchase"
    assert audit["carId"] == civic.id
    assert audit["buyerId"] == bob.id
    assert audit["sellerId"] == alice.id
    assert audit["price"] == 300


def test_self_purchase_rejected(ledger, admin, alice, civic, store, recorder):
    ledger.admin_fund(admin, alice.id, 1000)
    before = balances(store)
    recorder.frames.clear()
    with pytest.raises(ValidationError):
        ledger.purchase(alice.id, civic.id)
    assert balances(store) == before
    assert owner_of(store, civic.id) == alice.id
    assert recorder.frames == []


def test_insufficient_funds_rejected(ledger, admin, alice, bob, civic, store):
    ledger.admin_fund(admin, bob.id, 299.99)
    before = balances(store)
    with pytest.raises(ValidationError, match="Insufficient"):
        ledger.purchase(bob.id, civic.id)
    assert balances(store) == before
    assert owner_of(store, civic.id) == alice.id


def test_exact_balance_is_enough(ledger, admin, bob, civic, store):
    ledger.admin_fund(admin, bob.id, 300)
    assert ledger.purchase(bob.id, civic.id).buyer.balance == 0


def test_free_car(ledger, cars, alice, bob, store):
    car = cars.create_car(alice, "Beetle", 0)
    ledger.purchase(bob.id, car.id)
    assert owner_of(store, car.id) == bob.id


def test_unknown_car(ledger, bob):
    with pytest.raises(NotFoundError):
        ledger.purchase(bob.id, "missing")


def test_unknown_buyer(ledger, civic):
    with pytest.raises(NotFoundError):
        ledger.purchase("ghost", civic.id)


def test_orphaned_seller_rejected(ledger, admin, alice, bob, civic, store):
    ledger.admin_fund(admin, bob.id, 1000)
    store.save("users", [u for u in store.load("users") if u["id"] != alice.id])
    with pytest.raises(ConflictError):
        ledger.purchase(bob.id, civic.id)
    assert balances(store)[bob.id] == 1000
    assert owner_of(store, civic.id) == alice.id


def test_corrupt_price_rejected(ledger, admin, alice, bob, civic, store):
    ledger.admin_fund(admin, bob.id, 1000)
    cars = store.load("cars")
    cars[0]["price"] = -5
    store.save("cars", cars)
    with pytest.raises(ValidationError):
        ledger.purchase(bob.id, civic.id)
    assert owner_of(store, civic.id) == alice.id


@pytest.mark.parametrize("price", [None, "300", True])
def test_non_numeric_price_rejected(ledger, cars, admin, alice, bob, civic, store, recorder, price):
    golf = cars.create_car(alice, "Golf", 100)
    ledger.admin_fund(admin, bob.id, 1000)
    recorder.frames.clear()
    records = store.load("cars")
    next(c for c in records if c["id"] == civic.id)["price"] = price
    store.save("cars", records)

    with pytest.raises(ValidationError):
        ledger.purchase(bob.id, civic.id)
    assert balances(store)[bob.id] == 1000
    assert recorder.frames == []
    assert [c.id for c in cars.list_cars()] == [golf.id]

    # the unreadable listing survives writes to other cars
    ledger.purchase(bob.id, golf.id)
    assert next(c for c in store.load("cars") if c["id"] == civic.id)["price"] == price


def test_resale_chain_conserves_money(ledger, admin, sessions, cars, alice, bob, store):
    carol = sessions.create_user("carol", "pw")
    for user in (alice, bob, carol):
        ledger.admin_fund(admin, user.id, 1000)
    car = cars.create_car(alice, "Golf", 400)
    total = sum(balances(store)[u.id] for u in (alice, bob, carol))
    ledger.purchase(bob.id, car.id)
    ledger.purchase(carol.id, car.id)
    ledger.purchase(alice.id, car.id)
    after = balances(store)
    assert sum(after[u.id] for u in (alice, bob, carol)) == total
    assert owner_of(store, car.id) == alice.id


def test_storage_failure_surfaces_and_skips_broadcast(ledger, admin, bob, civic, store, recorder, monkeypatch):
    ledger.admin_fund(admin, bob.id, 1000)
    recorder.frames.clear()
    real_save = store.save

    def failing_save(name, records):
        if name == "cars":
            raise StorageError("disk full")
        real_save(name, records)

    monkeypatch.setattr(store, "save", failing_save)
    with pytest.raises(StorageError):
        ledger.purchase(bob.id, civic.id)
    assert recorder.frames == []
