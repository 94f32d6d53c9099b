"""
Ledger operations racing from many threads must neither lose updates nor
create or destroy money.
"""

from concurrent.futures import ThreadPoolExecutor

from carmarket.utils.exceptions import ValidationError


def total_balance(store):
    return sum(u["balance"] for u in store.load("users"))


def test_concurrent_funding_loses_no_update(ledger, sessions, admin, store):
    alice = sessions.create_user("alice", "pw")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: ledger.admin_fund(admin, alice.id, 5), range(40)))
        list(pool.map(lambda _: ledger.faucet(alice.id, 5), range(40)))

    user = next(u for u in store.load("users") if u["id"] == alice.id)
    assert user["balance"] == 400
    assert len(store.load("audit")) == 80


def test_concurrent_purchases_conserve_money(ledger, sessions, cars, admin, store, recorder):
    seller = sessions.create_user("seller", "pw")
    buyers = [sessions.create_user(f"buyer{i}", "pw") for i in range(10)]
    for buyer in buyers:
        ledger.admin_fund(admin, buyer.id, 100)
    listed = [cars.create_car(seller, f"Car {i}", 30) for i in range(10)]
    recorder.frames.clear()
    before = total_balance(store)

    # every buyer tries to buy every car, so cars change hands repeatedly
    jobs = [(b.id, c.id) for b in buyers for c in listed]

    def attempt(job):
        buyer_id, car_id = job
        try:
            ledger.purchase(buyer_id, car_id)
            return True
        except ValidationError:
            # already owned by this buyer or out of money
            return False

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(attempt, jobs))

    assert total_balance(store) == before
    assert all(u["balance"] >= 0 for u in store.load("users"))

    purchases = [data for name, data in recorder.events() if name == "purchase"]
    assert len(purchases) == sum(results)
    assert len(store.load("audit")) == 10 + sum(results)

    # replaying the purchase events reproduces the final ownership
    owners = {c.id: seller.id for c in listed}
    for event in purchases:
        assert owners[event["carId"]] == event["sellerId"]
        owners[event["carId"]] = event["buyerId"]
    assert owners == {c["id"]: c["ownerId"] for c in store.load("cars")}


def test_concurrent_double_spend_rejected(ledger, sessions, cars, admin, store):
    seller = sessions.create_user("seller", "pw")
    buyer = sessions.create_user("buyer", "pw")
    ledger.admin_fund(admin, buyer.id, 100)
    listed = [cars.create_car(seller, f"Car {i}", 100) for i in range(5)]

    def attempt(car):
        try:
            ledger.purchase(buyer.id, car.id)
            return True
        except ValidationError:
            return False

    with ThreadPoolExecutor(max_workers=5) as pool:
        results = list(pool.map(attempt, listed))

    assert results.count(True) == 1
    balances = {u["username"]: u["balance"] for u in store.load("users")}
    assert balances["buyer"] == 0
    assert balances["seller"] == 100
