"""
Ledger operations: admin fund, development faucet and car purchase.

Each operation validates its input before reading anything, then runs one
load -> check -> compute -> save cycle inside a write region over every
record set it touches. Holding the region across the whole cycle makes
concurrent operations serializable per record set, so balances are
conserved and no update is lost.

The audit entry is appended and the event broadcast after the saves but
before the region is left, so the feed sees commits in commit order.
Broadcasting only enqueues frames and never blocks on a client.

A purchase saves users and then cars. Both saves happen before the
purchase is reported or broadcast; a crash between the two is not rolled
back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..auth.models import User
from ..auth.service import find_user, load_users, save_users
from ..cars.models import Car
from ..cars.service import find_car, find_raw_car, load_cars, save_cars
from ..events.feed import EventFeed
from ..events.models import FundEvent, PurchaseEvent
from ..stores.record_store import AUDIT, CARS, USERS, RecordStore
from ..utils.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..utils.logger import get_logger
from ..utils.validation import is_finite_number
from .audit import ADMIN_FUND, DEV_FAUCET, PURCHASE, AuditLog

logger = get_logger(__name__)

ADMIN_FUND_LIMIT = 1_000_000
FAUCET_LIMIT = 10_000


@dataclass(frozen=True)
class PurchaseResult:
    car: Car
    buyer: User
    seller: User


def _require_amount(amount: Any) -> float:
    if amount is None:
        raise ValidationError("Amount is required")
    if not is_finite_number(amount):
        raise ValidationError("Amount must be a finite number")
    return amount


class LedgerService:
    def __init__(self, store: RecordStore, feed: EventFeed, audit: AuditLog | None = None):
        self.store = store
        self.feed = feed
        self.audit = audit or AuditLog(store)

    def _credit(self, user_id: str, amount: float, event: FundEvent, audit_type: str, **audit_fields: Any) -> User:
        with self.store.write_region(USERS, AUDIT):
            users = load_users(self.store)
            idx, user = find_user(users, user_id)
            if user is None:
                raise NotFoundError("User not found")
            user = user.model_copy(update={"balance": user.balance + amount})
            users[idx] = user
            save_users(self.store, users)
            self.audit.append(audit_type, userId=user_id, amount=amount, **audit_fields)
            self.feed.broadcast(event)
        return user

    def admin_fund(self, actor: User, user_id: str, amount: Any) -> User:
        """
        Credit (or debit, for a negative amount) a user's balance.

        Amount must be finite, non-zero and at most 1,000,000 in magnitude.
        """
        if actor.role != "admin":
            raise ForbiddenError("Admin only")
        if not isinstance(user_id, str) or not user_id:
            raise ValidationError("userId is required")
        amount = _require_amount(amount)
        if amount == 0 or abs(amount) > ADMIN_FUND_LIMIT:
            raise ValidationError(f"Amount must be non-zero and within +/-{ADMIN_FUND_LIMIT}")

        event = FundEvent(by="admin", user_id=user_id, amount=amount, admin_id=actor.id)
        user = self._credit(user_id, amount, event, ADMIN_FUND, adminId=actor.id)
        logger.info("Admin funded account", admin_id=actor.id, user_id=user_id, amount=amount)
        return user

    def faucet(self, user_id: str, amount: Any) -> User:
        """Development top-up of the caller's own balance, 0 < amount <= 10,000."""
        amount = _require_amount(amount)
        if amount <= 0 or amount > FAUCET_LIMIT:
            raise ValidationError(f"Amount must be in (0, {FAUCET_LIMIT}]")

        event = FundEvent(by="faucet", user_id=user_id, amount=amount)
        user = self._credit(user_id, amount, event, DEV_FAUCET)
        logger.info("Faucet funded account", user_id=user_id, amount=amount)
        return user

    def purchase(self, buyer_id: str, car_id: str) -> PurchaseResult:
        """Move a car to the buyer and its price from buyer to seller."""
        if not isinstance(car_id, str) or not car_id:
            raise ValidationError("Car id is required")

        with self.store.write_region(USERS, CARS, AUDIT):
            cars = load_cars(self.store)
            car_idx, car = find_car(cars, car_id)
            if car is None:
                if find_raw_car(self.store, car_id) is not None:
                    raise ValidationError("Invalid car price")
                raise NotFoundError("Car not found")

            users = load_users(self.store)
            buyer_idx, buyer = find_user(users, buyer_id)
            if buyer is None:
                raise NotFoundError("Buyer not found")
            if car.owner_id == buyer.id:
                raise ValidationError("You already own this car")

            seller_idx, seller = find_user(users, car.owner_id)
            if seller is None:
                raise ConflictError("Seller no longer exists")

            price = car.price
            if not is_finite_number(price) or price < 0:
                raise ValidationError("Invalid car price")
            if buyer.balance < price:
                raise ValidationError("Insufficient funds")

            buyer = buyer.model_copy(update={"balance": buyer.balance - price})
            seller = seller.model_copy(update={"balance": seller.balance + price})
            car = car.model_copy(update={"owner_id": buyer.id})
            users[buyer_idx] = buyer
            users[seller_idx] = seller
            cars[car_idx] = car

            save_users(self.store, users)
            save_cars(self.store, cars)
            self.audit.append(
                PURCHASE, carId=car.id, buyerId=buyer.id, sellerId=seller.id, price=price
            )
            self.feed.broadcast(
                PurchaseEvent(
                    car_id=car.id,
                    model=car.model,
                    price=price,
                    buyer_id=buyer.id,
                    seller_id=seller.id,
                )
            )

        logger.info(
            "Car purchased",
            car_id=car.id,
            buyer_id=buyer.id,
            seller_id=seller.id,
            price=price,
        )
        return PurchaseResult(car=car, buyer=buyer, seller=seller)
