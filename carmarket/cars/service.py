"""
Car listings: create, read, field updates and deletion.

Ownership changes only through a purchase (see ``carmarket.ledger``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..auth.models import User
from ..auth.service import find_user, load_users
from ..stores.record_store import CARS, RecordStore, parse_records
from ..utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from ..utils.logger import get_logger
from ..utils.validation import is_finite_number
from .models import Car

logger = get_logger(__name__)


def load_cars(store: RecordStore) -> List[Car]:
    cars, rejected = parse_records(store.load(CARS), Car)
    if rejected:
        logger.warning("Skipping invalid car records", count=len(rejected))
    return cars


def save_cars(store: RecordStore, cars: List[Car]) -> None:
    _, rejected = parse_records(store.load(CARS), Car)
    store.save(CARS, [c.to_record() for c in cars] + rejected)


def find_raw_car(store: RecordStore, car_id: str) -> Optional[Dict[str, Any]]:
    """Stored record of ``car_id`` even when it does not validate as a Car."""
    return next((item for item in store.load(CARS) if item.get("id") == car_id), None)


def find_car(cars: List[Car], car_id: str) -> Tuple[int, Optional[Car]]:
    for i, car in enumerate(cars):
        if car.id == car_id:
            return i, car
    return -1, None


def _check_model(model: Any) -> str:
    if not isinstance(model, str) or not model.strip():
        raise ValidationError("Model must be a non-empty string")
    return model.strip()


def _check_price(price: Any) -> float:
    if not is_finite_number(price) or price < 0:
        raise ValidationError("Price must be a finite number >= 0")
    return price


def _check_owner_or_admin(actor: User, car: Car) -> None:
    if actor.role != "admin" and car.owner_id != actor.id:
        raise ForbiddenError("Not the owner of this car")


class CarService:
    def __init__(self, store: RecordStore):
        self.store = store

    def list_cars(self) -> List[Car]:
        return load_cars(self.store)

    def get_car(self, car_id: str) -> Car:
        _, car = find_car(load_cars(self.store), car_id)
        if car is None:
            raise NotFoundError("Car not found")
        return car

    def create_car(self, actor: User, model: Any, price: Any, owner_id: Any = None) -> Car:
        """
        List a car. Owner defaults to the caller; only admins may list a
        car on someone else's behalf.
        """
        model = _check_model(model)
        price = _check_price(price)
        owner_id = owner_id or actor.id
        if not isinstance(owner_id, str):
            raise ValidationError("ownerId must be a string")
        if owner_id != actor.id:
            if actor.role != "admin":
                raise ForbiddenError("Cannot list a car for another user")
            _, owner = find_user(load_users(self.store), owner_id)
            if owner is None:
                raise NotFoundError("Owner not found")

        car = Car(model=model, price=price, owner_id=owner_id)
        with self.store.write_region(CARS):
            cars = load_cars(self.store)
            cars.append(car)
            save_cars(self.store, cars)
        logger.info("Car listed", car_id=car.id, model=car.model, price=car.price, owner_id=owner_id)
        return car

    def update_car(self, actor: User, car_id: str, model: Any = None, price: Any = None) -> Car:
        updates: dict = {}
        if model is not None:
            updates["model"] = _check_model(model)
        if price is not None:
            updates["price"] = _check_price(price)
        with self.store.write_region(CARS):
            cars = load_cars(self.store)
            idx, car = find_car(cars, car_id)
            if car is None:
                raise NotFoundError("Car not found")
            _check_owner_or_admin(actor, car)
            car = car.model_copy(update=updates)
            cars[idx] = car
            save_cars(self.store, cars)
        logger.info("Car updated", car_id=car_id, by=actor.id, fields=sorted(updates))
        return car

    def delete_car(self, actor: User, car_id: str) -> None:
        with self.store.write_region(CARS):
            cars = load_cars(self.store)
            _, car = find_car(cars, car_id)
            if car is None:
                raise NotFoundError("Car not found")
            _check_owner_or_admin(actor, car)
            save_cars(self.store, [c for c in cars if c.id != car_id])
        logger.info("Car deleted", car_id=car_id, by=actor.id)
