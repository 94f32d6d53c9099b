"""
Car routes: listing CRUD and purchase.
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, Response, status

from carmarket.auth.models import User

from .auth_middleware import get_services, require_login
from .schemas import CarCreate, CarUpdate

router = APIRouter(prefix="/cars", tags=["cars"])


@router.get("")
def list_cars(request: Request, current_user: User = Depends(require_login)) -> List[Dict[str, Any]]:
    return [car.to_record() for car in get_services(request).cars.list_cars()]


@router.get("/{car_id}")
def get_car(car_id: str, request: Request, current_user: User = Depends(require_login)) -> Dict[str, Any]:
    return get_services(request).cars.get_car(car_id).to_record()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_car(
    body: CarCreate,
    request: Request,
    current_user: User = Depends(require_login),
) -> Dict[str, Any]:
    car = get_services(request).cars.create_car(current_user, body.model, body.price, body.owner_id)
    return car.to_record()


@router.put("/{car_id}")
def update_car(
    car_id: str,
    body: CarUpdate,
    request: Request,
    current_user: User = Depends(require_login),
) -> Dict[str, Any]:
    car = get_services(request).cars.update_car(current_user, car_id, body.model, body.price)
    return car.to_record()


@router.delete("/{car_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_car(car_id: str, request: Request, current_user: User = Depends(require_login)) -> Response:
    get_services(request).cars.delete_car(current_user, car_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{car_id}/buy")
def buy_car(car_id: str, request: Request, current_user: User = Depends(require_login)) -> Dict[str, Any]:
    """Buy a car: price moves from buyer to seller, ownership to buyer."""
    result = get_services(request).ledger.purchase(current_user.id, car_id)
    return {
        "success": True,
        "car": result.car.to_record(),
        "buyer": result.buyer.to_public(),
        "seller": result.seller.to_public(),
    }
