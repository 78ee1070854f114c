"""Repositories for data access."""

from rental_shop.repositories.booking_repo import BookingRepo
from rental_shop.repositories.customer_repo import CustomerRepo
from rental_shop.repositories.damage_repo import DamageRepo
from rental_shop.repositories.override_repo import AvailabilityOverrideRepo
from rental_shop.repositories.payment_repo import PaymentRepository
from rental_shop.repositories.shop_repo import ShopRepo
from rental_shop.repositories.vehicle_repo import VehicleRepo

__all__ = [
    "AvailabilityOverrideRepo",
    "BookingRepo",
    "CustomerRepo",
    "DamageRepo",
    "PaymentRepository",
    "ShopRepo",
    "VehicleRepo",
]
