"""
Basket Module - reference aggregate built on the kernel

A deliberately small domain: a basket is picked up, receives at most three
products, may lose some again, and is finally checked out.
"""

from chronicle.basket.aggregate import Basket
from chronicle.basket.events import (
    BasketWasCheckedOut,
    BasketWasPickedUp,
    ProductWasAddedToBasket,
    ProductWasRemovedFromBasket,
)
from chronicle.basket.models import (
    MAX_PRODUCTS_PER_BASKET,
    BasketAlreadyCheckedOut,
    BasketId,
    BasketLimitReached,
    EmptyBasketCheckout,
    ProductNotInBasket,
)

__all__ = [
    "Basket",
    "BasketId",
    "MAX_PRODUCTS_PER_BASKET",
    # Events
    "BasketWasPickedUp",
    "ProductWasAddedToBasket",
    "ProductWasRemovedFromBasket",
    "BasketWasCheckedOut",
    # Errors
    "BasketLimitReached",
    "ProductNotInBasket",
    "BasketAlreadyCheckedOut",
    "EmptyBasketCheckout",
]
