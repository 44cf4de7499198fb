"""
Basket Events - what can happen to a shopping basket

Events are named in the past tense because they record facts that already
happened, not requests.
"""

from chronicle.basket.models import BasketId
from chronicle.kernel.events import DomainEvent


class BasketWasPickedUp(DomainEvent):
    """A customer picked up a new, empty basket"""

    basket_id: BasketId


class ProductWasAddedToBasket(DomainEvent):
    """A product went into the basket"""

    basket_id: BasketId
    product_id: str


class ProductWasRemovedFromBasket(DomainEvent):
    """A product was taken back out of the basket"""

    basket_id: BasketId
    product_id: str


class BasketWasCheckedOut(DomainEvent):
    """The basket was paid for; it can no longer change"""

    basket_id: BasketId
