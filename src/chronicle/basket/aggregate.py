"""
Basket Aggregate - reference event-sourced aggregate

Behavior methods (pick_up, add_product, remove_product, check_out) enforce
the basket's rules and record events. The @applies handlers only mutate
state, which is why replaying a basket's history never re-checks the rules.
"""

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
from chronicle.kernel.aggregate import AggregateRoot, applies


class Basket(AggregateRoot):
    """
    A shopping basket holding at most three products

    Products may repeat; each add counts towards the limit.
    """

    id_type = BasketId
    supported_events = (
        BasketWasPickedUp,
        ProductWasAddedToBasket,
        ProductWasRemovedFromBasket,
        BasketWasCheckedOut,
    )

    def __init__(self) -> None:
        super().__init__()
        self._products: list[str] = []
        self._checked_out = False

    # Behavior

    @classmethod
    def pick_up(cls, basket_id: BasketId) -> "Basket":
        basket = cls()
        basket.record_that(BasketWasPickedUp(basket_id=basket_id))
        return basket

    def add_product(self, product_id: str) -> None:
        """
        Raises:
            BasketAlreadyCheckedOut: If the basket was checked out
            BasketLimitReached: If the basket already holds three products
        """
        self._guard_open()
        if len(self._products) >= MAX_PRODUCTS_PER_BASKET:
            raise BasketLimitReached(str(self.aggregate_id))
        self.record_that(
            ProductWasAddedToBasket(basket_id=self.aggregate_id, product_id=product_id)
        )

    def remove_product(self, product_id: str) -> None:
        self._guard_open()
        if product_id not in self._products:
            raise ProductNotInBasket(str(self.aggregate_id), product_id)
        self.record_that(
            ProductWasRemovedFromBasket(basket_id=self.aggregate_id, product_id=product_id)
        )

    def check_out(self) -> None:
        self._guard_open()
        if not self._products:
            raise EmptyBasketCheckout(str(self.aggregate_id))
        self.record_that(BasketWasCheckedOut(basket_id=self.aggregate_id))

    def _guard_open(self) -> None:
        if self._checked_out:
            raise BasketAlreadyCheckedOut(str(self.aggregate_id))

    # State

    @property
    def products(self) -> list[str]:
        return list(self._products)

    @property
    def is_checked_out(self) -> bool:
        return self._checked_out

    # Event handlers

    @applies(BasketWasPickedUp)
    def _on_picked_up(self, event: BasketWasPickedUp) -> None:
        self._assign_id(event.basket_id)

    @applies(ProductWasAddedToBasket)
    def _on_product_added(self, event: ProductWasAddedToBasket) -> None:
        self._products.append(event.product_id)

    @applies(ProductWasRemovedFromBasket)
    def _on_product_removed(self, event: ProductWasRemovedFromBasket) -> None:
        self._products.remove(event.product_id)

    @applies(BasketWasCheckedOut)
    def _on_checked_out(self, event: BasketWasCheckedOut) -> None:
        self._checked_out = True
