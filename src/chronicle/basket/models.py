"""
Basket Domain Models - identifiers and business-rule errors
"""

from chronicle.kernel.errors import InvariantViolation
from chronicle.kernel.ids import AggregateId

MAX_PRODUCTS_PER_BASKET = 3


class BasketId(AggregateId):
    """Identifier of a Basket aggregate"""


class BasketLimitReached(InvariantViolation):
    """Raised when adding a product would exceed the basket capacity"""

    def __init__(self, basket_id: str, limit: int = MAX_PRODUCTS_PER_BASKET) -> None:
        self.basket_id = basket_id
        self.limit = limit
        super().__init__(f"Basket {basket_id} already holds the maximum of {limit} products")


class ProductNotInBasket(InvariantViolation):
    """Raised when removing a product that isn't in the basket"""

    def __init__(self, basket_id: str, product_id: str) -> None:
        self.basket_id = basket_id
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not in basket {basket_id}")


class BasketAlreadyCheckedOut(InvariantViolation):
    """Raised when a checked-out basket would be changed"""

    def __init__(self, basket_id: str) -> None:
        self.basket_id = basket_id
        super().__init__(f"Basket {basket_id} is already checked out")


class EmptyBasketCheckout(InvariantViolation):
    """Raised when checking out a basket without products"""

    def __init__(self, basket_id: str) -> None:
        self.basket_id = basket_id
        super().__init__(f"Basket {basket_id} cannot be checked out while empty")
