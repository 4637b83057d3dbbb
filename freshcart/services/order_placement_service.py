"""
Order Placement Service

Turns a freshly fetched cart snapshot into an order:

1. Recompute the total from the snapshot (never from a displayed total)
2. Insert the order (status Pending)
3. Insert one order item per cart row, freezing the current unit price
4. If 3 fails, delete the order; an order must never exist without items
5. Empty the cart (retried; a failure here does not undo the order)
6. Re-read the cart for the response

Author: TM3
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from freshcart.core.config import settings
from freshcart.core.exceptions import OrderPlacementError, OrderRollbackError
from freshcart.domain.cart import CartItem
from freshcart.domain.order import OrderItem, PlacedOrder
from freshcart.repositories.cart_repository import CartRepository
from freshcart.repositories.order_repository import OrderRepository
from freshcart.services.cart_state_service import CartStateService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def compute_order_total(items: List[CartItem]) -> Decimal:
    """Sum of price x quantity, rounded to cents"""
    total = sum((item.product.price * item.quantity for item in items), Decimal("0"))
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


class OrderPlacementService:

    def __init__(
        self,
        order_repo: Optional[OrderRepository] = None,
        cart_repo: Optional[CartRepository] = None,
        cart_state: Optional[CartStateService] = None,
        cart_clear_retries: Optional[int] = None
    ):
        self.order_repo = order_repo or OrderRepository()
        self.cart_repo = cart_repo or CartRepository()
        self.cart_state = cart_state or CartStateService(self.cart_repo)
        self.cart_clear_retries = (
            settings.CART_CLEAR_RETRIES if cart_clear_retries is None else cart_clear_retries
        )

    def place_order(
        self,
        user_id: str,
        delivery_address: str,
        customer_name: str,
        customer_phone: str,
        items: List[CartItem]
    ) -> PlacedOrder:
        """
        Create an order from the given cart snapshot.

        Args:
            user_id: Customer placing the order
            delivery_address: Address from the user's profile
            customer_name: Name from the user's profile
            customer_phone: Phone from the user's profile
            items: Cart rows fetched immediately before this call

        Returns:
            PlacedOrder with the order id, total and cart-clear outcome

        Raises:
            OrderPlacementError: the order could not be created (nothing left behind)
            OrderRollbackError: items failed and the orphan order could not be deleted
        """
        if not items:
            raise OrderPlacementError("Cannot place an order from an empty cart")

        # Step 1
        total_amount = compute_order_total(items)
        item_count = sum(item.quantity for item in items)

        # Step 2
        try:
            order_id = self.order_repo.insert_order(
                user_id=user_id,
                total_amount=total_amount,
                delivery_address=delivery_address,
                customer_name=customer_name,
                customer_phone=customer_phone
            )
        except Exception as e:
            logger.error(f"Order creation failed for user {user_id}: {e}")
            raise OrderPlacementError("Failed to create order") from e

        logger.info(f"Order {order_id} created for user {user_id}: {item_count} units, total {total_amount}")

        # Step 3
        order_items = [
            OrderItem(
                order_id=order_id,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.product.price
            )
            for item in items
        ]
        try:
            self.order_repo.insert_order_items(order_id, order_items)
        except Exception as e:
            logger.error(f"Order items failed for order {order_id}, rolling back: {e}")
            self._rollback_order(order_id)
            raise OrderPlacementError("Failed to create order items") from e

        # Step 5
        cart_cleared = self._clear_cart(user_id)
        warning = None
        if not cart_cleared:
            warning = (
                "Your order was placed, but we could not empty your cart. "
                "Please remove the ordered items before ordering again."
            )

        # Step 6
        latest = self.cart_state.fetch_latest_cart_state(user_id)
        if latest.success and not latest.is_empty and cart_cleared:
            logger.warning(f"Cart for user {user_id} not empty after order {order_id}")

        return PlacedOrder(
            order_id=order_id,
            total_amount=total_amount,
            item_count=item_count,
            cart_cleared=cart_cleared,
            warning=warning,
            cart_after=latest if latest.success else None
        )

    def _rollback_order(self, order_id: int) -> None:
        try:
            self.order_repo.delete_order(order_id)
        except Exception as e:
            logger.critical(
                f"ROLLBACK FAILED: order {order_id} exists without items and needs manual cleanup: {e}"
            )
            raise OrderRollbackError(order_id, e) from e
        logger.info(f"Order {order_id} rolled back")

    def _clear_cart(self, user_id: str) -> bool:
        attempts = 1 + max(0, self.cart_clear_retries)
        for attempt in range(1, attempts + 1):
            try:
                self.cart_repo.delete_all_cart_items(user_id)
                return True
            except Exception as e:
                logger.warning(f"Cart clear attempt {attempt}/{attempts} failed for user {user_id}: {e}")

        logger.error(f"Cart for user {user_id} could not be cleared after order placement")
        return False
