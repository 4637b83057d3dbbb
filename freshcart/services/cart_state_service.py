"""
Cart State Service

Single source of truth for "what is in the cart right now". Every tool
that reports or mutates the cart calls fetch_latest_cart_state() right
before it computes a total or a confirmation, never reusing an earlier
read.
"""
import logging
from typing import Optional

from freshcart.domain.cart import CartState
from freshcart.repositories.cart_repository import CartRepository

logger = logging.getLogger(__name__)


class CartStateService:

    def __init__(self, cart_repo: Optional[CartRepository] = None):
        self.cart_repo = cart_repo or CartRepository()

    def fetch_latest_cart_state(self, user_id: Optional[str]) -> CartState:
        """
        Re-read the user's cart from storage.

        Returns:
            CartState with totals derived from the rows just read, or a
            failed state (success=False). Never raises.
        """
        if not user_id:
            logger.error("fetch_latest_cart_state called without a user id")
            return CartState.failed("User not authenticated")

        try:
            items = self.cart_repo.fetch_cart_items(user_id)
        except Exception:
            logger.exception(f"Failed to fetch cart for user {user_id}")
            return CartState.failed("Failed to fetch cart state")

        state = CartState.from_items(items)
        logger.debug(
            f"Fresh cart for {user_id}: {len(items)} rows, "
            f"{state.item_count} units, total {state.total_amount}"
        )
        return state
