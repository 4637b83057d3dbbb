"""
Cart Tools for the Voice / Chat Assistant

This module provides the 8 tools a conversational agent can call:
1. getCartDetails - Itemized cart with totals
2. addItemToCart - Fuzzy-matched add (increments existing rows)
3. removeItemFromCart - Fuzzy-matched removal
4. updateCartItemQuantity - Absolute quantity set (0 removes)
5. getAvailableProducts - Browse/search in-stock products
6. getPurchaseHistory - Recent orders or one order by id
7. placeOrder - Order from the fresh cart using the account profile
8. getUserStatus - Sign-in, cart and profile completeness

Every tool returns the same envelope: {"success", "message", ...}. Every
cart-reading or cart-mutating tool re-reads the cart from storage right
before it answers (fetch -> validate -> mutate -> re-fetch -> respond), and
no exception ever leaves execute_tool().

Author: TM3
"""
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from pydantic import ValidationError

from freshcart.core.auth import TokenUser
from freshcart.core.config import settings
from freshcart.core.exceptions import OrderPlacementError, OrderRollbackError
from freshcart.domain.cart import CartState
from freshcart.domain.matching import MatchResult
from freshcart.domain.tools import (
    AddItemArgs,
    AvailableProductsArgs,
    EmptyArgs,
    PurchaseHistoryArgs,
    RemoveItemArgs,
    ToolArgs,
    ToolErrorType,
    UpdateQuantityArgs,
    describe_validation_error,
    tool_failure,
    tool_success,
)
from freshcart.repositories.cart_repository import CartRepository
from freshcart.repositories.order_repository import OrderRepository
from freshcart.repositories.product_repository import ProductRepository
from freshcart.repositories.profile_repository import ProfileRepository
from freshcart.services.cart_state_service import CartStateService
from freshcart.services.catalog_snapshot import CatalogSnapshot
from freshcart.services.order_placement_service import OrderPlacementService

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


# ============================================================================
# TOOL DEFINITIONS (Anthropic format)
# ============================================================================

TOOLS = [
    {
        "name": "getCartDetails",
        "description": "Returns the items currently in the user's cart with quantities, prices and the cart total. Use it whenever the user asks what is in their cart or how much it costs.",
        "input_schema": {
            "type": "object",
            "properties": {},
            "required": []
        }
    },
    {
        "name": "addItemToCart",
        "description": "Adds a product to the cart. The product name may be misspelled or decorated (e.g. 'fresh tomatoe'); it is matched against the catalog. If the item is already in the cart, the quantity is increased.",
        "input_schema": {
            "type": "object",
            "properties": {
                "productName": {
                    "type": "string",
                    "description": "Product name as the user said it (e.g. 'apples', 'banan')"
                },
                "quantity": {
                    "type": "integer",
                    "description": "Units to add (default: 1)"
                }
            },
            "required": ["productName"]
        }
    },
    {
        "name": "removeItemFromCart",
        "description": "Removes a product from the cart completely.",
        "input_schema": {
            "type": "object",
            "properties": {
                "productName": {
                    "type": "string",
                    "description": "Product name as the user said it"
                }
            },
            "required": ["productName"]
        }
    },
    {
        "name": "updateCartItemQuantity",
        "description": "Sets the quantity of a product already in the cart to an exact number (not an increment). A quantity of 0 removes the item.",
        "input_schema": {
            "type": "object",
            "properties": {
                "productName": {
                    "type": "string",
                    "description": "Product name as the user said it"
                },
                "quantity": {
                    "type": "integer",
                    "description": "New total quantity (0 or more)"
                }
            },
            "required": ["productName", "quantity"]
        }
    },
    {
        "name": "getAvailableProducts",
        "description": "Lists in-stock products, optionally filtered by category (e.g. 'Fruits', 'Dairy') and/or a search term.",
        "input_schema": {
            "type": "object",
            "properties": {
                "category": {
                    "type": "string",
                    "description": "Optional: category name or part of it"
                },
                "searchTerm": {
                    "type": "string",
                    "description": "Optional: product search term (typos are tolerated)"
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum products to return (default: 10, max: 50)"
                }
            },
            "required": []
        }
    },
    {
        "name": "getPurchaseHistory",
        "description": "Returns the user's recent orders with their items, or one specific order by id.",
        "input_schema": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": "Number of recent orders (default: 3)"
                },
                "orderId": {
                    "type": "integer",
                    "description": "Optional: a specific order id"
                }
            },
            "required": []
        }
    },
    {
        "name": "placeOrder",
        "description": "Places an order for everything in the cart, delivered to the address saved in the user's profile. Takes no arguments; never ask the user to dictate an address or phone number.",
        "input_schema": {
            "type": "object",
            "properties": {},
            "required": []
        }
    },
    {
        "name": "getUserStatus",
        "description": "Reports whether the user is signed in, their cart size and total, and whether their delivery profile is complete.",
        "input_schema": {
            "type": "object",
            "properties": {},
            "required": []
        }
    }
]


# ============================================================================
# RESOLVER
# ============================================================================

class CartToolResolver:
    """
    Composes the matcher, the cart state service and the order workflow
    into the user-facing tools.
    """

    def __init__(
        self,
        catalog: Optional[CatalogSnapshot] = None,
        product_repo: Optional[ProductRepository] = None,
        cart_repo: Optional[CartRepository] = None,
        order_repo: Optional[OrderRepository] = None,
        profile_repo: Optional[ProfileRepository] = None,
        currency: Optional[str] = None
    ):
        self.product_repo = product_repo or ProductRepository()
        self.cart_repo = cart_repo or CartRepository()
        self.order_repo = order_repo or OrderRepository()
        self.profile_repo = profile_repo or ProfileRepository()
        self.catalog = catalog or CatalogSnapshot(self.product_repo)
        self.cart_state = CartStateService(self.cart_repo)
        self.order_service = OrderPlacementService(self.order_repo, self.cart_repo, self.cart_state)
        self.currency = currency or settings.CURRENCY

        # name -> (handler, argument model, what the tool was doing, for error messages)
        self._registry: Dict[str, tuple] = {
            "getCartDetails": (self.get_cart_details, EmptyArgs, "getting your cart details"),
            "addItemToCart": (self.add_item_to_cart, AddItemArgs, "adding the item to your cart"),
            "removeItemFromCart": (self.remove_item_from_cart, RemoveItemArgs, "removing the item from your cart"),
            "updateCartItemQuantity": (self.update_cart_item_quantity, UpdateQuantityArgs, "updating your cart"),
            "getAvailableProducts": (self.get_available_products, AvailableProductsArgs, "looking up products"),
            "getPurchaseHistory": (self.get_purchase_history, PurchaseHistoryArgs, "loading your orders"),
            "placeOrder": (self.place_order, EmptyArgs, "placing your order"),
            "getUserStatus": (self.get_user_status, EmptyArgs, "checking your account"),
        }

    @property
    def tool_names(self) -> List[str]:
        return list(self._registry)

    # ------------------------------------------------------------------
    # Boundary
    # ------------------------------------------------------------------

    def execute(self, tool_name: str, tool_input: Optional[Dict[str, Any]], user: Optional[TokenUser]) -> dict:
        """
        Run a tool by name. Always returns an envelope; never raises.

        Args:
            tool_name: One of the names in TOOLS
            tool_input: Raw arguments from the agent (camelCase keys)
            user: Authenticated user, or None for anonymous callers
        """
        if tool_name not in self._registry:
            return tool_failure(
                f"Unknown tool '{tool_name}'. Available tools: {', '.join(self._registry)}.",
                ToolErrorType.VALIDATION
            )

        handler, args_model, action = self._registry[tool_name]
        logger.info(f"Tool call: {tool_name} input={tool_input} user={user.id if user else None}")

        try:
            args = self._parse_args(args_model, tool_input)
        except ValidationError as e:
            response = tool_failure(describe_validation_error(e), ToolErrorType.VALIDATION)
            logger.info(f"Tool {tool_name} rejected input: {response['message']}")
            return response

        try:
            response = handler(user, args)
        except Exception:
            logger.exception(f"Tool {tool_name} failed")
            return tool_failure(
                f"Something went wrong while {action}. Please try again.",
                ToolErrorType.DEPENDENCY
            )

        logger.info(f"Tool {tool_name} -> success={response['success']}: {response['message']}")
        return response

    @staticmethod
    def _parse_args(args_model: Type[ToolArgs], tool_input: Optional[Dict[str, Any]]) -> ToolArgs:
        # Non-object payloads are left for pydantic to reject
        return args_model.model_validate({} if tool_input is None else tool_input)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def format_amount(self, amount) -> str:
        symbol = CURRENCY_SYMBOLS.get(self.currency, f"{self.currency} ")
        return f"{symbol}{Decimal(amount):.2f}"

    def _cart_summary(self, state: CartState) -> dict:
        summary = state.summary()
        summary["currency"] = self.currency
        return summary

    def _totals_sentence(self, state: CartState) -> str:
        return (
            f"Your cart now has {state.item_count} items totaling "
            f"{self.format_amount(state.total_amount)}."
        )

    @staticmethod
    def _sign_in_required(action: str) -> dict:
        return tool_failure(
            f"Please sign in to {action}. You can sign in from the user icon at the top right of the site.",
            ToolErrorType.AUTHENTICATION
        )

    def _cart_unavailable(self, action: str, **fields) -> dict:
        return tool_failure(
            f"I couldn't check your cart to {action}. Please try again in a moment.",
            ToolErrorType.DEPENDENCY,
            **fields
        )

    @staticmethod
    def _not_found(product_name: str, match: MatchResult) -> dict:
        suggestions = [p.name for p in match.alternatives[:3]]
        message = f"I couldn't find \"{product_name}\" in our store."
        if suggestions:
            message += f" Did you mean {_join_names(suggestions)}?"
        else:
            message += " Try another name, or ask me what products are available."
        return tool_failure(message, ToolErrorType.RESOLUTION, suggestions=suggestions)

    @staticmethod
    def _match_note(product_name: str, match: MatchResult) -> str:
        note = ""
        if not match.is_confident:
            note = f" (I matched \"{product_name}\" to \"{match.product.name}\")"
        if match.ambiguous and match.alternatives:
            note += f" (other matches: {_join_names([p.name for p in match.alternatives])})"
        return note

    def _not_in_cart(self, product_name: str, state: CartState) -> dict:
        contents = [f"{item.quantity} {item.product.name}" for item in state.items]
        if contents:
            message = f"\"{product_name}\" is not in your cart. Your cart has: {', '.join(contents)}."
        else:
            message = f"\"{product_name}\" is not in your cart. Your cart is empty."
        return tool_failure(
            message,
            ToolErrorType.BUSINESS_RULE,
            cartItems=[item.product.name for item in state.items]
        )

    # ------------------------------------------------------------------
    # TOOL 1: getCartDetails
    # ------------------------------------------------------------------

    def get_cart_details(self, user: Optional[TokenUser], args: EmptyArgs) -> dict:
        if not user:
            return self._sign_in_required("view your cart")

        state = self.cart_state.fetch_latest_cart_state(user.id)
        if not state.success:
            return self._cart_unavailable("read your items")

        items = [item.to_dict() for item in state.items]
        if state.is_empty:
            message = 'Your cart is empty. You can add items by saying "Add [product name] to cart".'
        else:
            message = (
                f"You have {state.item_count} items in your cart totaling "
                f"{self.format_amount(state.total_amount)}."
            )

        return tool_success(
            message,
            items=items,
            itemCount=state.item_count,
            totalAmount=float(state.total_amount),
            isEmpty=state.is_empty,
            currency=self.currency,
            cartSummary=", ".join(
                f"{item['quantity']} {item['name']} ({self.format_amount(item['total'])})"
                for item in items
            )
        )

    # ------------------------------------------------------------------
    # TOOL 2: addItemToCart
    # ------------------------------------------------------------------

    def add_item_to_cart(self, user: Optional[TokenUser], args: AddItemArgs) -> dict:
        if not user:
            return self._sign_in_required("add items to your cart")

        match = self.catalog.matcher().find_product(args.product_name)
        if not match.found:
            return self._not_found(args.product_name, match)

        # Stock is checked against a fresh read, not the snapshot
        product = self.product_repo.find_by_id(match.product.id)
        if product is None:
            self.catalog.invalidate()
            return tool_failure(
                f"Sorry, {match.product.name} is no longer available. Ask me what else is in stock.",
                ToolErrorType.RESOLUTION,
                suggestions=[p.name for p in match.alternatives[:3]]
            )

        state = self.cart_state.fetch_latest_cart_state(user.id)
        if not state.success:
            return self._cart_unavailable("add the item")

        # Only the quantity being added is checked against stock
        if args.quantity > product.stock_quantity:
            return self._insufficient_stock(product.name, product.stock_quantity)

        existing = state.find_product(product.id)
        if existing:
            self.cart_repo.update_cart_item_quantity(user.id, product.id, existing.quantity + args.quantity)
        else:
            self.cart_repo.insert_cart_item(user.id, product.id, args.quantity)

        latest = self.cart_state.fetch_latest_cart_state(user.id)
        if not latest.success:
            return self._cart_unavailable(
                "confirm your new total, but the item was added",
                itemAdded=True,
                product=product.name
            )

        return tool_success(
            f"Added {args.quantity} {product.name} to your cart"
            f"{self._match_note(args.product_name, match)}. {self._totals_sentence(latest)}",
            product=product.name,
            quantity=args.quantity,
            matchConfidence=match.confidence.value,
            matchType=match.match_type,
            alternatives=[p.name for p in match.alternatives],
            cartSummary=self._cart_summary(latest)
        )

    @staticmethod
    def _insufficient_stock(product_name: str, available: int) -> dict:
        if available <= 0:
            message = f"Sorry, {product_name} is out of stock right now."
        else:
            message = f"Sorry, only {available} {product_name} available. Please choose a smaller quantity."
        return tool_failure(message, ToolErrorType.BUSINESS_RULE, availableStock=available)

    # ------------------------------------------------------------------
    # TOOL 3: removeItemFromCart
    # ------------------------------------------------------------------

    def remove_item_from_cart(self, user: Optional[TokenUser], args: RemoveItemArgs) -> dict:
        if not user:
            return self._sign_in_required("manage your cart")

        match = self.catalog.matcher().find_product(args.product_name)
        if not match.found:
            return self._not_found(args.product_name, match)

        state = self.cart_state.fetch_latest_cart_state(user.id)
        if not state.success:
            return self._cart_unavailable("remove the item")

        cart_item = state.find_product(match.product.id)
        if cart_item is None:
            return self._not_in_cart(match.product.name, state)

        self.cart_repo.delete_cart_item(user.id, cart_item.product_id)

        latest = self.cart_state.fetch_latest_cart_state(user.id)
        if not latest.success:
            return self._cart_unavailable("confirm your new total, but the item was removed", itemRemoved=True)

        return tool_success(
            f"Removed {cart_item.product.name} from your cart"
            f"{self._match_note(args.product_name, match)}. {self._totals_sentence(latest)}",
            product=cart_item.product.name,
            matchConfidence=match.confidence.value,
            cartSummary=self._cart_summary(latest)
        )

    # ------------------------------------------------------------------
    # TOOL 4: updateCartItemQuantity
    # ------------------------------------------------------------------

    def update_cart_item_quantity(self, user: Optional[TokenUser], args: UpdateQuantityArgs) -> dict:
        if not user:
            return self._sign_in_required("manage your cart")

        if args.quantity < 0:
            return tool_failure(
                "Quantity cannot be negative. To take an item out of your cart, ask me to remove it.",
                ToolErrorType.BUSINESS_RULE
            )

        match = self.catalog.matcher().find_product(args.product_name)
        if not match.found:
            return self._not_found(args.product_name, match)

        state = self.cart_state.fetch_latest_cart_state(user.id)
        if not state.success:
            return self._cart_unavailable("update the item")

        cart_item = state.find_product(match.product.id)
        if cart_item is None:
            return self._not_in_cart(match.product.name, state)

        # The joined product came with the fresh cart read
        if args.quantity > cart_item.product.stock_quantity:
            return self._insufficient_stock(cart_item.product.name, cart_item.product.stock_quantity)

        if args.quantity == 0:
            self.cart_repo.delete_cart_item(user.id, cart_item.product_id)
            action = f"Removed {cart_item.product.name} from the cart."
        else:
            self.cart_repo.update_cart_item_quantity(user.id, cart_item.product_id, args.quantity)
            action = f"Updated {cart_item.product.name} quantity to {args.quantity}."

        latest = self.cart_state.fetch_latest_cart_state(user.id)
        if not latest.success:
            return self._cart_unavailable("confirm your new total, but the quantity was updated", itemUpdated=True)

        return tool_success(
            f"{action} {self._totals_sentence(latest)}",
            product=cart_item.product.name,
            quantity=args.quantity,
            matchConfidence=match.confidence.value,
            cartSummary=self._cart_summary(latest)
        )

    # ------------------------------------------------------------------
    # TOOL 5: getAvailableProducts
    # ------------------------------------------------------------------

    def get_available_products(self, user: Optional[TokenUser], args: AvailableProductsArgs) -> dict:
        matcher = self.catalog.matcher()

        if args.search_term:
            candidates = matcher.search(args.search_term)
        else:
            candidates = list(matcher.products)

        if args.category:
            wanted = args.category.lower()
            candidates = [
                p for p in candidates
                if p.category_name and wanted in p.category_name.lower()
            ]

        in_stock = [p for p in candidates if p.stock_quantity > 0]
        selected = in_stock[:args.limit]

        products = [
            {
                "name": p.name,
                "price": float(p.price),
                "unit": p.unit,
                "category": p.category_name,
                "description": p.description,
                "stock": p.stock_quantity
            }
            for p in selected
        ]

        filters = []
        if args.category:
            filters.append(f"in \"{args.category}\"")
        if args.search_term:
            filters.append(f"matching \"{args.search_term}\"")
        scope = f" {' '.join(filters)}" if filters else ""

        if not products:
            categories = sorted({p.category_name for p in matcher.products if p.category_name})
            message = f"No products{scope} are in stock right now."
            if categories:
                message += f" Available categories: {', '.join(categories)}."
            return tool_success(message, products=[], count=0, availableCategories=categories, currency=self.currency)

        message = f"Found {len(in_stock)} products{scope}."
        if len(in_stock) > len(products):
            message += f" Showing the first {len(products)}."
        return tool_success(message, products=products, count=len(products), currency=self.currency)

    # ------------------------------------------------------------------
    # TOOL 6: getPurchaseHistory
    # ------------------------------------------------------------------

    def get_purchase_history(self, user: Optional[TokenUser], args: PurchaseHistoryArgs) -> dict:
        if not user:
            return self._sign_in_required("see your orders")

        orders = self.order_repo.fetch_orders(user.id, limit=args.limit, order_id=args.order_id)

        if not orders:
            if args.order_id is not None:
                message = f"I couldn't find order #{args.order_id} in your order history. Please check the order number."
            else:
                message = "You haven't placed any orders yet. Add some items to your cart and I can place one for you."
            return tool_failure(message, ToolErrorType.BUSINESS_RULE, orders=[])

        latest = orders[0]
        if args.order_id is not None:
            message = (
                f"Order #{latest.id} has {latest.item_count} items totaling "
                f"{self.format_amount(latest.total_amount)} and is {latest.status}."
            )
        else:
            message = (
                f"Found {len(orders)} recent orders. Your latest, order #{latest.id}, has "
                f"{latest.item_count} items totaling {self.format_amount(latest.total_amount)} "
                f"and is {latest.status}."
            )

        return tool_success(
            message,
            orders=[order.to_dict() for order in orders],
            count=len(orders),
            currency=self.currency
        )

    # ------------------------------------------------------------------
    # TOOL 7: placeOrder
    # ------------------------------------------------------------------

    def place_order(self, user: Optional[TokenUser], args: EmptyArgs) -> dict:
        if not user:
            return self._sign_in_required("place an order")

        # The definitive cart, read right before ordering
        cart_before_order = self.cart_state.fetch_latest_cart_state(user.id)
        if not cart_before_order.success:
            return self._cart_unavailable("place your order")
        if cart_before_order.is_empty:
            return tool_failure(
                "Your cart is empty. Please add some items before placing an order.",
                ToolErrorType.BUSINESS_RULE
            )

        profile = self.profile_repo.get_user_profile(user.id)
        if not profile.is_complete:
            return tool_failure(
                "Please complete your profile with a valid phone number (at least 10 digits) "
                "and a delivery address (at least 10 characters) to place an order.",
                ToolErrorType.BUSINESS_RULE,
                profileComplete=False
            )

        customer_name = profile.full_name or user.display_name

        try:
            placed = self.order_service.place_order(
                user_id=user.id,
                delivery_address=profile.address,
                customer_name=customer_name,
                customer_phone=profile.phone,
                items=cart_before_order.items
            )
        except OrderRollbackError:
            return tool_failure(
                "Something went wrong while placing your order and it may be incomplete. "
                "Please contact support before ordering again.",
                ToolErrorType.DEPENDENCY
            )
        except OrderPlacementError:
            logger.exception(f"Order placement failed for user {user.id}")
            return tool_failure(
                "An error occurred while placing your order. Your cart is unchanged; please try again.",
                ToolErrorType.DEPENDENCY
            )

        message = (
            f"Order placed successfully! Your order #{placed.order_id} of {placed.item_count} items "
            f"totaling {self.format_amount(placed.total_amount)} will be delivered to your saved address. "
        )
        if not placed.cart_cleared:
            message += placed.warning
        elif placed.cart_after is None or placed.cart_after.is_empty:
            message += "Your cart is now empty."
        else:
            message += f"Your cart has {placed.cart_after.item_count} items added since the order."

        if placed.cart_after is not None:
            cart_summary = self._cart_summary(placed.cart_after)
        elif placed.cart_cleared:
            cart_summary = {"itemCount": 0, "totalAmount": 0.0, "currency": self.currency}
        else:
            cart_summary = self._cart_summary(cart_before_order)

        return tool_success(
            message,
            orderId=placed.order_id,
            orderTotal=float(placed.total_amount),
            itemCount=placed.item_count,
            customerName=customer_name,
            usedProfileInfo=True,
            cartCleared=placed.cart_cleared,
            warning=placed.warning,
            currency=self.currency,
            cartSummary=cart_summary
        )

    # ------------------------------------------------------------------
    # TOOL 8: getUserStatus
    # ------------------------------------------------------------------

    def get_user_status(self, user: Optional[TokenUser], args: EmptyArgs) -> dict:
        if not user:
            return tool_success(
                "You are not signed in. Please sign in to add items to your cart and place orders.",
                isSignedIn=False
            )

        state = self.cart_state.fetch_latest_cart_state(user.id)
        if not state.success:
            return self._cart_unavailable("report your status")

        profile = self.profile_repo.get_user_profile(user.id)
        profile_note = (
            "Your profile is complete." if profile.is_complete
            else "Please complete your profile with a phone number and delivery address to place orders."
        )

        return tool_success(
            f"You are signed in as {user.email or user.display_name}. Your cart has {state.item_count} items "
            f"totaling {self.format_amount(state.total_amount)}. {profile_note}",
            isSignedIn=True,
            email=user.email,
            cartItemCount=state.item_count,
            cartTotal=float(state.total_amount),
            currency=self.currency,
            profileComplete=profile.is_complete
        )


def _join_names(names: List[str]) -> str:
    if len(names) <= 1:
        return "".join(names)
    return f"{', '.join(names[:-1])} or {names[-1]}"


# ============================================================================
# SINGLETON INSTANCE / REGISTRY
# ============================================================================

_resolver_instance: Optional[CartToolResolver] = None


def get_tool_resolver() -> CartToolResolver:
    """
    Get the singleton resolver (one shared catalog snapshot per process).
    """
    global _resolver_instance
    if _resolver_instance is None:
        _resolver_instance = CartToolResolver()
    return _resolver_instance


def execute_tool(
    tool_name: str,
    tool_input: Dict[str, Any],
    user: Optional[TokenUser],
    resolver: Optional[CartToolResolver] = None
) -> str:
    """
    Execute a tool and return its envelope as a JSON string (LLM tool_result).
    """
    resolver = resolver or get_tool_resolver()
    return json.dumps(resolver.execute(tool_name, tool_input, user), ensure_ascii=False, default=str)
