"""
Pytest fixtures and configuration for FreshCart Backend tests

This file provides shared fixtures that can be used across all test modules:
a small grocery catalog, an in-memory store standing in for the four
repositories (with failure injection), and a resolver wired to it.

Author: TM3
"""
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pytest

from freshcart.core.auth import TokenUser
from freshcart.core.exceptions import StorageError
from freshcart.domain.cart import CartItem
from freshcart.domain.order import Order, OrderItem, UserProfile
from freshcart.domain.product import Category, Product
from freshcart.services.cart_tools import CartToolResolver
from freshcart.services.catalog_snapshot import CatalogSnapshot

FRUITS = Category(id="cat-fruits", name="Fruits")
VEGETABLES = Category(id="cat-vegetables", name="Vegetables")
DAIRY = Category(id="cat-dairy", name="Dairy")
BAKERY = Category(id="cat-bakery", name="Bakery")


def make_product(product_id, name, price, stock, unit="piece", category=None, description=None) -> Product:
    return Product(
        id=product_id,
        name=name,
        description=description,
        price=Decimal(str(price)),
        stock_quantity=stock,
        unit=unit,
        category_id=category.id if category else None,
        category=category
    )


def sample_products() -> List[Product]:
    return [
        make_product("p-apples", "Apples", "120.00", 30, "kg", FRUITS, "Fresh red apples"),
        make_product("p-bananas", "Bananas", "40.00", 50, "dozen", FRUITS),
        make_product("p-tomatoes", "Tomatoes", "30.00", 5, "kg", VEGETABLES),
        make_product("p-carrots", "Carrots", "35.00", 25, "kg", VEGETABLES),
        make_product("p-milk", "Milk", "60.00", 20, "liter", DAIRY, "Full cream milk"),
        make_product("p-yogurt", "Greek Yogurt", "80.00", 10, "cup", DAIRY),
        make_product("p-bread", "Brown Bread", "45.00", 0, "loaf", BAKERY),
    ]


class InMemoryStore:
    """
    Stand-in for ProductRepository, CartRepository, OrderRepository and
    ProfileRepository backed by plain dicts.

    fail(operation, times, skip) makes the named method raise StorageError
    ``times`` times (-1 = always) after ``skip`` successful calls.
    """

    def __init__(self, products: Optional[List[Product]] = None):
        self.products: Dict[str, Product] = {p.id: p for p in (products or sample_products())}
        self.cart: Dict[Tuple[str, str], int] = {}
        self.orders: List[dict] = []
        self.order_items: List[dict] = []
        self.profiles: Dict[str, UserProfile] = {}
        self.calls: Dict[str, int] = {}
        self._failures: Dict[str, List[int]] = {}
        self._next_order_id = 1

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def fail(self, operation: str, times: int = -1, skip: int = 0) -> None:
        self._failures[operation] = [times, skip]

    def _enter(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        failure = self._failures.get(operation)
        if not failure:
            return
        times, skip = failure
        if skip > 0:
            failure[1] -= 1
            return
        if times == 0:
            return
        if times > 0:
            failure[0] -= 1
        raise StorageError(operation, RuntimeError("injected failure"))

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def fetch_catalog(self) -> List[Product]:
        self._enter("fetch_catalog")
        return sorted(self.products.values(), key=lambda p: p.name)

    def find_by_id(self, product_id: str) -> Optional[Product]:
        self._enter("find_by_id")
        return self.products.get(product_id)

    def fetch_categories(self) -> List[Category]:
        self._enter("fetch_categories")
        categories = {p.category.id: p.category for p in self.products.values() if p.category}
        return sorted(categories.values(), key=lambda c: c.name)

    def set_stock(self, product_id: str, stock: int) -> None:
        self.products[product_id] = self.products[product_id].model_copy(update={"stock_quantity": stock})

    def set_price(self, product_id: str, price: str) -> None:
        self.products[product_id] = self.products[product_id].model_copy(update={"price": Decimal(price)})

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def fetch_cart_items(self, user_id: str) -> List[CartItem]:
        self._enter("fetch_cart_items")
        return [
            CartItem(
                id=f"{owner}:{product_id}",
                user_id=owner,
                product_id=product_id,
                quantity=quantity,
                product=self.products[product_id]
            )
            for (owner, product_id), quantity in self.cart.items()
            if owner == user_id and product_id in self.products and quantity > 0
        ]

    def insert_cart_item(self, user_id: str, product_id: str, quantity: int) -> None:
        self._enter("insert_cart_item")
        if (user_id, product_id) in self.cart:
            raise StorageError("insert_cart_item", RuntimeError("duplicate key"))
        self.cart[(user_id, product_id)] = quantity

    def update_cart_item_quantity(self, user_id: str, product_id: str, quantity: int) -> None:
        self._enter("update_cart_item_quantity")
        self.cart[(user_id, product_id)] = quantity

    def delete_cart_item(self, user_id: str, product_id: str) -> None:
        self._enter("delete_cart_item")
        self.cart.pop((user_id, product_id), None)

    def delete_all_cart_items(self, user_id: str) -> int:
        self._enter("delete_all_cart_items")
        keys = [key for key in self.cart if key[0] == user_id]
        for key in keys:
            del self.cart[key]
        return len(keys)

    def cart_of(self, user_id: str) -> Dict[str, int]:
        return {product_id: qty for (owner, product_id), qty in self.cart.items() if owner == user_id}

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def insert_order(self, user_id, total_amount, delivery_address, customer_name, customer_phone) -> int:
        self._enter("insert_order")
        order_id = self._next_order_id
        self._next_order_id += 1
        self.orders.append({
            "id": order_id,
            "user_id": user_id,
            "total_amount": total_amount,
            "status": "Pending",
            "delivery_address": delivery_address,
            "customer_name": customer_name,
            "customer_phone": customer_phone,
        })
        return order_id

    def insert_order_items(self, order_id: int, items: List[OrderItem]) -> None:
        self._enter("insert_order_items")
        for item in items:
            self.order_items.append({
                "order_id": order_id,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "price": item.price,
            })

    def delete_order(self, order_id: int) -> None:
        self._enter("delete_order")
        self.orders = [o for o in self.orders if o["id"] != order_id]
        self.order_items = [i for i in self.order_items if i["order_id"] != order_id]

    def fetch_orders(self, user_id: str, limit: int = 3, order_id: Optional[int] = None) -> List[Order]:
        self._enter("fetch_orders")
        rows = [
            o for o in reversed(self.orders)
            if o["user_id"] == user_id and (order_id is None or o["id"] == order_id)
        ][:limit]

        orders = []
        for row in rows:
            items = [
                OrderItem(
                    order_id=i["order_id"],
                    product_id=i["product_id"],
                    quantity=i["quantity"],
                    price=i["price"],
                    product_name=self.products[i["product_id"]].name if i["product_id"] in self.products else None,
                    unit=self.products[i["product_id"]].unit if i["product_id"] in self.products else None
                )
                for i in self.order_items if i["order_id"] == row["id"]
            ]
            orders.append(Order(**row, items=items))
        return orders

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_user_profile(self, user_id: str) -> UserProfile:
        self._enter("get_user_profile")
        return self.profiles.get(user_id, UserProfile())


@pytest.fixture
def products():
    """Sample grocery catalog (Brown Bread is out of stock)"""
    return sample_products()


@pytest.fixture
def store():
    """
    In-memory repositories with a complete profile for user-1

    Scope: function (fresh store per test)
    """
    store = InMemoryStore()
    store.profiles["user-1"] = UserProfile(
        full_name="Asha Rao",
        phone="9876543210",
        address="12 MG Road, Bengaluru 560001"
    )
    return store


@pytest.fixture
def resolver(store):
    """CartToolResolver wired to the in-memory store, currency INR"""
    return CartToolResolver(
        catalog=CatalogSnapshot(store, max_age_seconds=300),
        product_repo=store,
        cart_repo=store,
        order_repo=store,
        profile_repo=store,
        currency="INR"
    )


@pytest.fixture
def user():
    """Signed-in user with a complete delivery profile"""
    return TokenUser(id="user-1", email="asha@example.com")


@pytest.fixture
def new_user():
    """Signed-in user with no delivery profile"""
    return TokenUser(id="user-2", email="ravi@example.com")


@pytest.fixture
def product_factory():
    """make_product(id, name, price, stock, unit, category, description)"""
    return make_product
