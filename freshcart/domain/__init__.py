"""
Domain Layer - Business Entities

Pydantic models for catalog, cart and order entities, plus the matcher's
result type and the tool argument schemas.

Author: TM3
"""
from freshcart.domain.product import Product, Category
from freshcart.domain.cart import CartItem, CartState
from freshcart.domain.order import Order, OrderItem, UserProfile, PlacedOrder
from freshcart.domain.matching import MatchConfidence, MatchResult

__all__ = [
    'Product',
    'Category',
    'CartItem',
    'CartState',
    'Order',
    'OrderItem',
    'UserProfile',
    'PlacedOrder',
    'MatchConfidence',
    'MatchResult',
]
