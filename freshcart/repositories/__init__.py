"""
Repository Layer - Data Access

This layer handles all storage access and returns domain models.
Repositories abstract away SQL and Supabase details from business logic.

Author: TM3
"""
from freshcart.repositories.product_repository import ProductRepository
from freshcart.repositories.cart_repository import CartRepository
from freshcart.repositories.order_repository import OrderRepository
from freshcart.repositories.profile_repository import ProfileRepository

__all__ = [
    'ProductRepository',
    'CartRepository',
    'OrderRepository',
    'ProfileRepository'
]
