"""
Catalog API Endpoints
Read access to categories and products, served from the shared catalog
snapshot the assistant tools match against.

Author: TM3
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from freshcart.core.auth import TokenUser, get_current_user
from freshcart.repositories.product_repository import ProductRepository
from freshcart.services.cart_tools import CartToolResolver
from freshcart.api.tools import get_resolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/catalog", tags=["catalog"])


def get_product_repository() -> ProductRepository:
    return ProductRepository()


@router.get("/categories")
def get_categories(repo: ProductRepository = Depends(get_product_repository)):
    """All product categories, alphabetically"""
    try:
        categories = repo.fetch_categories()
    except Exception as e:
        logger.error(f"Error fetching categories: {e}")
        raise HTTPException(status_code=500, detail="Error fetching categories")

    return {
        "status": "success",
        "count": len(categories),
        "data": [category.model_dump(mode="json") for category in categories]
    }


@router.get("/products")
def get_products(
    category: Optional[str] = Query(None, description="Filter by category name (partial, case-insensitive)"),
    search: Optional[str] = Query(None, description="Search by name or description (typos tolerated)"),
    in_stock: bool = Query(False, description="Only products with stock > 0"),
    limit: int = Query(100, ge=1, le=500),
    resolver: CartToolResolver = Depends(get_resolver)
):
    """
    Products from the catalog snapshot

    Search results are ordered by relevance; otherwise by name.
    """
    try:
        matcher = resolver.catalog.matcher()
    except Exception as e:
        logger.error(f"Error loading catalog: {e}")
        raise HTTPException(status_code=500, detail="Error fetching products")

    products = matcher.search(search) if search else list(matcher.products)

    if category:
        wanted = category.lower()
        products = [p for p in products if p.category_name and wanted in p.category_name.lower()]
    if in_stock:
        products = [p for p in products if p.stock_quantity > 0]

    total = len(products)
    products = products[:limit]

    return {
        "status": "success",
        "total": total,
        "count": len(products),
        "data": [product.to_dict() for product in products]
    }


@router.post("/refresh")
def refresh_catalog(
    user: TokenUser = Depends(get_current_user),
    resolver: CartToolResolver = Depends(get_resolver)
):
    """Reload the catalog snapshot from the database"""
    try:
        matcher = resolver.catalog.refresh()
    except Exception as e:
        logger.error(f"Catalog refresh requested by {user.id} failed: {e}")
        raise HTTPException(status_code=500, detail="Error refreshing catalog")

    logger.info(f"Catalog refreshed by {user.id}: {len(matcher.products)} products")
    return {
        "status": "success",
        "count": len(matcher.products)
    }
