"""
Product Repository - Data Access Layer for the catalog

Handles catalog queries and returns Product / Category domain models.

Author: TM3
"""
import logging
from typing import List, Optional

import psycopg2

from freshcart.core.database import get_db_connection_dict_with_retry
from freshcart.core.exceptions import StorageError
from freshcart.domain.product import Category, Product

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = """
    p.id, p.name, p.description, p.price, p.image_url, p.category_id,
    p.stock_quantity, p.unit, p.created_at,
    c.name AS category_name,
    c.description AS category_description,
    c.image_url AS category_image_url,
    c.created_at AS category_created_at
"""


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products and categories are centralized here.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        """Map a products row (LEFT JOINed with categories) to Product"""
        category = None
        if row.get('category_id') and row.get('category_name'):
            category = Category(
                id=str(row['category_id']),
                name=row['category_name'],
                description=row.get('category_description'),
                image_url=row.get('category_image_url'),
                created_at=row.get('category_created_at')
            )

        return Product(
            id=str(row['id']),
            name=row['name'],
            description=row.get('description'),
            price=row['price'],
            image_url=row.get('image_url'),
            category_id=str(row['category_id']) if row.get('category_id') else None,
            # Storage may briefly report negative stock after manual corrections
            stock_quantity=max(0, row.get('stock_quantity') or 0),
            unit=row.get('unit') or 'piece',
            created_at=row.get('created_at'),
            category=category
        )

    def fetch_catalog(self) -> List[Product]:
        """
        Load every product with its category, ordered by name.

        Returns:
            List of products (including out-of-stock ones)
        """
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                LEFT JOIN categories c ON c.id = p.category_id
                ORDER BY p.name
            """)
            rows = cursor.fetchall()
            return [self._map_row_to_product(row) for row in rows]

        except psycopg2.Error as e:
            raise StorageError("fetch_catalog", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def find_by_id(self, product_id: str) -> Optional[Product]:
        """
        Find product by ID (fresh read, bypasses the catalog snapshot)

        Returns:
            Product or None if not found
        """
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                LEFT JOIN categories c ON c.id = p.category_id
                WHERE p.id = %s
            """, (product_id,))

            row = cursor.fetchone()
            if not row:
                return None
            return self._map_row_to_product(row)

        except psycopg2.Error as e:
            raise StorageError("find_product_by_id", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def fetch_categories(self) -> List[Category]:
        """List all categories ordered by name"""
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute("""
                SELECT id, name, description, image_url, created_at
                FROM categories
                ORDER BY name
            """)
            return [
                Category(
                    id=str(row['id']),
                    name=row['name'],
                    description=row.get('description'),
                    image_url=row.get('image_url'),
                    created_at=row.get('created_at')
                )
                for row in cursor.fetchall()
            ]

        except psycopg2.Error as e:
            raise StorageError("fetch_categories", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()
