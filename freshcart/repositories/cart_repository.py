"""
Cart Repository - Data Access Layer for cart_items

Cart rows are unique per (user_id, product_id). Every read goes to the
database; nothing is cached here.

Author: TM3
"""
from typing import List

import psycopg2

from freshcart.core.database import get_db_connection_dict_with_retry
from freshcart.core.exceptions import StorageError
from freshcart.domain.cart import CartItem
from freshcart.repositories.product_repository import PRODUCT_COLUMNS, ProductRepository


class CartRepository:
    """Repository for a user's cart rows"""

    def fetch_cart_items(self, user_id: str) -> List[CartItem]:
        """
        Fetch the user's cart rows, each joined with its product.

        Rows whose product no longer exists are dropped by the INNER JOIN.
        """
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT
                    ci.id AS cart_item_id,
                    ci.user_id,
                    ci.quantity,
                    {PRODUCT_COLUMNS}
                FROM cart_items ci
                JOIN products p ON p.id = ci.product_id
                LEFT JOIN categories c ON c.id = p.category_id
                WHERE ci.user_id = %s
                  AND ci.quantity > 0
                ORDER BY ci.created_at, p.name
            """, (user_id,))

            items = []
            for row in cursor.fetchall():
                product = ProductRepository._map_row_to_product(row)
                items.append(CartItem(
                    id=str(row['cart_item_id']),
                    user_id=str(row['user_id']),
                    product_id=product.id,
                    quantity=row['quantity'],
                    product=product
                ))
            return items

        except psycopg2.Error as e:
            raise StorageError("fetch_cart_items", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def _execute_write(self, operation: str, sql: str, params: tuple) -> int:
        """Run a single write statement in its own transaction; returns rowcount"""
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute(sql, params)
            rowcount = cursor.rowcount
            conn.commit()
            return rowcount

        except psycopg2.Error as e:
            if conn:
                conn.rollback()
            raise StorageError(operation, e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def insert_cart_item(self, user_id: str, product_id: str, quantity: int) -> None:
        self._execute_write(
            "insert_cart_item",
            """
            INSERT INTO cart_items (user_id, product_id, quantity)
            VALUES (%s, %s, %s)
            """,
            (user_id, product_id, quantity)
        )

    def update_cart_item_quantity(self, user_id: str, product_id: str, quantity: int) -> None:
        """Set (not add to) the quantity of an existing row"""
        self._execute_write(
            "update_cart_item_quantity",
            """
            UPDATE cart_items
            SET quantity = %s
            WHERE user_id = %s AND product_id = %s
            """,
            (quantity, user_id, product_id)
        )

    def delete_cart_item(self, user_id: str, product_id: str) -> None:
        self._execute_write(
            "delete_cart_item",
            "DELETE FROM cart_items WHERE user_id = %s AND product_id = %s",
            (user_id, product_id)
        )

    def delete_all_cart_items(self, user_id: str) -> int:
        """Empty the cart; returns number of rows removed"""
        return self._execute_write(
            "delete_all_cart_items",
            "DELETE FROM cart_items WHERE user_id = %s",
            (user_id,)
        )
