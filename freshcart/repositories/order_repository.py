"""
Order Repository - Data Access Layer for orders and order_items

Writes are the primitive steps of the order placement workflow; the
workflow (not this repository) owns sequencing and rollback.

Author: TM3
"""
from decimal import Decimal
from typing import Dict, List, Optional

import psycopg2

from freshcart.core.database import get_db_connection_dict_with_retry
from freshcart.core.exceptions import StorageError
from freshcart.domain.order import Order, OrderItem

ORDER_STATUS_PENDING = "Pending"


class OrderRepository:
    """Repository for Order data access"""

    def insert_order(
        self,
        user_id: str,
        total_amount: Decimal,
        delivery_address: str,
        customer_name: str,
        customer_phone: str
    ) -> int:
        """
        Insert an order row with status Pending.

        Returns:
            The new order ID
        """
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO orders (
                    user_id, total_amount, delivery_address,
                    customer_name, customer_phone, status
                ) VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id
            """, (
                user_id, total_amount, delivery_address,
                customer_name, customer_phone, ORDER_STATUS_PENDING
            ))
            row = cursor.fetchone()
            if not row or row.get('id') is None:
                raise StorageError("insert_order", ValueError("no id returned"))
            conn.commit()
            return row['id']

        except psycopg2.Error as e:
            if conn:
                conn.rollback()
            raise StorageError("insert_order", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def insert_order_items(self, order_id: int, items: List[OrderItem]) -> None:
        """Insert all items of an order in one transaction (all or nothing)"""
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.executemany("""
                INSERT INTO order_items (order_id, product_id, quantity, price)
                VALUES (%s, %s, %s, %s)
            """, [
                (order_id, item.product_id, item.quantity, item.price)
                for item in items
            ])
            conn.commit()

        except psycopg2.Error as e:
            if conn:
                conn.rollback()
            raise StorageError("insert_order_items", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def delete_order(self, order_id: int) -> None:
        """Delete an order (and, by cascade, any items)"""
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()
            cursor.execute("DELETE FROM orders WHERE id = %s", (order_id,))
            conn.commit()

        except psycopg2.Error as e:
            if conn:
                conn.rollback()
            raise StorageError("delete_order", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()

    def fetch_orders(
        self,
        user_id: str,
        limit: int = 3,
        order_id: Optional[int] = None
    ) -> List[Order]:
        """
        Fetch the user's orders, newest first, with items and product names.

        Args:
            user_id: Owner of the orders
            limit: Maximum orders to return
            order_id: Restrict to one order (still scoped to the user)

        Returns:
            List of orders (possibly empty)
        """
        conn = None
        cursor = None
        try:
            conn = get_db_connection_dict_with_retry()
            cursor = conn.cursor()

            conditions = ["o.user_id = %s"]
            params: list = [user_id]
            if order_id is not None:
                conditions.append("o.id = %s")
                params.append(order_id)
            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT
                    o.id, o.user_id, o.total_amount, o.status,
                    o.delivery_address, o.customer_name, o.customer_phone,
                    o.created_at
                FROM orders o
                WHERE {where_clause}
                ORDER BY o.created_at DESC
                LIMIT %s
            """, params + [limit])
            order_rows = cursor.fetchall()

            if not order_rows:
                return []

            # All items for these orders in one query
            order_ids = [row['id'] for row in order_rows]
            cursor.execute("""
                SELECT
                    oi.id, oi.order_id, oi.product_id, oi.quantity, oi.price,
                    p.name AS product_name,
                    p.unit
                FROM order_items oi
                LEFT JOIN products p ON p.id = oi.product_id
                WHERE oi.order_id = ANY(%s)
                ORDER BY oi.created_at, oi.id
            """, (order_ids,))

            items_by_order: Dict[int, List[OrderItem]] = {}
            for item in cursor.fetchall():
                items_by_order.setdefault(item['order_id'], []).append(OrderItem(
                    id=str(item['id']),
                    order_id=item['order_id'],
                    product_id=str(item['product_id']),
                    quantity=item['quantity'],
                    price=item['price'],
                    product_name=item.get('product_name'),
                    unit=item.get('unit')
                ))

            return [
                Order(
                    id=row['id'],
                    user_id=str(row['user_id']),
                    total_amount=row['total_amount'] or Decimal("0"),
                    status=row.get('status') or ORDER_STATUS_PENDING,
                    delivery_address=row.get('delivery_address'),
                    customer_name=row.get('customer_name'),
                    customer_phone=row.get('customer_phone'),
                    created_at=row.get('created_at'),
                    items=items_by_order.get(row['id'], [])
                )
                for row in order_rows
            ]

        except psycopg2.Error as e:
            raise StorageError("fetch_orders", e) from e
        finally:
            if cursor:
                cursor.close()
            if conn:
                conn.close()
