"""
Unit tests for ProductRepository

These tests validate repository logic without requiring a database connection.

Author: TM3
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from freshcart.core.exceptions import StorageError
from freshcart.domain.product import Category, Product
from freshcart.repositories.product_repository import ProductRepository


def product_row(**overrides):
    row = {
        'id': 'b2a5c1de-0000-4000-8000-000000000001',
        'name': 'Apples',
        'description': 'Fresh red apples',
        'price': Decimal('120.00'),
        'image_url': None,
        'category_id': 'c0ffee00-0000-4000-8000-000000000001',
        'stock_quantity': 30,
        'unit': 'kg',
        'created_at': datetime(2025, 7, 1, 10, 0, 0),
        'category_name': 'Fruits',
        'category_description': 'Fresh fruit',
        'category_image_url': None,
        'category_created_at': datetime(2025, 6, 1, 9, 0, 0),
    }
    row.update(overrides)
    return row


class TestProductRepository:
    """Test ProductRepository methods"""

    @patch('freshcart.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_find_by_id_returns_product(self, mock_get_conn):
        """Test find_by_id returns a Product domain model"""
        # Arrange: Mock database connection
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_get_conn.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        mock_cursor.fetchone.return_value = product_row()

        # Act: Call repository method
        repo = ProductRepository()
        product = repo.find_by_id('b2a5c1de-0000-4000-8000-000000000001')

        # Assert: Verify result
        assert isinstance(product, Product)
        assert product.name == 'Apples'
        assert product.price == Decimal('120.00')
        assert product.stock_quantity == 30
        assert product.category_name == 'Fruits'
        assert isinstance(product.category, Category)

        # Verify database was called correctly
        mock_cursor.execute.assert_called_once()
        assert mock_cursor.execute.call_args.args[1] == ('b2a5c1de-0000-4000-8000-000000000001',)
        mock_cursor.close.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('freshcart.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_find_by_id_returns_none_when_not_found(self, mock_get_conn):
        """Test find_by_id returns None when product doesn't exist"""
        # Arrange
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_get_conn.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        mock_cursor.fetchone.return_value = None

        # Act
        product = ProductRepository().find_by_id('missing')

        # Assert
        assert product is None
        mock_conn.close.assert_called_once()

    @patch('freshcart.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_fetch_catalog_maps_rows(self, mock_get_conn):
        """Test fetch_catalog maps every row, with and without category"""
        # Arrange
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_get_conn.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        mock_cursor.fetchall.return_value = [
            product_row(),
            product_row(
                id='b2a5c1de-0000-4000-8000-000000000002',
                name='Loose Item',
                category_id=None,
                category_name=None,
                unit=None,
                stock_quantity=None
            ),
        ]

        # Act
        products = ProductRepository().fetch_catalog()

        # Assert
        assert [p.name for p in products] == ['Apples', 'Loose Item']
        assert products[1].category is None
        assert products[1].unit == 'piece'
        assert products[1].stock_quantity == 0

    def test_negative_stock_is_clamped(self):
        """Storage may report negative stock; the domain never does"""
        product = ProductRepository._map_row_to_product(product_row(stock_quantity=-3))

        assert product.stock_quantity == 0
        assert product.is_out_of_stock is True

    @patch('freshcart.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_driver_error_becomes_storage_error(self, mock_get_conn):
        """Test psycopg2 errors are wrapped and the connection closed"""
        # Arrange
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_get_conn.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        mock_cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")

        # Act / Assert
        with pytest.raises(StorageError) as exc_info:
            ProductRepository().fetch_catalog()

        assert exc_info.value.operation == 'fetch_catalog'
        mock_cursor.close.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('freshcart.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_fetch_categories(self, mock_get_conn):
        """Test fetch_categories returns Category models"""
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_get_conn.return_value = mock_conn
        mock_conn.cursor.return_value = mock_cursor
        mock_cursor.fetchall.return_value = [
            {'id': 'c1', 'name': 'Dairy', 'description': None, 'image_url': None, 'created_at': None},
            {'id': 'c2', 'name': 'Fruits', 'description': 'Fresh fruit', 'image_url': None, 'created_at': None},
        ]

        categories = ProductRepository().fetch_categories()

        assert [c.name for c in categories] == ['Dairy', 'Fruits']
        assert all(isinstance(c, Category) for c in categories)
