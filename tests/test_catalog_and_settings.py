"""
Tests for catalog and store settings services
"""
import unittest
import tempfile
import os
from decimal import Decimal

from config import Settings
from core.storefront import Storefront
from models.product import Category, Product, ProductType
from models.store import StoreSettings
from services.errors import NotFoundError, ValidationError
from services.settings_service import format_price


class TestProductService(unittest.TestCase):
    """Test cases for ProductService"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(Settings(db_path=self.test_db.name))
        self.products = self.store.product_service

        self.store.product_repo.save_category(Category("audio", "Audio", "audio"))
        self.store.product_repo.save_product(Product(
            "speaker", "Speaker", ProductType.PHYSICAL, Decimal("30"), category_id="audio",
            stock_quantity=15))
        self.store.product_repo.save_product(Product(
            "game-card", "Game Card", ProductType.DIGITAL, Decimal("25"), stock_quantity=100))

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def test_list_products(self):
        result = self.products.list_products()
        self.assertEqual(result["total_found"], 2)

        audio = self.products.list_products("audio")
        self.assertEqual([p["id"] for p in audio["products"]], ["speaker"])

    def test_categories(self):
        result = self.products.get_categories()
        self.assertEqual(result["categories"], [{"id": "audio", "name": "Audio", "slug": "audio"}])

    def test_product_details(self):
        product = self.products.get_product_details("speaker")["product"]

        self.assertEqual(product["price"], "30.00")
        self.assertEqual(product["productType"], "PHYSICAL")

        with self.assertRaises(NotFoundError):
            self.products.get_product_details("missing")

    def test_update_product(self):
        result = self.products.update_product("speaker", {
            "price": "27.5", "stock": 7, "isConsolidable": False, "shippingCost": "12"
        })

        self.assertEqual(result["product"]["price"], "27.50")
        self.assertEqual(result["product"]["stock"], 7)

        stored = self.products.get_product("speaker")
        self.assertEqual(stored.price, Decimal("27.5"))
        self.assertFalse(stored.is_consolidable)
        self.assertEqual(stored.shipping_cost, Decimal("12"))

    def test_update_product_validation(self):
        with self.assertRaises(ValidationError):
            self.products.update_product("speaker", {"price": "-1"})
        with self.assertRaises(ValidationError):
            self.products.update_product("speaker", {"stock": "5"})
        with self.assertRaises(ValidationError):
            self.products.update_product("speaker", {"name": "  "})
        with self.assertRaises(ValidationError):
            self.products.update_product("speaker", {"productType": "SERVICE"})

        self.assertEqual(self.products.get_product("speaker").price, Decimal("30"))

    def test_deactivated_product_leaves_catalog(self):
        self.products.update_product("speaker", {"isActive": False})

        ids = [p["id"] for p in self.products.list_products()["products"]]
        self.assertEqual(ids, ["game-card"])


class TestSettingsService(unittest.TestCase):
    """Test cases for SettingsService"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(Settings(db_path=self.test_db.name))
        self.settings = self.store.settings_service

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def test_defaults(self):
        details = self.settings.get_settings_details()["settings"]

        self.assertTrue(details["deliveryEnabled"])
        self.assertTrue(details["pickupEnabled"])
        self.assertIsNone(details["deliveryFeeUSD"])
        self.assertIsNone(details["freeDeliveryThresholdUSD"])
        self.assertEqual(details["primaryCurrency"], "USD")

    def test_update_round_trip(self):
        self.settings.update_settings({
            "deliveryFeeUSD": "5", "freeDeliveryThresholdUSD": "75", "minOrderAmountUSD": "10",
            "pickupEnabled": False, "primaryCurrency": "VES", "exchangeRateVES": "36.5"
        })

        stored = self.settings.get_settings()
        self.assertEqual(stored.shipping.delivery_fee, Decimal("5"))
        self.assertEqual(stored.shipping.free_shipping_threshold, Decimal("75"))
        self.assertEqual(stored.min_order_amount, Decimal("10"))
        self.assertFalse(stored.pickup_enabled)
        self.assertEqual(stored.primary_currency, "VES")

        rates = self.settings.get_exchange_rates()
        self.assertEqual(rates["VES"], "36.5")
        self.assertEqual(rates["primaryCurrency"], "VES")

    def test_clear_optional_value(self):
        self.settings.update_settings({"freeDeliveryThresholdUSD": "75"})
        self.settings.update_settings({"freeDeliveryThresholdUSD": None})

        self.assertIsNone(self.settings.get_settings().shipping.free_shipping_threshold)

    def test_update_validation(self):
        with self.assertRaises(ValidationError):
            self.settings.update_settings({"deliveryFeeUSD": "-3"})
        with self.assertRaises(ValidationError):
            self.settings.update_settings({"feePerKg": ""})
        with self.assertRaises(ValidationError):
            self.settings.update_settings({"primaryCurrency": "GBP"})
        with self.assertRaises(ValidationError):
            self.settings.update_settings({"minOrderAmountUSD": "50", "maxOrderAmountUSD": "20"})

        self.assertIsNone(self.settings.get_settings().min_order_amount)

    def test_format_price(self):
        settings = StoreSettings(exchange_rate_ves=Decimal("36.5"), exchange_rate_eur=Decimal("0.9"))

        self.assertEqual(format_price(Decimal("100"), "VES", settings), "Bs. 3,650.00")
        self.assertEqual(format_price(Decimal("10"), "EUR", settings), "€ 9.00")
        self.assertEqual(format_price(Decimal("10"), "USD", settings), "$ 10.00")


if __name__ == '__main__':
    unittest.main()
