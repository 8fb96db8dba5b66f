# ------ storefront/model/__init__.py ------

from .tenant import Tenant
from .user import User
from .category import Category
from .product import Product, ProductVariant
from .customer import Customer
from .shipping import ShippingMethod
from .coupon import Coupon, CouponUsage, COUPON_TYPES
from .gift_card import GiftCard
from .cart import Cart, CartItem
from .order import Order, OrderItem
from .api_credential import ApiCredential, API_PERMISSIONS, RATE_LIMIT_TIERS

__all__ = [
    "Tenant",
    "User",
    "Category",
    "Product",
    "ProductVariant",
    "Customer",
    "ShippingMethod",
    "Coupon",
    "CouponUsage",
    "COUPON_TYPES",
    "GiftCard",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "ApiCredential",
    "API_PERMISSIONS",
    "RATE_LIMIT_TIERS",
]
