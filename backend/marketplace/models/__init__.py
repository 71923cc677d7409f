from .catalog import Brand, Category, Product
from .purchasing import Vendor, PurchaseBill, PurchaseItem, PurchasePayment
from .partners import Wholesaler, Reseller, Retailer, ResellerProduct, PARTNER_MODELS
from .auth import AdminUser, SessionToken

__all__ = [
    'Brand', 'Category', 'Product',
    'Vendor', 'PurchaseBill', 'PurchaseItem', 'PurchasePayment',
    'Wholesaler', 'Reseller', 'Retailer', 'ResellerProduct', 'PARTNER_MODELS',
    'AdminUser', 'SessionToken',
]
