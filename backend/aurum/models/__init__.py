from .inventory import InventoryItem, StockLog, ItemUpdate
from .documents import DocumentSequence
from .sales import Sale, SaleItem, SalePayment, SaleExchangeItem
from .vendors import Vendor, VendorTransaction
from .shops import ExternalShop, ShopTransaction, ShopSettlement
from .assets import ShopAssets, GeneralExpense
from .chits import ChitPlan, ChitPayment, DailyRate
from .refinery import OldMetalPurchase, OldMetalItem, RefineryBatch
from .auth import User, SessionToken
from .audit import AuditLog

__all__ = [
    'InventoryItem', 'StockLog', 'ItemUpdate',
    'DocumentSequence',
    'Sale', 'SaleItem', 'SalePayment', 'SaleExchangeItem',
    'Vendor', 'VendorTransaction',
    'ExternalShop', 'ShopTransaction', 'ShopSettlement',
    'ShopAssets', 'GeneralExpense',
    'ChitPlan', 'ChitPayment', 'DailyRate',
    'OldMetalPurchase', 'OldMetalItem', 'RefineryBatch',
    'User', 'SessionToken',
    'AuditLog',
]
