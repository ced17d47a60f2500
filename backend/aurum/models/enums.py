from __future__ import annotations

from enum import Enum

# Columns store the .value strings; members compare equal to them.


class MetalType(str, Enum):
    GOLD = "GOLD"
    SILVER = "SILVER"

    @property
    def prefix(self) -> str:
        return self.value[0]


class StockType(str, Enum):
    SINGLE = "SINGLE"
    BULK = "BULK"
    RAW = "RAW"


class ItemStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    SOLD = "SOLD"
    DELETED = "DELETED"


class SourceType(str, Enum):
    OWN = "OWN"
    VENDOR = "VENDOR"
    NEIGHBOUR = "NEIGHBOUR"
    REFINERY = "REFINERY"


class StockAction(str, Enum):
    ADD = "ADD"
    SALE = "SALE"
    RETURN = "RETURN"
    RESTOCK = "RESTOCK"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    OWNERSHIP = "OWNERSHIP"


class PaymentStatus(str, Enum):
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class PaymentMode(str, Enum):
    CASH = "CASH"
    ONLINE = "ONLINE"
    CARD = "CARD"
    UPI = "UPI"


class RestoreMode(str, Enum):
    DEFAULT = "DEFAULT"
    TAKE_OWNERSHIP = "TAKE_OWNERSHIP"


class ShopTxnType(str, Enum):
    BORROW_ADD = "BORROW_ADD"
    BORROW_REPAY = "BORROW_REPAY"
    LEND_ADD = "LEND_ADD"
    LEND_COLLECT = "LEND_COLLECT"


class VendorTxnType(str, Enum):
    STOCK_ADDED = "STOCK_ADDED"
    STOCK_UPDATE = "STOCK_UPDATE"
    REPAYMENT = "REPAYMENT"
    REFINERY_PAYMENT = "REFINERY_PAYMENT"


class ChitPlanType(str, Enum):
    AMOUNT = "AMOUNT"
    GOLD = "GOLD"


class ChitStatus(str, Enum):
    ACTIVE = "ACTIVE"
    MATURED = "MATURED"
    CLOSED = "CLOSED"


class ScrapStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BATCHED = "BATCHED"
    REFINED = "REFINED"


class BatchStatus(str, Enum):
    SENT = "SENT"
    REFINED = "REFINED"
    COMPLETED = "COMPLETED"


class TransferTarget(str, Enum):
    INVENTORY = "INVENTORY"
    VENDOR = "VENDOR"
    SHOP = "SHOP"


class PurchaseSource(str, Enum):
    DIRECT_PURCHASE = "DIRECT_PURCHASE"
    BILL_EXCHANGE = "BILL_EXCHANGE"


class ExpenseCategory(str, Enum):
    EXPENSE = "EXPENSE"
    MANUAL_INCOME = "MANUAL_INCOME"
    MANUAL_EXPENSE = "MANUAL_EXPENSE"
    OLD_METAL_PURCHASE = "OLD_METAL_PURCHASE"


class AdjustmentType(str, Enum):
    ADD = "ADD"
    SUBTRACT = "SUBTRACT"
