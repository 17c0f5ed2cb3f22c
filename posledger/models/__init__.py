from .tenancy import Branch
from .catalog import Product, ProductUOM
from .inventory import Warehouse, InventoryBatch, StockMovement
from .sales import SalesOrder, POSSale, POSSaleItem
from .accounts import Customer, AccountsReceivable, ARPayment, AccountsPayable, APPayment
from .purchasing import Supplier, PurchaseOrder, PurchaseOrderItem, ReceivingVoucher, ReceivingVoucherItem
from .settings import CompanySettings
from .reference import ProductCategory, ExpenseCategory, PaymentMethod, UnitOfMeasure, ExpenseVendor

__all__ = [
    'Branch',
    'Product', 'ProductUOM',
    'Warehouse', 'InventoryBatch', 'StockMovement',
    'SalesOrder', 'POSSale', 'POSSaleItem',
    'Customer', 'AccountsReceivable', 'ARPayment', 'AccountsPayable', 'APPayment',
    'Supplier', 'PurchaseOrder', 'PurchaseOrderItem', 'ReceivingVoucher', 'ReceivingVoucherItem',
    'CompanySettings',
    'ProductCategory', 'ExpenseCategory', 'PaymentMethod', 'UnitOfMeasure', 'ExpenseVendor',
]
