from .catalog import Product, Supplier
from .inventory import InventoryBatch, BATCH_TYPES
from .purchasing import PurchaseOrder, PurchaseOrderLine
from .documents import DocumentSequence

__all__ = [
    'Product', 'Supplier',
    'InventoryBatch', 'BATCH_TYPES',
    'PurchaseOrder', 'PurchaseOrderLine',
    'DocumentSequence',
]
