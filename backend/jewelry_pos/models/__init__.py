from .catalog import Item
from .invoices import Invoice, InvoiceLine, InvoiceSequence
from .market import DailyMarketRate

__all__ = [
    'Item',
    'Invoice', 'InvoiceLine', 'InvoiceSequence',
    'DailyMarketRate',
]
