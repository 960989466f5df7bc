from .cash_register_client import CashRegisterClient
from .catalog_client import CatalogClient
from .sales_client import SalesClient

__all__ = [
    "CashRegisterClient",
    "CatalogClient",
    "SalesClient",
]
