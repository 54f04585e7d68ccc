from .types import TransactionType, Currency, Funding, AssetType, TRANSACTION_ORDER
from .domain import Account, Record, GLOBAL_ACCOUNT

__all__ = [
    "TransactionType",
    "Currency",
    "Funding",
    "AssetType",
    "TRANSACTION_ORDER",
    "Account",
    "Record",
    "GLOBAL_ACCOUNT",
]
