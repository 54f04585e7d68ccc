from brokerage_ledger.models import Account, Record, TransactionType, Currency, Funding, GLOBAL_ACCOUNT
from brokerage_ledger.holdings import compute_account_ledgers, compute_holdings, cgt_summary
from brokerage_ledger.symbols import MetadataStore

__all__ = [
    "Account",
    "Record",
    "TransactionType",
    "Currency",
    "Funding",
    "GLOBAL_ACCOUNT",
    "compute_account_ledgers",
    "compute_holdings",
    "cgt_summary",
    "MetadataStore",
]
