from brokerage_ledger.symbols.table import (
    Symbol, SymbolTable, Resolution, ResolutionStatus, fuzzy_rank,
)
from brokerage_ledger.symbols.forex import ForexTable
from brokerage_ledger.symbols.store import MetadataStore

__all__ = [
    "Symbol",
    "SymbolTable",
    "Resolution",
    "ResolutionStatus",
    "fuzzy_rank",
    "ForexTable",
    "MetadataStore",
]
