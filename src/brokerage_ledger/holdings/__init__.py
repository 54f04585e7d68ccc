from brokerage_ledger.holdings.position import Position, Pool, YearStats
from brokerage_ledger.holdings.taxyear import TaxYear, TaxYearResolver
from brokerage_ledger.holdings.models import Holding, HoldingsResult, MatchEvent, MatchType
from brokerage_ledger.holdings.engine import HoldingEngine, compute_holdings
from brokerage_ledger.holdings.accounts import AccountLedger, AccountLedgerEngine, LedgerResult, compute_account_ledgers
from brokerage_ledger.holdings.report import CGTYearReport, cgt_summary, debug_narrative

__all__ = [
    "Position",
    "Pool",
    "YearStats",
    "TaxYear",
    "TaxYearResolver",
    "Holding",
    "HoldingsResult",
    "MatchEvent",
    "MatchType",
    "HoldingEngine",
    "compute_holdings",
    "AccountLedger",
    "AccountLedgerEngine",
    "LedgerResult",
    "compute_account_ledgers",
    "CGTYearReport",
    "cgt_summary",
    "debug_narrative",
]
