from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from brokerage_ledger.models import Currency
from brokerage_ledger.holdings.position import Pool, YearStats

class MatchType(Enum):
    BED_AND_BREAKFAST = "BED_AND_BREAKFAST" # 30-day rule
    POOL = "POOL"                           # Weighted average pool
    SPLIT = "SPLIT"                         # Corporate action, tax neutral

@dataclass
class MatchEvent:
    date: date
    tax_year: str
    match_type: MatchType
    quantity: Decimal
    proceeds: Decimal          # Pro-rated proceeds from the sell at the sell price
    allowable_cost: Decimal    # Matched cost (from a future buy or the pool average)
    gain_gbp: Decimal
    cgt_exempt: bool = False

    # Set when matched against a specific buy (bed and breakfast)
    matched_date: Optional[date] = None

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "tax_year": self.tax_year,
            "match_type": self.match_type.value,
            "quantity": str(self.quantity),
            "proceeds": str(self.proceeds),
            "allowable_cost": str(self.allowable_cost),
            "gain_gbp": str(self.gain_gbp),
            "cgt_exempt": self.cgt_exempt,
            "matched_date": self.matched_date.isoformat() if self.matched_date else None,
        }

@dataclass
class Holding:
    """
    Open positions of one ticker, split into a taxable and a CGT exempt pool,
    with the audit trail of every matching decision.
    """
    ticker: str
    currency: Currency
    taxable: Pool = field(default_factory=Pool)
    cgt_exempt: Pool = field(default_factory=Pool)
    events: List[MatchEvent] = field(default_factory=list)
    debug: str = ""

    def pool(self, exempt: bool = False) -> Pool:
        return self.cgt_exempt if exempt else self.taxable

    def year_stats(self, exempt: bool = False) -> Dict[str, YearStats]:
        return self.pool(exempt).year_stats

    def open_quantity(self, exempt: bool = False) -> Decimal:
        return self.pool(exempt).gbp.quantity

    def to_dict(self):
        return {
            "ticker": self.ticker,
            "currency": self.currency.value,
            "taxable": self.taxable.to_dict(),
            "cgt_exempt": self.cgt_exempt.to_dict(),
            "events": [e.to_dict() for e in self.events],
        }

@dataclass
class HoldingsResult:
    holdings: Dict[str, Holding] = field(default_factory=dict)
    # Ticker -> error, only populated when computed with strict=False
    failures: Dict[str, Exception] = field(default_factory=dict)

    def __getitem__(self, ticker: str) -> Holding:
        return self.holdings[ticker]

    def __contains__(self, ticker: str) -> bool:
        return ticker in self.holdings

    def __len__(self):
        return len(self.holdings)
