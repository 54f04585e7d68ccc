from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping, List, Optional

from brokerage_ledger.holdings.models import Holding
from brokerage_ledger.holdings.taxyear import TaxYearResolver

@dataclass
class CGTRow:
    ticker: str
    disposed: Decimal
    realized_gain: Decimal

@dataclass
class CGTYearReport:
    tax_year: str
    total_disposed: Decimal = Decimal("0")
    total_gain: Decimal = Decimal("0")
    rows: List[CGTRow] = field(default_factory=list)

    def add_row(self, row: CGTRow):
        self.rows.append(row)
        self.total_disposed += row.disposed
        self.total_gain += row.realized_gain

    def to_dict(self):
        return {
            "tax_year": self.tax_year,
            "total_disposed": str(self.total_disposed),
            "total_gain": str(self.total_gain),
            "rows": [
                {
                    "ticker": r.ticker,
                    "disposed": str(r.disposed),
                    "realized_gain": str(r.realized_gain),
                } for r in self.rows
            ],
        }

def cgt_summary(holdings: Mapping[str, Holding], tax_years: Optional[TaxYearResolver] = None,
                include_exempt: bool = False) -> Dict[str, CGTYearReport]:
    """
    Aggregates per tax year disposals and gains across tickers. Exempt pools
    are left out unless asked for since they never count towards CGT.
    """
    years = set(tax_years.known_years()) if tax_years is not None else set()
    for h in holdings.values():
        years.update(h.taxable.year_stats)
        if include_exempt:
            years.update(h.cgt_exempt.year_stats)

    reports = {year: CGTYearReport(tax_year=year) for year in sorted(years)}
    for ticker in sorted(holdings):
        h = holdings[ticker]
        pools = [h.taxable, h.cgt_exempt] if include_exempt else [h.taxable]
        for pool in pools:
            for year, stats in sorted(pool.year_stats.items()):
                reports[year].add_row(CGTRow(ticker, stats.disposed, stats.realized_gain))
    return reports

def debug_narrative(holdings: Mapping[str, Holding]) -> str:
    parts = []
    for ticker in sorted(holdings):
        h = holdings[ticker]
        if not h.debug:
            continue
        parts.append(f"\n\n****** Ticker = {ticker} ******\n")
        parts.append(h.debug)
    return "".join(parts)
