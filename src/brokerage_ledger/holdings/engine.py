import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from brokerage_ledger.config import settings
from brokerage_ledger.exceptions import DataIntegrityError, InsufficientPoolError, LedgerError
from brokerage_ledger.models import Currency, Record, TransactionType, TRANSACTION_ORDER
from brokerage_ledger.holdings.models import Holding, HoldingsResult, MatchEvent, MatchType
from brokerage_ledger.holdings.position import Pool
from brokerage_ledger.holdings.taxyear import TaxYearResolver

logger = logging.getLogger(__name__)

HOLDING_ACTIONS = (TransactionType.BUY, TransactionType.SELL, TransactionType.SPLIT)

@dataclass
class MutableRecord:
    """
    Copy of a record for one ticker computation. A sale matched against a
    future buy consumes that buy's remaining quantity and cost, so the buy
    only adds what is left to the pool when its turn comes.
    """
    original: Record
    remaining_quantity: Decimal
    remaining_total: Decimal

    @property
    def day(self) -> date:
        return self.original.day

    @property
    def action(self) -> TransactionType:
        return self.original.action

    @property
    def cgt_exempt(self) -> bool:
        return self.original.account.cgt_exempt

    @property
    def unit_total(self) -> Decimal:
        """GBP value of one share, from the untouched record."""
        return self.original.total / self.original.share_count

class HoldingEngine:
    """
    Computes open positions and realized gains for a single ticker:
    1. Bed & Breakfast (buys within the next 30 days)
    2. Weighted average pool
    """

    def __init__(self, tax_years: Optional[TaxYearResolver] = None,
                 window_days: Optional[int] = None, epsilon: Optional[Decimal] = None):
        self.tax_years = tax_years if tax_years is not None else TaxYearResolver()
        self.window_days = window_days if window_days is not None else settings.BED_AND_BREAKFAST_DAYS
        self.epsilon = epsilon if epsilon is not None else settings.QUANTITY_EPSILON

    def calculate(self, ticker: str, records: List[Record]) -> Holding:
        lots = self._copy_and_sort(ticker, records)
        # Global splits carry no currency, only trades say what the ticker is quoted in
        trades = [lot for lot in lots if lot.action != TransactionType.SPLIT]
        holding = Holding(ticker=ticker, currency=trades[0].original.currency if trades else Currency.GBP)
        trace: List[str] = []

        for idx, lot in enumerate(lots):
            pool = holding.pool(lot.cgt_exempt)
            if lot.action == TransactionType.SPLIT:
                self._handle_split(holding, lot, trace)
            elif lot.action == TransactionType.BUY:
                self._handle_buy(pool, lot)
            elif lot.action == TransactionType.SELL:
                self._handle_sell(holding, pool, lots, idx, trace)

        holding.debug = "".join(trace)
        return holding

    def _copy_and_sort(self, ticker: str, records: List[Record]) -> List[MutableRecord]:
        lots = []
        for r in records:
            if r.ticker != ticker:
                raise DataIntegrityError(f"invalid ticker in record, want {ticker}", record=r)
            if r.action == TransactionType.RENAME:
                raise DataIntegrityError("rename record should not be present here", record=r)
            if r.action not in HOLDING_ACTIONS:
                continue
            lots.append(MutableRecord(
                original=r.copy(timestamp=r.day),
                remaining_quantity=r.share_count,
                remaining_total=r.total,
            ))
        # Stable sort: same day splits first, then sells, then buys
        lots.sort(key=lambda lot: (lot.day, TRANSACTION_ORDER[lot.action]))
        return lots

    def _handle_split(self, holding: Holding, lot: MutableRecord, trace: List[str]):
        new_count, old_count = lot.original.split_ratio()
        # Corporate actions apply to every holder
        for exempt in (False, True):
            pool = holding.pool(exempt)
            old_quantity = pool.gbp.quantity
            pool.split(new_count, old_count)
            if old_quantity != 0:
                holding.events.append(MatchEvent(
                    date=lot.day,
                    tax_year=self.tax_years.resolve(lot.day),
                    match_type=MatchType.SPLIT,
                    quantity=pool.gbp.quantity - old_quantity,
                    proceeds=Decimal("0"),
                    allowable_cost=Decimal("0"),
                    gain_gbp=Decimal("0"),
                    cgt_exempt=exempt,
                ))
        trace.append(f"\nSPLIT on {lot.day.isoformat()}, {new_count} FOR {old_count}\n")

    def _handle_buy(self, pool: Pool, lot: MutableRecord):
        # Fully consumed by an earlier bed and breakfast match
        if abs(lot.remaining_quantity) < self.epsilon:
            return
        pool.gbp.buy(lot.remaining_quantity, lot.remaining_total)
        pool.base.buy(lot.remaining_quantity, lot.remaining_total / lot.original.exchange_rate)

    def _handle_sell(self, holding: Holding, pool: Pool, lots: List[MutableRecord], idx: int, trace: List[str]):
        sale = lots[idx]
        r = sale.original
        if r.share_count <= self.epsilon:
            raise DataIntegrityError("sell with no quantity", record=r)

        year = self.tax_years.resolve(sale.day)
        stats = pool.stats_for(year)
        stats.disposed += r.total
        to_match = r.share_count
        sale_unit = sale.unit_total
        trace.append(
            f"\nSELL on {sale.day.isoformat()}, quantity {to_match}, price {r.price} {r.currency.value}, "
            f"total disposed {r.total} GBP\n"
        )

        # Match against buys in the following days, records are sorted so stop
        # at the first one outside the window.
        for candidate in lots[idx + 1:]:
            if to_match <= 0:
                break
            if (candidate.day - sale.day).days > self.window_days:
                break
            # Taxable sells only match taxable buys, exempt only exempt
            if candidate.cgt_exempt != sale.cgt_exempt:
                continue
            if candidate.action != TransactionType.BUY:
                continue
            if abs(candidate.remaining_quantity) < self.epsilon:
                continue

            matched = min(candidate.remaining_quantity, to_match)
            cost = matched * (candidate.remaining_total / candidate.remaining_quantity)
            disposal = matched * sale_unit
            gain = disposal - cost
            stats.realized_gain += gain
            holding.events.append(MatchEvent(
                date=sale.day,
                tax_year=year,
                match_type=MatchType.BED_AND_BREAKFAST,
                quantity=matched,
                proceeds=disposal,
                allowable_cost=cost,
                gain_gbp=gain,
                cgt_exempt=sale.cgt_exempt,
                matched_date=candidate.day,
            ))
            trace.append(
                f"\t\tMatched {matched} against BUY on {candidate.day.isoformat()}, gain: {gain} GBP\n"
            )
            candidate.remaining_quantity -= matched
            candidate.remaining_total -= cost
            to_match -= matched

        if to_match <= 0:
            return

        # Whatever is left comes out of the pool at its average cost.
        # Proceeds are still valued at the sale price.
        if pool.gbp.quantity < to_match - self.epsilon:
            raise InsufficientPoolError(
                f"invalid quantity remaining in the pool, want {to_match}, got {pool.gbp.quantity}",
                record=r,
            )
        average = pool.gbp.average_cost
        cost = to_match * average
        disposal = to_match * sale_unit
        gain = disposal - cost
        stats.realized_gain += gain
        holding.events.append(MatchEvent(
            date=sale.day,
            tax_year=year,
            match_type=MatchType.POOL,
            quantity=to_match,
            proceeds=disposal,
            allowable_cost=cost,
            gain_gbp=gain,
            cgt_exempt=sale.cgt_exempt,
        ))
        trace.append(f"\t\tMatched {to_match} against POOL, with average cost {average}, gain: {gain} GBP\n")
        pool.gbp.sell(to_match)
        pool.base.sell(to_match)

def compute_holdings(records: Iterable[Record], tax_years: Optional[TaxYearResolver] = None,
                     fx_is_asset: bool = False, strict: bool = True) -> HoldingsResult:
    """
    Computes a Holding per ticker. Tickers are independent of each other, a
    failing ticker either aborts the run (strict) or is reported in
    `failures` while the rest still compute.
    """
    by_ticker: Dict[str, List[Record]] = {}
    for r in records:
        if r.action not in HOLDING_ACTIONS:
            continue
        # Currency conversions are cash, not assets, unless asked for
        if not fx_is_asset and Currency.is_code(r.ticker):
            continue
        by_ticker.setdefault(r.ticker, []).append(r)

    engine = HoldingEngine(tax_years=tax_years)
    result = HoldingsResult()
    for ticker in sorted(by_ticker):
        try:
            result.holdings[ticker] = engine.calculate(ticker, by_ticker[ticker])
        except LedgerError as e:
            if strict:
                logger.error(f"Cannot calculate holding stats for ticker {ticker}: {e}")
                raise
            logger.error(f"Skipping ticker {ticker}: {e}")
            result.failures[ticker] = e

    logger.info(f"Computed {len(result.holdings)} holdings ({len(result.failures)} failed)")
    return result
