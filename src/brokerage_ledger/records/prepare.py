import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from brokerage_ledger.config import settings
from brokerage_ledger.exceptions import WithholdingTaxError
from brokerage_ledger.models import Account, Currency, Record, TransactionType
from brokerage_ledger.symbols import MetadataStore
from brokerage_ledger.symbols.table import Decider

logger = logging.getLogger(__name__)

def validate_and_enrich(record: Record, store: MetadataStore, decide: Optional[Decider] = None) -> Record:
    """
    Returns a validated copy of the record: pence collapsed into pounds, the
    maths invariant checked, and ticker/name/currency/forex learned into the store.
    """
    r = record.copy()
    # Store everything in GBP
    if r.currency == Currency.GBX:
        r.price = r.price / 100
        r.currency = Currency.GBP
        r.exchange_rate = Decimal("1")

    r.assert_maths(settings.MATHS_TOLERANCE_GBP)

    if Currency.is_code(r.ticker) and not r.name:
        r.name = r.ticker
    if not r.action.is_metadata_event:
        store.symbols.fill_ticker_or_name(r, decide)

    if r.currency != Currency.GBP:
        store.forex.add_forex(r.timestamp, r.currency, r.exchange_rate)

    # Only trades say anything about the currency a ticker is quoted in
    if r.action in (TransactionType.BUY, TransactionType.SELL):
        store.symbols.set_currency(r.ticker, r.currency.value)
    return r

def apply_renames(records: List[Record], store: MetadataStore) -> List[Record]:
    """
    Registers every RENAME record and rewrites the remaining records to the
    most recent ticker. RENAME records are dropped.
    """
    for r in records:
        if r.action == TransactionType.RENAME:
            store.symbols.rename_symbol(r.ticker, r.description.strip())

    res = []
    for r in records:
        if r.action == TransactionType.RENAME:
            continue
        ticker = store.symbols.most_recent_ticker(r.ticker) if r.ticker else r.ticker
        name = r.name
        meta = store.symbols.meta(ticker) if ticker else None
        if meta is not None and meta.names:
            name = meta.names[0]
        res.append(r.copy(ticker=ticker, name=name))
    return res

def net_withholding_tax(records: List[Record], epsilon: Optional[Decimal] = None) -> List[Record]:
    """
    Subtracts withholding tax from the dividends paid for the same ticker, in
    the same account, on the same day. Fully taxed dividends are dropped.
    """
    epsilon = epsilon if epsilon is not None else settings.QUANTITY_EPSILON
    Key = Tuple[str, Account, date]

    by_key: Dict[Key, List[Record]] = {}
    res = []
    for r in records:
        if r.action == TransactionType.DIVIDEND:
            by_key.setdefault((r.ticker, r.account, r.day), []).append(r.copy())
        elif r.action != TransactionType.WITHHOLDING_TAX:
            res.append(r)

    for r in records:
        if r.action != TransactionType.WITHHOLDING_TAX:
            continue
        left = r.share_count
        for dividend in by_key.get((r.ticker, r.account, r.day), []):
            if left <= epsilon:
                break
            got = min(dividend.share_count, left)
            dividend.share_count -= got
            dividend.total -= got * dividend.exchange_rate
            dividend.description = f"{dividend.description} tax of {got} ;".strip()
            left -= got
        if left > epsilon:
            raise WithholdingTaxError(f"cannot subtract withholding tax, left = {left}", record=r)

    for dividends in by_key.values():
        res.extend(d for d in dividends if d.share_count >= epsilon)
    res.sort(key=lambda r: r.timestamp)
    return res

def prepare_records(records: Iterable[Record], store: MetadataStore,
                    decide: Optional[Decider] = None) -> List[Record]:
    """
    Turns raw normalised records into the stream both engines consume.
    The caller's records are never mutated.
    """
    enriched = [validate_and_enrich(r, store, decide) for r in records]
    enriched.sort(key=lambda r: r.timestamp)
    renamed = apply_renames(enriched, store)
    prepared = net_withholding_tax(renamed)
    logger.info(f"Prepared {len(prepared)} records ({len(enriched) - len(prepared)} folded away)")
    return prepared
