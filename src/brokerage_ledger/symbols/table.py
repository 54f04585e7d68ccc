import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from brokerage_ledger.exceptions import CurrencyMismatchError, RenameCycleError, SymbolResolutionError
from brokerage_ledger.models import AssetType, Record

logger = logging.getLogger(__name__)

# Called with a human readable question, returns the answer or None to give up
Decider = Callable[[str], Optional[str]]

@dataclass
class Symbol:
    names: List[str] = field(default_factory=list)
    currency: str = ""
    asset_type: AssetType = AssetType.UNKNOWN

    def to_dict(self):
        return {
            "names": list(self.names),
            "currency": self.currency,
            "asset_type": self.asset_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Symbol":
        try:
            asset_type = AssetType(data.get("asset_type") or "")
        except ValueError:
            asset_type = AssetType.UNKNOWN
        return cls(
            names=sorted(set(data.get("names") or [])),
            currency=data.get("currency") or "",
            asset_type=asset_type,
        )

class ResolutionStatus(str, Enum):
    RESOLVED = "RESOLVED"
    NEEDS_RESOLUTION = "NEEDS_RESOLUTION"

@dataclass
class Resolution:
    query: str
    status: ResolutionStatus
    value: Optional[str] = None
    # Ranked fuzzy candidates, best first
    candidates: List[str] = field(default_factory=list)
    exact: bool = False

    @property
    def resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED

def fuzzy_rank(query: str, targets: List[str]) -> List[Tuple[str, int]]:
    """
    Keeps the targets that contain the query's characters in order (case
    folded) and ranks them by edit distance. Ties keep the input order.
    """
    needle = query.casefold()
    ranked = []
    for position, target in enumerate(targets):
        haystack = target.casefold()
        if not _is_subsequence(needle, haystack):
            continue
        ranked.append((Levenshtein.distance(needle, haystack), position, target))
    ranked.sort(key=lambda item: (item[0], item[1]))
    return [(target, distance) for distance, _, target in ranked]

def _is_subsequence(needle: str, haystack: str) -> bool:
    it = iter(haystack)
    return all(ch in it for ch in needle)

class SymbolTable:
    """
    Ticker identity: the display names known for each ticker and the renames
    from retired tickers to their replacement.
    """

    def __init__(self):
        self.symbols: Dict[str, Symbol] = {}
        self.renames: Dict[str, str] = {}

    def insert_ticker_name(self, ticker: str, name: str):
        if not ticker:
            return
        symbol = self.symbols.setdefault(ticker, Symbol())
        if name and name not in symbol.names:
            symbol.names.append(name)
            symbol.names.sort()

    def set_currency(self, ticker: str, currency: str):
        currency = currency.upper()
        symbol = self.symbols.get(ticker)
        if symbol is None:
            raise CurrencyMismatchError(f"ticker {ticker} not added before setting currency")
        if symbol.currency and symbol.currency != currency:
            raise CurrencyMismatchError(
                f"ticker {ticker} cannot have two different currencies (old={symbol.currency}, new={currency})"
            )
        symbol.currency = currency
        # Only happens for forex records
        if ticker == currency:
            symbol.asset_type = AssetType.FOREX

    def rename_symbol(self, old: str, new: str):
        """Records old -> new. Historical records are re-resolved by the caller."""
        if old == new:
            return
        if self.most_recent_ticker(new) == old:
            raise RenameCycleError(f"renaming {old} to {new} creates a cycle")
        self.renames[old] = new
        logger.debug(f"Renamed symbol {old} -> {new}")

    def most_recent_ticker(self, ticker: str) -> str:
        seen = {ticker}
        while ticker in self.renames:
            ticker = self.renames[ticker]
            if ticker in seen:
                raise RenameCycleError(f"rename chain loops back to {ticker}: {sorted(seen)}")
            seen.add(ticker)
        return ticker

    def meta(self, ticker: str) -> Optional[Symbol]:
        return self.symbols.get(self.most_recent_ticker(ticker))

    def resolve_name_for_ticker(self, ticker: str) -> Resolution:
        for key in (ticker, self.most_recent_ticker(ticker)):
            symbol = self.symbols.get(key)
            if symbol is not None and symbol.names:
                return Resolution(ticker, ResolutionStatus.RESOLVED, symbol.names[0], exact=True)

        known = sorted(t for t, s in self.symbols.items() if s.names)
        ranked = [t for t, _ in fuzzy_rank(ticker, known)]
        if ranked:
            return Resolution(ticker, ResolutionStatus.RESOLVED, self.symbols[ranked[0]].names[0], candidates=ranked)
        return Resolution(ticker, ResolutionStatus.NEEDS_RESOLUTION)

    def resolve_ticker_for_name(self, name: str) -> Resolution:
        owners: Dict[str, str] = {}
        for ticker in sorted(self.symbols):
            for known in self.symbols[ticker].names:
                owners.setdefault(known, ticker)

        if name in owners:
            return Resolution(name, ResolutionStatus.RESOLVED, owners[name], exact=True)

        ranked = [owners[target] for target, _ in fuzzy_rank(name, list(owners))]
        if ranked:
            return Resolution(name, ResolutionStatus.RESOLVED, ranked[0], candidates=ranked)
        return Resolution(name, ResolutionStatus.NEEDS_RESOLUTION)

    def require_ticker_for_name(self, name: str, decide: Optional[Decider] = None) -> str:
        resolution = self.resolve_ticker_for_name(name)
        if resolution.resolved:
            return resolution.value
        manual = decide(f"Cannot get ticker from name {name}, please enter manually") if decide else None
        if not manual:
            raise SymbolResolutionError(name, kind="ticker")
        self.insert_ticker_name(manual, name)
        return manual

    def require_name_for_ticker(self, ticker: str, decide: Optional[Decider] = None) -> str:
        resolution = self.resolve_name_for_ticker(ticker)
        if resolution.resolved:
            return resolution.value
        manual = decide(f"Cannot get name for ticker {ticker}, please enter manually") if decide else None
        if not manual:
            raise SymbolResolutionError(ticker, kind="name")
        self.insert_ticker_name(ticker, manual)
        return manual

    def fill_ticker_or_name(self, record: Record, decide: Optional[Decider] = None) -> Record:
        """Fills in whichever of ticker or name the record lacks and learns the pair."""
        if not record.ticker and not record.name:
            return record
        if not record.ticker:
            record.ticker = self.require_ticker_for_name(record.name, decide)
        elif not record.name:
            record.name = self.require_name_for_ticker(record.ticker, decide)
        self.insert_ticker_name(record.ticker, record.name)
        return record

    def merge(self, symbols: Dict[str, Symbol], renames: Dict[str, str]):
        """Merges persisted state in without dropping anything already learned."""
        for ticker, incoming in symbols.items():
            existing = self.symbols.get(ticker)
            if existing is None:
                self.symbols[ticker] = incoming
                continue
            for name in incoming.names:
                self.insert_ticker_name(ticker, name)
            if not existing.currency:
                existing.currency = incoming.currency
            if existing.asset_type == AssetType.UNKNOWN:
                existing.asset_type = incoming.asset_type
        for old, new in renames.items():
            if old not in self.renames:
                self.rename_symbol(old, new)
