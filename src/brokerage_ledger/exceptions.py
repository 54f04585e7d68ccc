from decimal import Decimal
from typing import Optional, Any


class LedgerError(Exception):
    """Base class for errors raised while computing ledgers and holdings."""


class DataIntegrityError(LedgerError):
    """
    The record stream is inconsistent with itself.

    Args:
        msg: what went wrong.
        record: the offending record, if any. Included in the message so the
            failure can be diagnosed from logs alone.
    """

    def __init__(self, msg: str, record: Optional[Any] = None) -> None:
        self.msg = msg
        self.record = record
        if record is not None:
            msg = f"{msg} (record = {record})"
        super().__init__(msg)


class MathsMismatchError(DataIntegrityError):
    pass


class NegativePositionError(DataIntegrityError):
    def __init__(self, ticker: str, quantity: Decimal, day: Optional[Any] = None) -> None:
        self.ticker = ticker
        self.quantity = quantity
        self.day = day
        when = f" at end of {day}" if day is not None else ""
        super().__init__(f"position {ticker} became negative{when}: {quantity}")


class InsufficientPoolError(DataIntegrityError):
    pass


class SplitParseError(DataIntegrityError):
    pass


class TaxYearResolutionError(DataIntegrityError):
    pass


class CurrencyMismatchError(DataIntegrityError):
    pass


class WithholdingTaxError(DataIntegrityError):
    pass


class FundingShortfallError(LedgerError):
    """A buy without enough funds, or a disposal without enough quantity."""

    def __init__(self, msg: str, record: Optional[Any] = None, available: Optional[Decimal] = None) -> None:
        self.record = record
        self.available = available
        super().__init__(f"{msg} (record = {record}, available = {available})")


class RenameCycleError(LedgerError):
    pass


class SymbolResolutionError(LedgerError):
    """A ticker or name could not be resolved without an external decision."""

    def __init__(self, query: str, kind: str = "ticker") -> None:
        self.query = query
        self.kind = kind
        super().__init__(f"cannot resolve {kind} for {query!r}, needs resolution")


class ForexMissingError(LedgerError):
    pass
