import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Tuple

from brokerage_ledger.exceptions import MathsMismatchError, SplitParseError
from .types import TransactionType, Currency, Funding

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

SPLIT_PATTERN = re.compile(r"^\s*(\d+)\s+FOR\s+(\d+)\s*$", re.IGNORECASE)

@dataclass(frozen=True)
class Account:
    name: str
    currency: Currency = Currency.GBP
    # Disposals in an exempt account (ISA, SIPP...) never count towards CGT,
    # but the profit/loss is still tracked.
    cgt_exempt: bool = False

    @property
    def is_global(self) -> bool:
        return self.name == GLOBAL_ACCOUNT.name

    @property
    def is_multi_currency(self) -> bool:
        return self.currency == Currency.MULTIPLE

    def __str__(self):
        return f"{self.name} ({self.currency.value}{', CGT exempt' if self.cgt_exempt else ''})"

    def to_dict(self):
        return {
            "name": self.name,
            "currency": self.currency.value,
            "cgt_exempt": self.cgt_exempt,
        }

# Broker independent events such as stock splits and ticker renames
GLOBAL_ACCOUNT = Account(name="*", currency=Currency.MULTIPLE, cgt_exempt=False)

@dataclass
class Record:
    """
    A single normalised transaction.

    `total` and `commission` are always in GBP. `exchange_rate` converts one
    unit of `currency` into GBP, so `total / exchange_rate` is the value in
    the trade currency.
    """
    timestamp: datetime
    account: Account
    action: TransactionType
    ticker: str = ""
    name: str = ""
    share_count: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    currency: Currency = Currency.GBP
    exchange_rate: Decimal = Decimal("1")
    commission: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    # Split ratio ("2 FOR 1") or rename target
    description: str = ""
    funding: Funding = field(default=Funding.AUTO)

    @property
    def day(self) -> date:
        if isinstance(self.timestamp, datetime):
            return self.timestamp.date()
        return self.timestamp

    @property
    def base_total(self) -> Decimal:
        """Total expressed in the trade currency."""
        return self.total / self.exchange_rate

    def copy(self, **changes) -> "Record":
        return replace(self, **changes)

    def assert_maths(self, tolerance: Decimal = Decimal("0.1")) -> None:
        want = self.share_count * self.price * self.exchange_rate
        if self.action == TransactionType.BUY:
            want += self.commission
        elif self.action == TransactionType.SELL:
            want -= self.commission
        if abs(want - self.total) > tolerance:
            raise MathsMismatchError(
                f"record's total differs, want: {want} got: {self.total}", record=self
            )

    def split_ratio(self) -> Tuple[int, int]:
        """Parses "<new> FOR <old>" from the description."""
        match = SPLIT_PATTERN.match(self.description or "")
        if not match:
            raise SplitParseError(f"cannot parse split ratio from {self.description!r}", record=self)
        new_count, old_count = int(match.group(1)), int(match.group(2))
        if new_count == 0 or old_count == 0:
            raise SplitParseError(f"split ratio cannot be zero: {self.description!r}", record=self)
        return new_count, old_count

    def __str__(self):
        ts = self.timestamp.strftime(TIMESTAMP_FORMAT) if isinstance(self.timestamp, datetime) else str(self.timestamp)
        text = (
            f"[{ts},{self.account.name}] {self.action.value} "
            f"{self.share_count} {self.name} ({self.ticker}) @ {self.price} {self.currency.value}"
        )
        if self.currency != Currency.GBP:
            text += f" converted @ 1{self.currency.value} = {self.exchange_rate}GBP"
        return text + f" ; commission = {self.commission} GBP ; total = {self.total}"

    def to_dict(self):
        base_dict = {
            "timestamp": self.timestamp.isoformat(),
            "account": self.account.to_dict(),
            "action": self.action.value,
            "ticker": self.ticker,
            "name": self.name,
            "share_count": str(self.share_count),
            "price": str(self.price),
            "currency": self.currency.value,
            "exchange_rate": str(self.exchange_rate),
            "commission": str(self.commission),
            "total": str(self.total),
        }
        if self.description: base_dict["description"] = self.description
        if self.funding != Funding.AUTO: base_dict["funding"] = self.funding.value
        return base_dict
