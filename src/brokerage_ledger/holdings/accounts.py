import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from brokerage_ledger.config import settings
from brokerage_ledger.exceptions import (
    CurrencyMismatchError, FundingShortfallError, LedgerError, NegativePositionError,
)
from brokerage_ledger.models import (
    Account, Currency, Funding, Record, TransactionType, TRANSACTION_ORDER,
)
from brokerage_ledger.holdings.position import Position

logger = logging.getLogger(__name__)

class AccountLedger:
    """
    Cash and security positions of one account, keyed by ticker or currency code.
    """

    def __init__(self, account: Account, epsilon: Optional[Decimal] = None):
        self.account = account
        self.epsilon = epsilon if epsilon is not None else settings.QUANTITY_EPSILON
        self._positions: Dict[str, Position] = {}

    @property
    def positions(self) -> Mapping[str, Position]:
        return MappingProxyType(self._positions)

    def position(self, key: str) -> Position:
        if key not in self._positions:
            self._positions[key] = Position()
        return self._positions[key]

    def open_positions(self) -> Dict[str, Position]:
        return {
            k: p for k, p in sorted(self._positions.items())
            if abs(p.quantity) > self.epsilon
        }

    def check_non_negative(self, day: Optional[date] = None):
        for key, p in self._positions.items():
            if p.quantity < -self.epsilon:
                raise NegativePositionError(key, p.quantity, day)

    def snapshot(self) -> List[dict]:
        return [
            {
                "account": self.account.name,
                "ticker": key,
                "quantity": str(p.quantity),
                "total_cost": str(p.total_cost),
                "average_cost": str(p.average_cost),
            }
            for key, p in self.open_positions().items()
        ]

    def render(self) -> str:
        lines = [f"Account = {self.account}", ""]
        for key, p in self.open_positions().items():
            lines.append(f"\tTicker = {key}, Quantity = {p.quantity:f}, AverageCost = {p.average_cost:f}")
        lines.append("")
        return "\n".join(lines)

@dataclass
class LedgerResult:
    ledgers: Dict[Account, AccountLedger] = field(default_factory=dict)
    failures: Dict[Account, Exception] = field(default_factory=dict)

    def __getitem__(self, account: Account) -> AccountLedger:
        return self.ledgers[account]

    def by_name(self, name: str) -> AccountLedger:
        for account, ledger in self.ledgers.items():
            if account.name == name:
                return ledger
        raise KeyError(name)

    def render(self) -> str:
        parts = ["\n\nAccount Holdings info\n"]
        for account in sorted(self.ledgers, key=lambda a: a.name):
            parts.append(self.ledgers[account].render())
        return "\n".join(parts)

class AccountLedgerEngine:
    """
    Replays one account's records chronologically. Every trade also moves the
    cash that funded it, which cross-checks trades against deposits and
    conversions recorded earlier.
    """

    def __init__(self, epsilon: Optional[Decimal] = None):
        self.epsilon = epsilon if epsilon is not None else settings.QUANTITY_EPSILON

    def calculate(self, account: Account, records: List[Record]) -> AccountLedger:
        ledger = AccountLedger(account, epsilon=self.epsilon)
        ordered = sorted(
            (r.copy() for r in records),
            key=lambda r: (r.day, TRANSACTION_ORDER[r.action]),
        )
        if not ordered:
            return ledger

        current_day = ordered[0].day
        for r in ordered:
            # New day, everything settled on the previous one must be non-negative
            if r.day != current_day:
                ledger.check_non_negative(current_day)
                current_day = r.day
            self._apply(ledger, r)
        ledger.check_non_negative(current_day)
        return ledger

    def _apply(self, ledger: AccountLedger, r: Record):
        account = ledger.account
        action = r.action

        if action == TransactionType.CASH_IN:
            self._check_currency(account, r, "deposit")
            ledger.position(r.ticker or r.currency.value).buy(r.share_count, r.share_count)
        elif action == TransactionType.DIVIDEND:
            self._check_currency(account, r, "deposit dividend")
            ledger.position(r.currency.value).buy(r.share_count, r.share_count)
        elif action == TransactionType.CASH_OUT:
            self._check_currency(account, r, "withdraw")
            self._debit(ledger.position(r.ticker or r.currency.value), r.share_count, r, "cash out")
        elif action == TransactionType.TRANSFER_OUT:
            self._debit(ledger.position(r.ticker), r.share_count, r, "transfer out")
        elif action == TransactionType.TRANSFER_IN:
            ledger.position(r.ticker).buy(r.share_count, r.base_total)
        elif action == TransactionType.BUY:
            ledger.position(r.ticker).buy(r.share_count, r.base_total)
            self._fund_buy(ledger, r)
        elif action == TransactionType.SELL:
            ledger.position(r.ticker).sell(r.share_count)
            self._settle_sell(ledger, r)
        elif action == TransactionType.SPLIT:
            new_count, old_count = r.split_ratio()
            ledger.position(r.ticker).split(new_count, old_count)
        else:
            # Renames and withholding tax are folded in before the ledger runs
            logger.debug(f"Ignoring {action.value} in account ledger: {r}")

    def _check_currency(self, account: Account, r: Record, what: str):
        if account.is_multi_currency:
            return
        if r.currency != account.currency:
            raise CurrencyMismatchError(f"cannot {what} {r.currency.value} to account {account}", record=r)

    def _debit(self, p: Position, quantity: Decimal, r: Record, what: str):
        if p.quantity < quantity - self.epsilon:
            raise FundingShortfallError(f"trying to {what}, insufficient available quantity", record=r, available=p.quantity)
        p.sell(quantity)

    def _other_side(self, account: Account, r: Record):
        """Currency code and amount of the cash leg of a trade, None when recorded separately."""
        if r.funding == Funding.SEPARATE:
            return None
        if account.currency == Currency.GBP or r.funding == Funding.GBP:
            return Currency.GBP.value, r.total
        return r.currency.value, r.base_total

    def _fund_buy(self, ledger: AccountLedger, r: Record):
        side = self._other_side(ledger.account, r)
        if side is None:
            return
        currency, want = side
        available = ledger.positions.get(currency)
        if available is None or available.quantity < want - self.epsilon:
            raise FundingShortfallError(
                f"trying to buy {r.ticker}, don't have enough {currency} funds (want {want})",
                record=r,
                available=available.quantity if available is not None else Decimal("0"),
            )
        available.sell(want)

    def _settle_sell(self, ledger: AccountLedger, r: Record):
        side = self._other_side(ledger.account, r)
        if side is None:
            return
        currency, got = side
        ledger.position(currency).buy(got, got)

def compute_account_ledgers(records: Iterable[Record], strict: bool = True) -> LedgerResult:
    """
    Builds a ledger per account. Global records (splits) apply to every account.
    """
    by_account: Dict[Account, List[Record]] = {}
    globals_: List[Record] = []
    for r in records:
        if r.account.is_global:
            globals_.append(r)
            continue
        by_account.setdefault(r.account, []).append(r)

    engine = AccountLedgerEngine()
    result = LedgerResult()
    for account in sorted(by_account, key=lambda a: a.name):
        account_records = by_account[account] + [g.copy() for g in globals_]
        try:
            result.ledgers[account] = engine.calculate(account, account_records)
        except LedgerError as e:
            if strict:
                logger.error(f"Cannot get account stats for {account}: {e}")
                raise
            logger.error(f"Skipping account {account}: {e}")
            result.failures[account] = e

    logger.info(f"Computed {len(result.ledgers)} account ledgers ({len(result.failures)} failed)")
    return result
