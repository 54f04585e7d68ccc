import pytest
from datetime import datetime
from decimal import Decimal

from brokerage_ledger.models import Account, Currency, Funding, Record, TransactionType, GLOBAL_ACCOUNT
from brokerage_ledger.symbols import MetadataStore


@pytest.fixture
def gia():
    return Account(name="GIA", currency=Currency.GBP, cgt_exempt=False)


@pytest.fixture
def isa():
    return Account(name="ISA", currency=Currency.GBP, cgt_exempt=True)


@pytest.fixture
def ibkr():
    return Account(name="IBKR", currency=Currency.MULTIPLE, cgt_exempt=False)


@pytest.fixture
def store():
    return MetadataStore()


@pytest.fixture
def mk_record():
    """
    Factory for records. Total defaults to quantity * price * rate so the
    maths invariant holds unless a test overrides it.
    """
    def _mk(when, account, action, ticker="X", qty="0", price="0", total=None,
            currency=Currency.GBP, rate="1", description="", name=None, funding=Funding.AUTO,
            commission="0"):
        qty, price, rate = Decimal(qty), Decimal(price), Decimal(rate)
        if total is None:
            total = qty * price * rate
        if isinstance(when, str):
            when = datetime.fromisoformat(when)
        return Record(
            timestamp=when,
            account=account,
            action=action,
            ticker=ticker,
            name=ticker if name is None else name,
            share_count=qty,
            price=price,
            currency=currency,
            exchange_rate=rate,
            commission=Decimal(commission),
            total=Decimal(total),
            description=description,
            funding=funding,
        )
    return _mk
