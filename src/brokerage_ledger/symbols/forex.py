import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Union

from brokerage_ledger.exceptions import ForexMissingError
from brokerage_ledger.models import Currency
from brokerage_ledger.symbols.table import Decider

logger = logging.getLogger(__name__)

class ForexTable:
    """
    Daily exchange rates to GBP. For USD it stores X where 1 USD = X GBP.
    """

    def __init__(self):
        self.rates: Dict[date, Dict[str, Decimal]] = {}

    @staticmethod
    def _day(when: Union[date, datetime]) -> date:
        return when.date() if isinstance(when, datetime) else when

    def add_forex(self, when: Union[date, datetime], currency: Union[Currency, str], rate: Decimal):
        """First rate seen for a day wins."""
        code = currency.value if isinstance(currency, Currency) else currency.upper()
        day_rates = self.rates.setdefault(self._day(when), {})
        if code not in day_rates:
            day_rates[code] = Decimal(rate)

    def get_forex(self, when: Union[date, datetime], currency: Union[Currency, str],
                  decide: Optional[Decider] = None) -> Decimal:
        code = currency.value if isinstance(currency, Currency) else currency.upper()
        if code == Currency.GBP.value:
            return Decimal("1")
        if code == Currency.GBX.value:
            return Decimal("0.01")

        day = self._day(when)
        rate = self.rates.get(day, {}).get(code)
        if rate is not None:
            return rate

        question = f"Exchange rate not known for date {day.isoformat()}, currency 1 {code} to GBP, please enter:"
        answer = decide(question) if decide else None
        if not answer:
            raise ForexMissingError(question)
        try:
            rate = Decimal(answer)
        except InvalidOperation:
            raise ForexMissingError(f"invalid exchange rate {answer!r} for {code} on {day.isoformat()}")
        self.add_forex(day, code, rate)
        return rate

    def to_dict(self):
        return {
            day.isoformat(): {code: str(rate) for code, rate in sorted(day_rates.items())}
            for day, day_rates in sorted(self.rates.items())
        }

    def merge(self, data: dict):
        for day_str, day_rates in data.items():
            day = date.fromisoformat(day_str[:10])
            for code, rate in day_rates.items():
                self.add_forex(day, code, Decimal(str(rate)))
