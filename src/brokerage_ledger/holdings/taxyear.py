import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Union

from brokerage_ledger.exceptions import TaxYearResolutionError

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class TaxYear:
    """A UK tax year, 6 April to 5 April inclusive."""
    label: str
    start: date
    end: date

    @classmethod
    def starting(cls, year_start: int) -> "TaxYear":
        year_end = year_start + 1
        return cls(
            label=f"{year_start}-{year_end % 100:02d}",
            start=date(year_start, 4, 6),
            end=date(year_end, 4, 5),
        )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

class TaxYearResolver:
    """
    Maps dates to tax year labels. Years are created on first use and kept
    for the lifetime of the resolver.
    """

    def __init__(self):
        self._years: Dict[str, TaxYear] = {}

    def resolve(self, when: Union[date, datetime]) -> str:
        day = when.date() if isinstance(when, datetime) else when

        for label, tax_year in self._years.items():
            if tax_year.contains(day):
                return label

        # A date can only be in [year-1, year] or [year, year+1]
        for year_start in (day.year, day.year - 1):
            candidate = TaxYear.starting(year_start)
            if candidate.contains(day):
                self._years[candidate.label] = candidate
                logger.debug(f"Registered tax year {candidate.label}")
                return candidate.label

        raise TaxYearResolutionError(f"cannot calculate tax year for {day}")

    def get(self, label: str) -> TaxYear:
        return self._years[label]

    def known_years(self) -> List[str]:
        return sorted(self._years)

    def __contains__(self, label: str) -> bool:
        return label in self._years

    def __len__(self):
        return len(self._years)
