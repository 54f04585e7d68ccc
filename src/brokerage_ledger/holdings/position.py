from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict

@dataclass
class Position:
    """
    Quantity held and the total cost paid for it.
    Disposals always reduce the cost at the weighted average, never FIFO/LIFO.
    """
    quantity: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")

    @property
    def average_cost(self) -> Decimal:
        if self.quantity == 0:
            return Decimal("0")
        return self.total_cost / self.quantity

    def buy(self, quantity: Decimal, cost: Decimal):
        self.quantity += quantity
        self.total_cost += cost

    def sell(self, quantity: Decimal):
        """
        Remove shares at the current average cost.
        Callers must check the quantity is available first.
        """
        average = self.average_cost
        self.quantity -= quantity
        self.total_cost -= average * quantity

    def split(self, new_count: int, old_count: int):
        """Scale the quantity. Total cost is unchanged so the average scales inversely."""
        # Multiply first so exact results stay exact
        self.quantity = self.quantity * new_count / old_count

    def to_dict(self):
        return {
            "quantity": str(self.quantity),
            "total_cost": str(self.total_cost),
            "average_cost": str(self.average_cost),
        }

@dataclass
class YearStats:
    # Both in GBP
    realized_gain: Decimal = Decimal("0")
    disposed: Decimal = Decimal("0")

    def to_dict(self):
        return {
            "realized_gain": str(self.realized_gain),
            "disposed": str(self.disposed),
        }

@dataclass
class Pool:
    """
    Open position of one security in one bucket (taxable or CGT exempt),
    tracked in the trade currency and in GBP at transaction time rates.
    """
    base: Position = field(default_factory=Position)
    gbp: Position = field(default_factory=Position)
    # Tax year label -> stats. GBP only since CGT is GBP denominated.
    year_stats: Dict[str, YearStats] = field(default_factory=dict)

    def stats_for(self, tax_year: str) -> YearStats:
        if tax_year not in self.year_stats:
            self.year_stats[tax_year] = YearStats()
        return self.year_stats[tax_year]

    def split(self, new_count: int, old_count: int):
        self.base.split(new_count, old_count)
        self.gbp.split(new_count, old_count)

    def to_dict(self):
        return {
            "base": self.base.to_dict(),
            "gbp": self.gbp.to_dict(),
            "year_stats": {year: s.to_dict() for year, s in sorted(self.year_stats.items())},
        }
