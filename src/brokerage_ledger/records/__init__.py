from brokerage_ledger.records.prepare import (
    prepare_records, validate_and_enrich, apply_renames, net_withholding_tax,
)
from brokerage_ledger.records.csv_io import read_records, write_records

__all__ = [
    "prepare_records",
    "validate_and_enrich",
    "apply_renames",
    "net_withholding_tax",
    "read_records",
    "write_records",
]
