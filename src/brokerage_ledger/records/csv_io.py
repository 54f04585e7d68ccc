from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Union

from brokerage_ledger.exceptions import DataIntegrityError
from brokerage_ledger.models import Account, Currency, Funding, Record, TransactionType
from brokerage_ledger.models.domain import TIMESTAMP_FORMAT

HEADER = [
    "Timestamp",
    "Account.Name",
    "Account.Currency",
    "Account.CGTExempt",
    "Action",
    "Ticker",
    "Name",
    "Quantity",
    "Price",
    "Currency",
    "ExchangeRate",
    "Commission",
    "Total",
    "Description",
    "Funding",
]

# Funding is optional, older files predate it
REQUIRED_COLUMNS = HEADER[:-1]

def _decimal(row: Dict[str, str], column: str, default: str = "0") -> Decimal:
    raw = (row.get(column) or "").strip() or default
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise DataIntegrityError(f"cannot convert {raw!r} in column {column} to a number: {row}")

def row_to_record(row: Dict[str, str]) -> Record:
    try:
        account = Account(
            name=row["Account.Name"],
            currency=Currency.parse(row["Account.Currency"]),
            cgt_exempt=row["Account.CGTExempt"].strip().lower() in ("true", "1", "yes"),
        )
        timestamp = datetime.strptime(row["Timestamp"].strip(), TIMESTAMP_FORMAT)
        action = TransactionType.parse(row["Action"])
        currency = Currency.parse(row["Currency"]) if row["Currency"].strip() else Currency.GBP
        funding = Funding((row.get("Funding") or "AUTO").strip().upper())
    except (KeyError, ValueError) as e:
        raise DataIntegrityError(f"cannot parse row {row}: {e}")

    return Record(
        timestamp=timestamp,
        account=account,
        action=action,
        ticker=row["Ticker"].strip(),
        name=row["Name"].strip(),
        share_count=_decimal(row, "Quantity"),
        price=_decimal(row, "Price"),
        currency=currency,
        exchange_rate=_decimal(row, "ExchangeRate", default="1"),
        commission=_decimal(row, "Commission"),
        total=_decimal(row, "Total"),
        description=row["Description"].strip(),
        funding=funding,
    )

def record_to_row(r: Record) -> Dict[str, str]:
    return {
        "Timestamp": r.timestamp.strftime(TIMESTAMP_FORMAT),
        "Account.Name": r.account.name,
        "Account.Currency": r.account.currency.value,
        "Account.CGTExempt": "true" if r.account.cgt_exempt else "false",
        "Action": r.action.value,
        "Ticker": r.ticker,
        "Name": r.name,
        "Quantity": str(r.share_count),
        "Price": str(r.price),
        "Currency": r.currency.value,
        "ExchangeRate": str(r.exchange_rate),
        "Commission": str(r.commission),
        "Total": str(r.total),
        "Description": r.description,
        "Funding": r.funding.value,
    }

def read_records(path: Union[str, Path]) -> List[Record]:
    """
    Reads records from the normalised transactions CSV.
    """
    import pandas as pd

    df = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataIntegrityError(f"missing columns in {path}: {missing}")
    return [row_to_record(row) for row in df.to_dict(orient="records")]

def write_records(records: List[Record], path: Union[str, Path]) -> None:
    import pandas as pd

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame([record_to_row(r) for r in records], columns=HEADER).to_csv(path, index=False)
