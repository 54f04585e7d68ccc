from enum import Enum

class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SPLIT = "SPLIT"
    RENAME = "RENAME"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    CASH_IN = "CASH_IN"
    CASH_OUT = "CASH_OUT"
    DIVIDEND = "DIVIDEND"
    WITHHOLDING_TAX = "WITHHOLDING_TAX"

    @classmethod
    def parse(cls, value: str) -> "TransactionType":
        key = value.strip().upper().replace(" ", "_")
        # Older exports squash the underscore and misspell withholding
        key = _LEGACY_NAMES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"unknown transaction type: {value!r}")

    @property
    def is_metadata_event(self) -> bool:
        return self in (TransactionType.SPLIT, TransactionType.RENAME)

    @property
    def is_cash_event(self) -> bool:
        return self in (TransactionType.CASH_IN, TransactionType.CASH_OUT)

    @property
    def is_dividend(self) -> bool:
        return self in (TransactionType.DIVIDEND, TransactionType.WITHHOLDING_TAX)

_LEGACY_NAMES = {
    "TRANSFERIN": "TRANSFER_IN",
    "TRANSFEROUT": "TRANSFER_OUT",
    "CASHIN": "CASH_IN",
    "CASHOUT": "CASH_OUT",
    "WITHHOLDINGTAX": "WITHHOLDING_TAX",
    "WITHOLDINGTAX": "WITHHOLDING_TAX",
}

# On a single day, records are processed in this order: splits before trades are
# valued, deposits before withdrawals are checked.
TRANSACTION_ORDER = {
    TransactionType.RENAME: 0,
    TransactionType.SPLIT: 1,
    TransactionType.TRANSFER_OUT: 2,
    TransactionType.TRANSFER_IN: 3,
    TransactionType.CASH_IN: 4,
    TransactionType.DIVIDEND: 5,
    TransactionType.WITHHOLDING_TAX: 6,
    TransactionType.SELL: 7,
    TransactionType.BUY: 8,
    TransactionType.CASH_OUT: 9,
}

class Currency(str, Enum):
    GBP = "GBP"
    GBX = "GBX"                       # 1 penny, 100 GBX = 1 GBP
    USD = "USD"
    INR = "INR"
    EUR = "EUR"
    CHF = "CHF"
    MULTIPLE = "*"                    # Account holding several currency sub-positions

    @classmethod
    def parse(cls, value: str) -> "Currency":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"invalid currency: {value!r}")

    @classmethod
    def is_code(cls, value: str) -> bool:
        return value.upper() in {c.value for c in cls if c != cls.MULTIPLE}

class Funding(str, Enum):
    """Which cash position pays for a buy (or receives a sell)."""
    AUTO = "AUTO"                     # Decided by the account currency
    GBP = "GBP"                       # Currency conversion paid/settled in GBP
    SEPARATE = "SEPARATE"             # Other side is its own record, nothing to infer

class AssetType(str, Enum):
    UNKNOWN = ""
    EQUITY = "EQUITY"
    FOREX = "FOREX"
    ETF = "ETF"
