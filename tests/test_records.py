import pytest
from datetime import datetime
from decimal import Decimal

from brokerage_ledger.exceptions import DataIntegrityError
from brokerage_ledger.models import Currency, Funding, TransactionType
from brokerage_ledger.records import read_records, write_records

LEGACY_CSV = """Timestamp,Account.Name,Account.Currency,Account.CGTExempt,Action,Ticker,Name,Quantity,Price,Currency,ExchangeRate,Commission,Total,Description
2023-01-01 09:30:00,ISA,GBP,true,CashIn,GBP,GBP,1000,1,GBP,1,0,1000,
2023-01-02 10:00:00,IBKR,*,false,WitholdingTax,AAPL,Apple Inc,1.5,1,USD,0.8,0,1.2,
2023-01-03 00:00:00,*,*,false,Split,AAPL,,0,0,,,,,4 FOR 1
"""


class TestReadRecords:

    def test_reads_legacy_file(self, tmp_path):
        path = tmp_path / "transactions.csv"
        path.write_text(LEGACY_CSV)
        records = read_records(path)

        cash, tax, split = records
        assert cash.timestamp == datetime(2023, 1, 1, 9, 30)
        assert cash.account.cgt_exempt is True
        assert cash.action == TransactionType.CASH_IN
        assert cash.total == Decimal("1000")
        assert cash.funding == Funding.AUTO

        assert tax.action == TransactionType.WITHHOLDING_TAX
        assert tax.account.currency == Currency.MULTIPLE
        assert tax.exchange_rate == Decimal("0.8")

        assert split.account.is_global
        assert split.currency == Currency.GBP
        assert split.exchange_rate == Decimal("1")
        assert split.split_ratio() == (4, 1)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("Timestamp,Action\n2023-01-01 00:00:00,Buy\n")
        with pytest.raises(DataIntegrityError, match="missing columns"):
            read_records(path)

    def test_bad_number(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text(LEGACY_CSV.replace(",1000,1,GBP,1,0,1000,", ",lots,1,GBP,1,0,1000,"))
        with pytest.raises(DataIntegrityError, match="Quantity"):
            read_records(path)

    def test_unknown_action(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text(LEGACY_CSV.replace("CashIn", "Teleport"))
        with pytest.raises(DataIntegrityError, match="Teleport"):
            read_records(path)


class TestWriteRecords:

    def test_written_file_reads_back(self, tmp_path, mk_record, ibkr):
        records = [
            mk_record("2023-01-02 09:00:00", ibkr, TransactionType.BUY, "USD", "1250", "1",
                      currency=Currency.USD, rate="0.8", funding=Funding.GBP),
        ]
        path = tmp_path / "out" / "transactions.csv"
        write_records(records, path)

        assert read_records(path) == records
