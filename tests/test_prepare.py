import pytest
from datetime import date
from decimal import Decimal

from brokerage_ledger.exceptions import MathsMismatchError, SymbolResolutionError, WithholdingTaxError
from brokerage_ledger.models import Currency, GLOBAL_ACCOUNT, TransactionType
from brokerage_ledger.records import apply_renames, net_withholding_tax, prepare_records, validate_and_enrich

T = TransactionType


class TestValidateAndEnrich:

    def test_pence_become_pounds(self, mk_record, gia, store):
        r = mk_record("2023-01-01 09:00:00", gia, T.BUY, "VOD", "10", "1000",
                      currency=Currency.GBX, rate="0.01")
        out = validate_and_enrich(r, store)

        assert out.currency == Currency.GBP
        assert out.price == Decimal("10")
        assert out.exchange_rate == Decimal("1")
        assert out.total == Decimal("100")
        # Original untouched
        assert r.currency == Currency.GBX
        assert store.symbols.symbols["VOD"].currency == "GBP"

    def test_maths_mismatch(self, mk_record, gia, store):
        r = mk_record("2023-01-01 09:00:00", gia, T.BUY, "X", "10", "10", total="101")
        with pytest.raises(MathsMismatchError, match="want: 100 got: 101"):
            validate_and_enrich(r, store)

    def test_maths_within_tolerance(self, mk_record, gia, store):
        r = mk_record("2023-01-01 09:00:00", gia, T.BUY, "X", "10", "10", total="100.05")
        validate_and_enrich(r, store)

    @pytest.mark.parametrize("action,total", [(T.BUY, "105"), (T.SELL, "95")])
    def test_commission_direction(self, mk_record, gia, store, action, total):
        r = mk_record("2023-01-01 09:00:00", gia, action, "X", "10", "10", total=total, commission="5")
        validate_and_enrich(r, store)

    def test_currency_ticker_names_itself(self, mk_record, gia, store):
        r = mk_record("2023-01-01 09:00:00", gia, T.CASH_IN, "GBP", "100", "1", name="")
        assert validate_and_enrich(r, store).name == "GBP"

    def test_foreign_rate_is_learned(self, mk_record, ibkr, store):
        r = mk_record("2023-01-01 09:00:00", ibkr, T.BUY, "AAPL", "10", "100", name="Apple",
                      currency=Currency.USD, rate="0.8")
        validate_and_enrich(r, store)
        assert store.forex.get_forex(date(2023, 1, 1), Currency.USD) == Decimal("0.8")
        assert store.symbols.symbols["AAPL"].currency == "USD"

    def test_missing_name_without_decider(self, mk_record, gia, store):
        r = mk_record("2023-01-01 09:00:00", gia, T.BUY, "XYZ", "1", "1", name="")
        with pytest.raises(SymbolResolutionError):
            validate_and_enrich(r, store)


class TestRenames:

    def test_records_use_latest_ticker(self, mk_record, gia, store):
        records = [
            mk_record("2021-01-01 09:00:00", gia, T.BUY, "FB", "10", "100", name="Facebook"),
            mk_record("2022-06-09 00:00:00", GLOBAL_ACCOUNT, T.RENAME, "FB", description="META"),
            mk_record("2022-07-01 09:00:00", gia, T.SELL, "META", "10", "120", name="Meta Platforms"),
        ]
        out = prepare_records(records, store)

        assert [r.action for r in out] == [T.BUY, T.SELL]
        assert {r.ticker for r in out} == {"META"}
        assert {r.name for r in out} == {"Meta Platforms"}
        assert store.symbols.most_recent_ticker("FB") == "META"

    def test_rename_registered_even_after_use(self, mk_record, gia, store):
        # Renames apply to the whole stream, not only to later records
        records = [
            mk_record("2021-01-01 09:00:00", gia, T.BUY, "A", "1", "1"),
            mk_record("2021-01-02 00:00:00", GLOBAL_ACCOUNT, T.RENAME, "B", description="C"),
            mk_record("2021-01-03 00:00:00", GLOBAL_ACCOUNT, T.RENAME, "A", description="B"),
        ]
        out = apply_renames(records, store)
        assert [r.ticker for r in out] == ["C"]


class TestWithholdingTax:

    def _dividend(self, mk_record, account, qty, when="2023-05-01 09:00:00"):
        return mk_record(when, account, T.DIVIDEND, "AAPL", qty, "1", name="Apple",
                         currency=Currency.USD, rate="0.8")

    def _tax(self, mk_record, account, qty, when="2023-05-01 12:00:00"):
        return mk_record(when, account, T.WITHHOLDING_TAX, "AAPL", qty, "1", name="Apple",
                         currency=Currency.USD, rate="0.8")

    def test_tax_is_netted(self, mk_record, ibkr):
        records = [self._dividend(mk_record, ibkr, "10"), self._tax(mk_record, ibkr, "1.5")]
        out = net_withholding_tax(records)

        assert len(out) == 1
        dividend = out[0]
        assert dividend.share_count == Decimal("8.5")
        assert dividend.total == Decimal("6.8")
        assert dividend.description == "tax of 1.5 ;"
        assert records[0].share_count == Decimal("10")

    def test_fully_taxed_dividend_is_dropped(self, mk_record, ibkr):
        records = [self._dividend(mk_record, ibkr, "10"), self._tax(mk_record, ibkr, "10")]
        assert net_withholding_tax(records) == []

    def test_tax_spread_over_dividends(self, mk_record, ibkr):
        records = [
            self._dividend(mk_record, ibkr, "1", when="2023-05-01 08:00:00"),
            self._dividend(mk_record, ibkr, "10", when="2023-05-01 09:00:00"),
            self._tax(mk_record, ibkr, "3"),
        ]
        out = net_withholding_tax(records)
        assert [r.share_count for r in out] == [Decimal("8")]

    def test_tax_on_another_day_fails(self, mk_record, ibkr):
        records = [
            self._dividend(mk_record, ibkr, "10"),
            self._tax(mk_record, ibkr, "1", when="2023-05-02 09:00:00"),
        ]
        with pytest.raises(WithholdingTaxError, match="left = 1"):
            net_withholding_tax(records)

    def test_other_records_pass_through_in_order(self, mk_record, ibkr):
        records = [
            mk_record("2023-05-02 09:00:00", ibkr, T.CASH_IN, "GBP", "5", "1"),
            self._dividend(mk_record, ibkr, "10"),
        ]
        out = net_withholding_tax(records)
        assert [r.action for r in out] == [T.DIVIDEND, T.CASH_IN]


class TestPrepareRecords:

    def test_sorted_and_not_mutated(self, mk_record, gia, store):
        records = [
            mk_record("2023-01-02 09:00:00", gia, T.BUY, "VOD", "10", "1000",
                      currency=Currency.GBX, rate="0.01", name="Vodafone"),
            mk_record("2023-01-01 09:00:00", gia, T.CASH_IN, "GBP", "100", "1"),
        ]
        before = [r.to_dict() for r in records]
        out = prepare_records(records, store)

        assert [r.action for r in out] == [T.CASH_IN, T.BUY]
        assert out[1].currency == Currency.GBP
        assert [r.to_dict() for r in records] == before
