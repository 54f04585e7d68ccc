"""
Tests for the CLI module.

Runs main() end to end on a small transactions file written to tmp_path.
"""
import json
import pytest
from decimal import Decimal

from brokerage_ledger import cli
from brokerage_ledger.cli import build_parser, main
from brokerage_ledger.models import TransactionType
from brokerage_ledger.records import write_records

T = TransactionType


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    # Leave pytest's log capture in place
    monkeypatch.setattr(cli, "configure_logging", lambda level=None: None)


@pytest.fixture
def transactions(tmp_path, mk_record, gia):
    records = [
        mk_record("2023-06-01 09:00:00", gia, T.CASH_IN, "GBP", "2000", "1"),
        mk_record("2023-06-02 09:00:00", gia, T.BUY, "VOD", "100", "10", name="Vodafone"),
        mk_record("2023-08-01 09:00:00", gia, T.SELL, "VOD", "100", "12", name="Vodafone"),
    ]
    path = tmp_path / "transactions.csv"
    write_records(records, path)
    return path


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args(["tx.csv"])
        assert args.transactions == "tx.csv"
        assert args.strict is True
        assert not (args.accounts or args.holdings or args.cgt or args.json)

    def test_lenient_flag(self):
        args = build_parser().parse_args(["tx.csv", "--lenient", "--cgt"])
        assert args.strict is False
        assert args.cgt is True


class TestMain:

    def test_json_output(self, transactions, tmp_path, capsys):
        code = main([str(transactions), "--json", "--data-dir", str(tmp_path / "meta")])
        assert code == 0

        payload = json.loads(capsys.readouterr().out)
        assert set(payload) == {"accounts", "holdings", "cgt"}

        gia = payload["accounts"]["GIA"]
        assert [(p["ticker"], Decimal(p["quantity"])) for p in gia] == [("GBP", Decimal("2200"))]

        vod = payload["holdings"]["VOD"]
        assert Decimal(vod["taxable"]["year_stats"]["2023-24"]["realized_gain"]) == Decimal("200")
        assert Decimal(vod["taxable"]["gbp"]["quantity"]) == 0
        assert vod["events"][0]["match_type"] == "POOL"

        assert Decimal(payload["cgt"]["2023-24"]["total_gain"]) == Decimal("200")

    def test_only_requested_sections(self, transactions, tmp_path, capsys):
        main([str(transactions), "--json", "--cgt", "--data-dir", str(tmp_path / "meta")])
        payload = json.loads(capsys.readouterr().out)
        assert list(payload) == ["cgt"]

    def test_metadata_is_flushed(self, transactions, tmp_path):
        meta = tmp_path / "meta"
        main([str(transactions), "--json", "--data-dir", str(meta)])

        symbols = json.loads((meta / "symbols_db.json").read_text())
        assert symbols["symbols"]["VOD"]["names"] == ["Vodafone"]
        assert symbols["symbols"]["VOD"]["currency"] == "GBP"

    def test_tables_output(self, transactions, tmp_path, capsys):
        code = main([str(transactions), "--debug-trace", "--data-dir", str(tmp_path / "meta")])
        assert code == 0
        out = capsys.readouterr().out
        assert "Tax year 2023-24" in out
        assert "****** Ticker = VOD ******" in out

    def test_error_exit_code(self, tmp_path, mk_record, gia, capsys):
        path = tmp_path / "transactions.csv"
        write_records([mk_record("2023-08-01 09:00:00", gia, T.SELL, "VOD", "100", "12", name="Vodafone")], path)

        code = main([str(path), "--cgt", "--data-dir", str(tmp_path / "meta")])
        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_lenient_reports_and_continues(self, tmp_path, mk_record, gia, capsys):
        path = tmp_path / "transactions.csv"
        write_records([
            mk_record("2023-06-02 09:00:00", gia, T.TRANSFER_IN, "BP", "10", "5", name="BP"),
            mk_record("2023-08-01 09:00:00", gia, T.SELL, "VOD", "100", "12", name="Vodafone"),
        ], path)

        code = main([str(path), "--cgt", "--lenient", "--json", "--data-dir", str(tmp_path / "meta")])
        assert code == 0
        captured = capsys.readouterr()
        assert "FAILED" in captured.err
        assert "VOD" in captured.err
        # The year was seen before the ticker failed, it is reported empty
        assert json.loads(captured.out)["cgt"]["2023-24"]["rows"] == []
