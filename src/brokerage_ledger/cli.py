import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table
from rich.theme import Theme
from rich import box

from brokerage_ledger.config import settings
from brokerage_ledger.exceptions import LedgerError
from brokerage_ledger.holdings import (
    Holding, LedgerResult, cgt_summary, compute_account_ledgers, compute_holdings, debug_narrative,
)
from brokerage_ledger.holdings.report import CGTYearReport
from brokerage_ledger.records import prepare_records, read_records
from brokerage_ledger.symbols import MetadataStore

logger = logging.getLogger(__name__)

custom_theme = Theme({
    "brand": "bold blue",
    "header": "bold white",
    "status.success": "green",
    "status.warning": "yellow",
    "status.error": "red",
    "gain": "green",
    "loss": "red",
    "muted": "dim white",
})

IS_TTY = sys.stdout.isatty()

console = Console(theme=custom_theme, no_color=not IS_TTY)
err_console = Console(theme=custom_theme, stderr=True, no_color=not IS_TTY)

def configure_logging(level: Optional[str] = None):
    level = (level or settings.LOG_LEVEL).upper()
    if IS_TTY:
        handlers = [RichHandler(console=err_console, show_path=False)]
        fmt = "%(message)s"
    else:
        handlers = [logging.StreamHandler(sys.stderr)]
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)

def prompt_decider(question: str) -> Optional[str]:
    """Asks a human, unless running as a server where nobody is there to answer."""
    if settings.is_server_mode or not IS_TTY:
        return None
    answer = Prompt.ask(f"[status.warning]{question}[/]", console=console, default="")
    return answer.strip() or None

def _money(value) -> str:
    return f"{value:,.2f}"

def _gain(value) -> str:
    style = "gain" if value >= 0 else "loss"
    return f"[{style}]{value:,.2f}[/]"

def accounts_table(ledgers: LedgerResult) -> Table:
    table = Table(title="Account Holdings", box=box.SIMPLE_HEAD, header_style="header")
    table.add_column("Account")
    table.add_column("Currency")
    table.add_column("Ticker")
    table.add_column("Quantity", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Total Cost", justify="right")
    for account in sorted(ledgers.ledgers, key=lambda a: a.name):
        for ticker, p in ledgers[account].open_positions().items():
            table.add_row(
                account.name, account.currency.value, ticker,
                f"{p.quantity:,.4f}", _money(p.average_cost), _money(p.total_cost),
            )
    return table

def holdings_table(holdings: Dict[str, Holding]) -> Table:
    table = Table(title="Current Holdings", box=box.SIMPLE_HEAD, header_style="header")
    for column in ("Ticker", "Taxable", "Currency"):
        table.add_column(column)
    for column in ("Quantity", "Avg Price", "Total Cost", "Avg Price (GBP)", "Total Cost (GBP)"):
        table.add_column(column, justify="right")

    total_cost_gbp = 0
    for ticker in sorted(holdings):
        h = holdings[ticker]
        for label, exempt in (("Y", False), ("N", True)):
            pool = h.pool(exempt)
            if abs(pool.gbp.quantity) <= settings.QUANTITY_EPSILON:
                continue
            table.add_row(
                ticker, label, h.currency.value,
                f"{pool.base.quantity:,.4f}",
                _money(pool.base.average_cost), _money(pool.base.total_cost),
                _money(pool.gbp.average_cost), _money(pool.gbp.total_cost),
            )
            total_cost_gbp += pool.gbp.total_cost
    table.add_section()
    table.add_row("TOTAL", "", "", "", "", "", "", _money(total_cost_gbp))
    return table

def cgt_table(report: CGTYearReport) -> Table:
    table = Table(title=f"Tax year {report.tax_year}", box=box.SIMPLE_HEAD, header_style="header")
    table.add_column("Ticker")
    table.add_column("Disposed (GBP)", justify="right")
    table.add_column("Gain (GBP)", justify="right")
    for row in sorted(report.rows, key=lambda r: r.ticker):
        table.add_row(row.ticker, _money(row.disposed), _gain(row.realized_gain))
    table.add_section()
    table.add_row("TOTAL", _money(report.total_disposed), _gain(report.total_gain))
    return table

def run(args: argparse.Namespace) -> int:
    data_dir = Path(args.data_dir or settings.DATA_DIR)
    store = MetadataStore.open(data_dir)
    try:
        raw = read_records(args.transactions)
        logger.info(f"Read {len(raw)} records from {args.transactions}")
        records = prepare_records(raw, store, decide=prompt_decider)

        show_all = not (args.accounts or args.holdings or args.cgt)
        payload = {}

        if args.accounts or show_all:
            ledgers = compute_account_ledgers(records, strict=args.strict)
            payload["accounts"] = {a.name: ledgers[a].snapshot() for a in ledgers.ledgers}
            if not args.json:
                console.print(accounts_table(ledgers))
            _report_failures({a.name: e for a, e in ledgers.failures.items()})

        if args.holdings or args.cgt or show_all:
            result = compute_holdings(records, tax_years=store.tax_years,
                                      fx_is_asset=args.fx_is_asset, strict=args.strict)
            _report_failures(result.failures)
            if args.holdings or show_all:
                payload["holdings"] = {t: h.to_dict() for t, h in result.holdings.items()}
                if not args.json:
                    console.print(holdings_table(result.holdings))
            if args.cgt or show_all:
                reports = cgt_summary(result.holdings, store.tax_years)
                payload["cgt"] = {year: r.to_dict() for year, r in reports.items()}
                if not args.json:
                    for report in reports.values():
                        console.print(cgt_table(report))
            if args.debug_trace and not args.json:
                console.print(debug_narrative(result.holdings), highlight=False, markup=False)

        if args.json:
            print(json.dumps(payload, indent=2))
    finally:
        store.flush(data_dir)
    return 0

def _report_failures(failures: Dict[str, Exception]):
    for name, error in failures.items():
        err_console.print(f"[status.error]FAILED[/] {escape(name)}: {escape(str(error))}", highlight=False)

PROGRAM_DESCRIPTION = """
Computes account ledgers, open positions and UK capital gains from a
normalised transactions CSV.

Examples:
  %(prog)s transactions.csv                 Accounts, holdings and CGT
  %(prog)s transactions.csv --cgt           CGT per tax year only
  %(prog)s transactions.csv --json          Machine readable output
"""

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brokerage-ledger",
        description=PROGRAM_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("transactions", help="Normalised transactions CSV")
    parser.add_argument("--data-dir", "-d", help=f"Metadata directory (default: {settings.DATA_DIR})")
    parser.add_argument("--accounts", action="store_true", help="Show account ledgers")
    parser.add_argument("--holdings", action="store_true", help="Show open positions per ticker")
    parser.add_argument("--cgt", action="store_true", help="Show realized gains per tax year")
    parser.add_argument("--debug-trace", action="store_true", help="Print the matching trace for every ticker")
    parser.add_argument("--fx-is-asset", action="store_true", help="Treat currency conversions as assets")
    parser.add_argument(
        "--lenient", dest="strict", action="store_false",
        help="Skip and report failing tickers/accounts instead of aborting",
    )
    parser.add_argument("--json", action="store_true", help="Output results as JSON to stdout")
    parser.add_argument("--log-level", help=f"Logging level (default: {settings.LOG_LEVEL})")
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return run(args)
    except LedgerError as e:
        err_console.print(f"[status.error]Error:[/] {escape(str(e))}", highlight=False)
        return 1

if __name__ == "__main__":
    sys.exit(main())
