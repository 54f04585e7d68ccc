import json
import logging
from pathlib import Path
from typing import Optional, Union

from brokerage_ledger.config import settings
from brokerage_ledger.holdings.taxyear import TaxYearResolver
from brokerage_ledger.symbols.forex import ForexTable
from brokerage_ledger.symbols.table import Symbol, SymbolTable

logger = logging.getLogger(__name__)

class MetadataStore:
    """
    Per-run metadata: symbol names and renames, forex rates and tax years.
    Built once, loaded from disk, passed to whoever needs it and flushed at
    the end. It is the caller's job to call flush() to persist changes.
    """

    def __init__(self, symbols: Optional[SymbolTable] = None, forex: Optional[ForexTable] = None,
                 tax_years: Optional[TaxYearResolver] = None):
        self.symbols = symbols if symbols is not None else SymbolTable()
        self.forex = forex if forex is not None else ForexTable()
        self.tax_years = tax_years if tax_years is not None else TaxYearResolver()

    @classmethod
    def open(cls, data_dir: Union[str, Path, None] = None) -> "MetadataStore":
        store = cls()
        store.load(data_dir)
        return store

    @staticmethod
    def _paths(data_dir: Union[str, Path, None]):
        root = Path(data_dir or settings.DATA_DIR)
        return root / settings.SYMBOLS_DB_FILENAME, root / settings.FOREX_DB_FILENAME

    def load(self, data_dir: Union[str, Path, None] = None):
        """Merges the persisted state into this store. Safe to call repeatedly."""
        symbols_path, forex_path = self._paths(data_dir)

        data = self._read_json(symbols_path)
        if data is not None:
            # Older files are a bare ticker -> symbol mapping
            if "symbols" not in data:
                data = {"symbols": data, "renames": {}}
            symbols = {t: Symbol.from_dict(s) for t, s in (data.get("symbols") or {}).items()}
            self.symbols.merge(symbols, data.get("renames") or {})
            logger.info(f"Loaded {len(symbols)} symbols from {symbols_path}")

        data = self._read_json(forex_path)
        if data is not None:
            self.forex.merge(data)
            logger.info(f"Loaded forex rates for {len(data)} days from {forex_path}")

    def flush(self, data_dir: Union[str, Path, None] = None):
        symbols_path, forex_path = self._paths(data_dir)
        symbols_path.parent.mkdir(parents=True, exist_ok=True)

        symbols_payload = {
            "symbols": {t: s.to_dict() for t, s in sorted(self.symbols.symbols.items())},
            "renames": dict(sorted(self.symbols.renames.items())),
        }
        symbols_path.write_text(json.dumps(symbols_payload, indent=2))
        forex_path.write_text(json.dumps(self.forex.to_dict(), indent=2))
        logger.info(f"Flushed metadata store to {symbols_path.parent}")

    @staticmethod
    def _read_json(path: Path) -> Optional[dict]:
        if not path.exists():
            logger.warning(f"No metadata file at {path}, starting empty")
            return None
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Cannot read metadata file {path}: {e}")
            return None
