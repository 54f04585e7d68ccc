from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    # App
    ENV: str = "development"
    EXECUTION_MODE: str = Field("interactive", description="interactive prompts for unresolved symbols, server fails instead")

    # Logging
    LOG_LEVEL: str = "INFO"

    # Metadata store
    DATA_DIR: str = "outputs"
    SYMBOLS_DB_FILENAME: str = "symbols_db.json"
    FOREX_DB_FILENAME: str = "fx_db.json"

    # Accounting
    BED_AND_BREAKFAST_DAYS: int = Field(30, description="Days after a disposal in which repurchases are matched")
    MATHS_TOLERANCE_GBP: Decimal = Decimal("0.1")
    QUANTITY_EPSILON: Decimal = Decimal("0.00001")

    model_config = {"env_file": ".env", "extra": "ignore", "env_prefix": "LEDGER_"}

    @property
    def is_server_mode(self) -> bool:
        return self.EXECUTION_MODE.lower() == "server"

settings = Settings()
