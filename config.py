import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        client_dir: Path,
        log_level: str,
        port: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.client_dir = client_dir
        self.log_level = log_level
        self.port = port


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "Europe/Oslo")
    client_dir = Path(os.getenv("BUDGET_CLIENT_DIR", "client/dist"))
    log_level = os.getenv("BUDGET_LOG_LEVEL", "INFO").upper()
    port = int(os.getenv("BUDGET_PORT", "4173"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        client_dir=client_dir,
        log_level=log_level,
        port=port,
    )
