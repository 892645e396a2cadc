"""
Worker settings read from the environment.

Call load_env() first if a .env file should be honoured.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

# Salesforce sObject Collections accept at most 200 records per call
MAX_CHUNK_SIZE = 200

DEFAULT_DISCOUNT_RATES = {
    "US": Decimal("0.10"),
    "EU": Decimal("0.15"),
    "APAC": Decimal("0.05"),
}


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path("data/quotegen.db")
    api_version: str = "62.0"
    chunk_size: int = MAX_CHUNK_SIZE
    pool_size: int = 20
    discount_region: str = "US"
    progress_event: str = "JobProgress__e"
    http_timeout: float = 30.0
    log_level: str = "INFO"
    discount_rates: Dict[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_DISCOUNT_RATES))


def _int_env(name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got {value}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def get_settings() -> Settings:
    """
    Build Settings from environment variables.

    Raises:
        ValueError: If a numeric variable is malformed or out of range
    """
    return Settings(
        db_path=Path(os.getenv("QUOTEGEN_DB_PATH", "data/quotegen.db")),
        api_version=os.getenv("SALESFORCE_API_VERSION", "62.0"),
        chunk_size=_int_env("QUOTEGEN_CHUNK_SIZE", MAX_CHUNK_SIZE, maximum=MAX_CHUNK_SIZE),
        pool_size=_int_env("QUOTEGEN_POOL_SIZE", 20),
        discount_region=os.getenv("QUOTEGEN_DISCOUNT_REGION", "US").strip().upper() or "US",
        progress_event=os.getenv("QUOTEGEN_PROGRESS_EVENT", "JobProgress__e"),
        http_timeout=_float_env("QUOTEGEN_HTTP_TIMEOUT", 30.0),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
