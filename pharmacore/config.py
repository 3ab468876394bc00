from __future__ import annotations

import json
import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "PHARMACORE_DATA_DIR"
ENV_MARKUP = "PHARMACORE_MARKUP"
ENV_VAT_RATE = "PHARMACORE_VAT_RATE"
ENV_CURRENCY = "PHARMACORE_CURRENCY"
ENV_EXPIRY_DAYS = "PHARMACORE_EXPIRY_WARNING_DAYS"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "KES"
    markup_multiplier: Decimal = Decimal("1.33")
    default_vat_rate: Decimal = Decimal("16")
    expiry_warning_days: int = 30


def _default_data_dir() -> Path:
    return Path.home() / ".pharmacore"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> Path:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = _default_data_dir() / CONFIG_FILE_NAME
    cfg.parent.mkdir(parents=True, exist_ok=True)
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    get_settings.cache_clear()
    return data_dir


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return Decimal(raw.strip())
    except ArithmeticError:
        raise ValueError(f"{name} must be a number, got {raw!r}.")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be a whole number, got {raw!r}.")


def load_settings(data_dir: Optional[str] = None) -> Settings:
    # Priority order:
    # 1) Explicit argument
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if data_dir:
        resolved = Path(data_dir).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        resolved = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        resolved = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    resolved.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=resolved,
        db_path=resolved / "pharmacy.db",
        currency=os.getenv(ENV_CURRENCY, "KES"),
        markup_multiplier=_env_decimal(ENV_MARKUP, Decimal("1.33")),
        default_vat_rate=_env_decimal(ENV_VAT_RATE, Decimal("16")),
        expiry_warning_days=_env_int(ENV_EXPIRY_DAYS, 30),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
