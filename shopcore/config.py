import os
from dataclasses import dataclass, replace
from pathlib import Path
import json
from typing import Dict, List, Optional

from dotenv import load_dotenv


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    store_base_url: str
    currency: str
    default_locale: str = "en"
    count_timeout_seconds: float = 10.0
    low_stock_threshold: int = 10
    problem_base_url: str = "https://api.shop.am/problems"


ALLOWED_HOT_KEYS = {"CURRENCY", "DEFAULT_LOCALE"}
SENSITIVE_KEYS = {"DATABASE_URL", "SECRET_KEY"}


def validate_currency(value: Optional[str]) -> str:
    v = (value or "AMD").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def _load_settings_file() -> dict:
    path = Path(__file__).resolve().parents[1] / "data" / "settings.json"
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"settings.json is not valid JSON: {exc}") from exc
    return payload if isinstance(payload, dict) else {}


def _setting(settings: dict, key: str, default: str) -> str:
    value = settings.get(key)
    if value is None or value == "":
        value = os.getenv(key)
    if value is None or value == "":
        return default
    return str(value)


def load_env() -> AppConfig:
    # data/settings.json wins, then the process environment / .env
    load_dotenv()
    s = _load_settings_file()
    return AppConfig(
        database_url=_setting(s, "DATABASE_URL", "sqlite:///data/app.db"),
        secret_key=_setting(s, "SECRET_KEY", "dev_secret"),
        log_level=_setting(s, "LOG_LEVEL", "INFO").upper(),
        store_base_url=_setting(s, "STORE_BASE_URL", "http://127.0.0.1:5000").rstrip("/"),
        currency=validate_currency(_setting(s, "CURRENCY", "AMD")),
        default_locale=_setting(s, "DEFAULT_LOCALE", "en"),
        count_timeout_seconds=float(_setting(s, "COUNT_TIMEOUT_SECONDS", "10")),
        low_stock_threshold=int(_setting(s, "LOW_STOCK_THRESHOLD", "10")),
        problem_base_url=_setting(s, "PROBLEM_BASE_URL", "https://api.shop.am/problems").rstrip("/"),
    )


def refresh_non_sensitive(overrides: Dict[str, str], current: AppConfig) -> AppConfig:
    updates = {k: v for k, v in (overrides or {}).items() if k in ALLOWED_HOT_KEYS}
    return replace(
        current,
        currency=validate_currency(updates.get("CURRENCY", current.currency)),
        default_locale=(updates.get("DEFAULT_LOCALE") or current.default_locale),
    )


def requires_restart(changed_keys: List[str]) -> bool:
    if not changed_keys:
        return False
    return any(k in SENSITIVE_KEYS for k in changed_keys)
