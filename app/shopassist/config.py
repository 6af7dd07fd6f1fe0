"""
Configuration for the storefront assistant client.
Reads Streamlit secrets when running inside Streamlit, otherwise the
environment (with a local .env loaded for development).
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_STORE_PATH = Path.home() / ".shopassist" / "state.json"


def get_secret(key: str, default=None):
    """Get secret from Streamlit secrets or environment variables."""
    try:
        import streamlit as st

        if hasattr(st, "secrets"):
            try:
                if key in st.secrets:
                    return st.secrets[key]
            except Exception:
                # no secrets.toml outside a Streamlit run
                pass
    except ImportError:
        pass

    return os.getenv(key, default)


@dataclass(frozen=True)
class AppConfig:
    api_base_url: str = DEFAULT_API_URL
    request_timeout: float = DEFAULT_TIMEOUT_S
    store_path: Path = DEFAULT_STORE_PATH
    log_level: str = "INFO"


def load_config() -> AppConfig:
    timeout = get_secret("SHOPASSIST_TIMEOUT")
    store = get_secret("SHOPASSIST_STORE")
    return AppConfig(
        api_base_url=str(get_secret("SHOPASSIST_API_URL", DEFAULT_API_URL)).rstrip("/"),
        request_timeout=float(timeout) if timeout else DEFAULT_TIMEOUT_S,
        store_path=Path(store).expanduser() if store else DEFAULT_STORE_PATH,
        log_level=str(get_secret("SHOPASSIST_LOG_LEVEL", "INFO")).upper(),
    )
