"""
Configuration for the history reporter.

Credentials come from a YAML config file (with ${VAR} substitution) or, when no
config file is present, straight from the MEXC_API_KEY / MEXC_API_SECRET
environment variables. A local .env file is loaded first.
"""

from dataclasses import dataclass
from typing import Dict
from pathlib import Path
import os
import re
import yaml
from dotenv import load_dotenv

# Loaded configs, keyed by resolved file path
_CONFIG_CACHE: Dict[str, Dict] = {}

_ENV_PLACEHOLDER = re.compile(r"\$\{[^}]+\}")

DEFAULT_BASE_URL = "https://contract.mexc.com"

DEFAULT_REPORT_CONFIG: Dict = {
    "page_size": 100,
    "lookback_days": 90,
    "interval_minutes": 60,
    "log_dir": "./logs",
}


def _substitute_env_vars(value):
    """
    Recursively substitute environment variables in config values.

    Supports ${VAR_NAME} syntax. If the variable is not found, returns the original string.

    Args:
        value: Config value (can be dict, list, or string)

    Returns:
        Value with environment variables substituted
    """
    if isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    elif isinstance(value, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))  # Return original if not found

        return re.sub(r'\$\{([^}]+)\}', replace_env_var, value)
    else:
        return value


def reset_config_cache() -> None:
    """Forget every cached YAML config."""
    _CONFIG_CACHE.clear()


def load_yaml_config(config_file: str = None) -> Dict:
    """
    Load configuration from YAML file.

    Args:
        config_file: Path to config file (default: from CONFIG_FILE env var or config.prod.yaml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    # Determine config file: explicit arg > env var > default
    if config_file is None:
        config_file = os.getenv("CONFIG_FILE", "config.prod.yaml")

    config_path = Path(config_file)
    cache_key = str(config_path.resolve())
    if cache_key in _CONFIG_CACHE:
        return _CONFIG_CACHE[cache_key]

    # ${VAR} values may live in .env
    load_dotenv()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file '{config_file}' not found. "
            f"Please create it or check the CONFIG_FILE environment variable."
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Config file format error: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"Config file '{config_file}' must contain a mapping")

    config = _substitute_env_vars(config)

    _CONFIG_CACHE[cache_key] = config
    return config


def _load_optional_config(config_file: str = None) -> Dict:
    """Like load_yaml_config, but an absent file yields an empty config."""
    try:
        return load_yaml_config(config_file)
    except FileNotFoundError:
        return {}


@dataclass
class ExchangeConfig:
    """
    Exchange API configuration.

    Empty credentials are allowed; the exchange rejects the first signed request.
    """
    api_key: str = ""
    api_secret: str = ""
    base_url: str = DEFAULT_BASE_URL
    recv_window: int = 60000  # Milliseconds
    page_delay: float = 0.3  # Seconds between page requests
    timeout: float = 10.0

    def __post_init__(self):
        if self.recv_window <= 0:
            raise ValueError("recv_window must be positive")
        if self.page_delay < 0:
            raise ValueError("page_delay must not be negative")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        masked_key = "***" if self.api_key else ""
        return (
            f"ExchangeConfig(api_key={masked_key!r}, "
            f"base_url={self.base_url!r}, recv_window={self.recv_window}, "
            f"page_delay={self.page_delay}, timeout={self.timeout})"
        )


def _configured(value) -> str:
    """Config value as a string; unresolved ${VAR} placeholders count as unset."""
    if value is None:
        return ""
    value = str(value)
    if _ENV_PLACEHOLDER.search(value):
        return ""
    return value


def load_exchange_config(config_file: str = None) -> ExchangeConfig:
    """
    Build the exchange configuration.

    Values from the ``exchange`` section of the YAML config win; credentials fall
    back to MEXC_API_KEY / MEXC_API_SECRET.

    Args:
        config_file: Path to configuration file (optional)

    Returns:
        ExchangeConfig object
    """
    load_dotenv()
    exchange = _load_optional_config(config_file).get("exchange", {}) or {}

    return ExchangeConfig(
        api_key=_configured(exchange.get("api_key")) or os.getenv("MEXC_API_KEY", ""),
        api_secret=_configured(exchange.get("api_secret")) or os.getenv("MEXC_API_SECRET", ""),
        base_url=exchange.get("base_url", DEFAULT_BASE_URL),
        recv_window=int(exchange.get("recv_window", 60000)),
        page_delay=float(exchange.get("page_delay", 0.3)),
        timeout=float(exchange.get("timeout", 10.0)),
    )


def credentials_status(exchange_config: ExchangeConfig) -> Dict[str, str]:
    """Report which credentials are set, without revealing them."""
    return {
        "API Key": "Present" if exchange_config.api_key else "Missing",
        "API Secret": "Present" if exchange_config.api_secret else "Missing",
    }


def get_report_config(config_file: str = None) -> Dict:
    """
    Get report-level configuration.

    Args:
        config_file: Path to configuration file

    Returns:
        Report configuration dictionary (defaults filled in)
    """
    config = _load_optional_config(config_file)
    return {**DEFAULT_REPORT_CONFIG, **(config.get("report") or {})}
