"""
Configuration management and loading.

Handles the optional YAML settings file and pricing overrides.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from token_lens.core.pricing import PRICING_TABLE, ModelPricing, PricingTable
from token_lens.storage.repository import DEFAULT_CLAUDE_DIR

ALLOWED_TOP_KEYS = {"claude_dir", "days", "project", "pricing"}
PRICING_RATE_KEYS = ("input", "output", "cache_write", "cache_read")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    claude_dir: str = DEFAULT_CLAUDE_DIR
    days: int = 0
    project: str = ""
    pricing: Dict[str, ModelPricing] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration values."""
        if not self.claude_dir:
            raise ValueError("claude_dir cannot be empty")
        if self.days < 0:
            raise ValueError("days must be >= 0")

    def pricing_table(self) -> PricingTable:
        """Built-in pricing with configured families added or replaced."""
        if not self.pricing:
            return PRICING_TABLE
        return PRICING_TABLE.with_overrides(self.pricing)


def default_config() -> AppConfig:
    """Configuration used when no settings file is given."""
    return AppConfig()


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Strict validation ensures no silent misconfigurations such as a
    mistyped pricing family quietly costing nothing.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")

    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    unknown_keys = set(raw_config.keys()) - ALLOWED_TOP_KEYS
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    claude_dir = raw_config.get('claude_dir', DEFAULT_CLAUDE_DIR)
    if not isinstance(claude_dir, str) or not claude_dir.strip():
        raise ValueError("'claude_dir' must be a non-empty string")

    days = raw_config.get('days', 0)
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValueError("'days' must be an integer >= 0")

    project = raw_config.get('project', "") or ""
    if not isinstance(project, str):
        raise ValueError("'project' must be a string")

    pricing_data = raw_config.get('pricing', {}) or {}
    if not isinstance(pricing_data, dict):
        raise ValueError("'pricing' must be a dictionary")

    pricing = {}
    for family, rates in pricing_data.items():
        if not isinstance(family, str) or not family:
            raise ValueError("Pricing family names must be non-empty strings")
        if not isinstance(rates, dict):
            raise ValueError(f"Pricing for '{family}' must be a dictionary")
        pricing[family] = _parse_pricing(family, rates)

    return AppConfig(
        claude_dir=claude_dir,
        days=days,
        project=project,
        pricing=pricing,
    )


def _parse_pricing(family: str, data: Dict[str, Any]) -> ModelPricing:
    """Parse and validate per-million-token rates for one family.

    Args:
        family: Model family prefix
        data: Rate mapping

    Returns:
        Validated ModelPricing

    Raises:
        ValueError: If rates are missing, unknown or negative
    """
    path = f"pricing.{family}"
    unknown_keys = set(data.keys()) - set(PRICING_RATE_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    rates = {}
    for key in PRICING_RATE_KEYS:
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")
        rates[key] = _parse_rate(data[key], f"{path}.{key}")

    return ModelPricing(
        family=family,
        input_per_mtok=rates["input"],
        output_per_mtok=rates["output"],
        cache_write_per_mtok=rates["cache_write"],
        cache_read_per_mtok=rates["cache_read"],
    )


def _parse_rate(value: Any, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{path}' must be a number")
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{path}' must be a number")
    if not rate.is_finite() or rate < 0:
        raise ValueError(f"'{path}' must be >= 0")
    return rate


def resolve_config(path: Optional[str]) -> AppConfig:
    """Load the config file when given, otherwise use the defaults."""
    if path is None:
        return default_config()
    return load_config(path)
