"""
Pricing rules configuration

Loads, validates and caches the JSON file holding the tunable constants of
the pricing engine: the cost-split reference ratios, reference contract
terms and the perpetual license conversion parameters.
"""

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..dataclasses import PerpetualConfig
from .exceptions import ConfigurationError
from .utils import d

logger = logging.getLogger(__name__)

RULES_PATH_ENV = "PRICING_RULES_PATH"

PERPETUAL_PARAMETERS = (
    "compensation_term_months",
    "maintenance_reduction_factor",
    "maintenance_term_years",
    "upgrade_protection_percent",
    "maintenance_percent_cas",
    "maintenance_percent_cno",
    "maintenance_percent_default",
    "exclude_cno_from_perpetual",
)


def default_rules_path() -> Path:
    return Path(__file__).parent.parent / "config" / "pricing_rules.json"


def load_pricing_rules(config_path: Optional[Union[str, Path]] = None) -> dict:
    """
    Load pricing rules from a JSON configuration file

    Args:
        config_path: Path to the rules file. If None, uses $PRICING_RULES_PATH
            or the file shipped with the app.

    Returns:
        dict: Parsed rules, with non-integer numbers as Decimal

    Raises:
        ConfigurationError: If the file cannot be loaded or parsed
    """
    if config_path is None:
        config_path = os.environ.get(RULES_PATH_ENV) or default_rules_path()

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Pricing rules configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            rules = json.load(f, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in pricing rules file: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error loading pricing rules configuration: {e}") from e

    logger.info(f"Loaded pricing rules from {config_path}")
    return rules


def validate_pricing_rules(rules: dict) -> List[str]:
    """Return a list of problems with the rules (empty if valid)."""
    errors = []

    for key in ("version", "cost_split", "terms", "perpetual"):
        if key not in rules:
            errors.append(f"Missing required top-level key: {key}")

    split = rules.get("cost_split")
    if isinstance(split, dict):
        for key in ("reference_base_ratio", "reference_usage_ratio", "default_ratio"):
            value = split.get(key)
            if value is None:
                errors.append(f"Missing cost_split.{key}")
            elif not (0 <= d(value) <= 1):
                errors.append(f"cost_split.{key} must be between 0 and 1, got {value}")
        if split.get("reference_base_ratio") is not None and split.get("reference_usage_ratio") is not None:
            if d(split["reference_base_ratio"]) + d(split["reference_usage_ratio"]) != 1:
                errors.append("cost_split reference ratios must add up to 1")
            if d(split["reference_base_ratio"]) == 0 or d(split["reference_usage_ratio"]) == 0:
                errors.append("cost_split reference ratios must be non-zero")
        if not isinstance(split.get("categories", []), list):
            errors.append("cost_split.categories must be a list")
    elif split is not None:
        errors.append("cost_split must be a dictionary")

    terms = rules.get("terms")
    if isinstance(terms, dict):
        for key in ("list_price_reference_months", "default_package_months"):
            value = terms.get(key)
            if not isinstance(value, int) or value < 1:
                errors.append(f"terms.{key} must be a positive integer")

    perpetual = rules.get("perpetual")
    if isinstance(perpetual, dict):
        unknown = set(perpetual) - set(PERPETUAL_PARAMETERS)
        for key in sorted(unknown):
            errors.append(f"Unknown perpetual parameter: {key}")

    if errors:
        logger.warning(f"Pricing rules validation found {len(errors)} errors")
    return errors


def get_pricing_rules() -> dict:
    """Get a cached, validated instance of the pricing rules"""
    if not hasattr(get_pricing_rules, "_cached_rules"):
        rules = load_pricing_rules()
        validation_errors = validate_pricing_rules(rules)
        if validation_errors:
            logger.error(f"Pricing rules validation failed: {validation_errors}")
            raise ConfigurationError(f"Pricing rules validation failed: {validation_errors}")
        get_pricing_rules._cached_rules = rules

    return get_pricing_rules._cached_rules


def clear_pricing_rules_cache():
    """Clear the cached pricing rules (useful for testing or config updates)"""
    if hasattr(get_pricing_rules, "_cached_rules"):
        delattr(get_pricing_rules, "_cached_rules")


def cost_split_settings(rules: Optional[dict] = None) -> Dict[str, Any]:
    split = (rules or get_pricing_rules())["cost_split"]
    return {
        "categories": set(split.get("categories", [])),
        "reference_base_ratio": d(split["reference_base_ratio"]),
        "reference_usage_ratio": d(split["reference_usage_ratio"]),
        "default_ratio": d(split["default_ratio"]),
    }


def term_settings(rules: Optional[dict] = None) -> Dict[str, int]:
    terms = (rules or get_pricing_rules())["terms"]
    return {
        "list_price_reference_months": int(terms["list_price_reference_months"]),
        "default_package_months": int(terms["default_package_months"]),
    }


def _as_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return d(value) > 0


def perpetual_config_from_rules(source: Union[Mapping[str, Any], Iterable[Mapping[str, Any]], None] = None) -> PerpetualConfig:
    """
    Build a PerpetualConfig from the rules file, a parameter mapping, or
    `{"parameter": ..., "value": ...}` rows as kept by the admin screen.
    Parameters that are absent keep their defaults.
    """
    if source is None:
        source = get_pricing_rules().get("perpetual", {})

    if isinstance(source, Mapping):
        params = dict(source)
    else:
        params = {str(row["parameter"]).lower(): row["value"] for row in source}

    values: Dict[str, Any] = {}
    for name in PERPETUAL_PARAMETERS:
        if name not in params or params[name] is None:
            continue
        raw = params[name]
        if name == "exclude_cno_from_perpetual":
            values[name] = _as_flag(raw)
        elif name in ("compensation_term_months", "maintenance_term_years"):
            values[name] = int(d(raw))
        else:
            values[name] = d(raw)

    return PerpetualConfig(**values)
