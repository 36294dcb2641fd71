"""
Policy configuration loading.

Builds the RGP policy from a YAML file or from environment variables.
"""

import json
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from rgp_advisor.core.calculator import CalculatorOptions

TRUE_WORDS = {"1", "true", "yes", "on"}
FALSE_WORDS = {"0", "false", "no", "off"}

# Environment defaults differ from the calculator's own defaults
ENV_GUARD_RAILS_PCT = (-40.0, 40.0)
ENV_ROUND_STEP = 1
ENV_JITTER_RANGE = (10, 10)


@dataclass(frozen=True)
class RgpPolicy:
    """Operator policy: the cost target plus calculator options."""
    target_avg_tx_usd: float
    options: CalculatorOptions = field(default_factory=CalculatorOptions)

    def __post_init__(self):
        """Validate the cost target is a positive number."""
        if isinstance(self.target_avg_tx_usd, bool) or not isinstance(
            self.target_avg_tx_usd, (int, float)
        ):
            raise ValueError("target_avg_tx_usd must be a number")
        if not math.isfinite(self.target_avg_tx_usd) or self.target_avg_tx_usd <= 0:
            raise ValueError("target_avg_tx_usd must be > 0")


def load_policy_config(path: str) -> RgpPolicy:
    """Load and validate the RGP policy from a YAML file.

    Strict validation: unknown keys and wrong types are rejected rather
    than silently replaced with defaults, since a misread policy can move
    the network fee.

    Example::

        target_avg_tx_usd: 0.004
        guard_rails:
          enabled: true
          pct: [-40, 40]
        round_step: 10
        bounds:
          min_rgp_mist: 500
          max_rgp_mist: 2000
        jitter_range: [5, 5]

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated RgpPolicy

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Policy config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'target_avg_tx_usd', 'guard_rails', 'round_step', 'bounds', 'jitter_range'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'target_avg_tx_usd' not in raw_config:
        raise ValueError("Missing required 'target_avg_tx_usd'")
    target = _require_number(raw_config['target_avg_tx_usd'], 'target_avg_tx_usd')
    if target <= 0:
        raise ValueError("'target_avg_tx_usd' must be > 0")

    guard_rails_enabled, guard_rails_pct = _parse_guard_rails(raw_config.get('guard_rails', {}))

    round_step = None
    if 'round_step' in raw_config:
        round_step = _require_int(raw_config['round_step'], 'round_step')
        if round_step <= 0:
            raise ValueError("'round_step' must be > 0")

    min_rgp, max_rgp = _parse_bounds(raw_config.get('bounds', {}))

    jitter_range = None
    if 'jitter_range' in raw_config:
        low, high = _require_pair(raw_config['jitter_range'], 'jitter_range')
        if low < 0 or high < 0 or not float(low).is_integer() or not float(high).is_integer():
            raise ValueError("'jitter_range' must hold two non-negative integers")
        jitter_range = (int(low), int(high))

    return RgpPolicy(
        target_avg_tx_usd=float(target),
        options=CalculatorOptions(
            guard_rails_enabled=guard_rails_enabled,
            guard_rails_pct=guard_rails_pct,
            round_step=round_step,
            min_rgp_mist=min_rgp,
            max_rgp_mist=max_rgp,
            jitter_range=jitter_range,
        ),
    )


def _parse_guard_rails(data: Any) -> Tuple[bool, Optional[Tuple[float, float]]]:
    """Parse the ``guard_rails`` section.

    Raises:
        ValueError: If the section is malformed
    """
    if not isinstance(data, dict):
        raise ValueError("'guard_rails' must be a dictionary")

    allowed_keys = {'enabled', 'pct'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in guard_rails: {unknown_keys}")

    enabled = data.get('enabled', True)
    if not isinstance(enabled, bool):
        raise ValueError("'enabled' in guard_rails must be a boolean")

    pct = None
    if 'pct' in data:
        low, high = _require_pair(data['pct'], 'guard_rails.pct')
        pct = (float(low), float(high))
    return enabled, pct


def _parse_bounds(data: Any) -> Tuple[Optional[float], Optional[float]]:
    """Parse the ``bounds`` section.

    Raises:
        ValueError: If the section is malformed or min > max
    """
    if not isinstance(data, dict):
        raise ValueError("'bounds' must be a dictionary")

    allowed_keys = {'min_rgp_mist', 'max_rgp_mist'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in bounds: {unknown_keys}")

    min_rgp = data.get('min_rgp_mist')
    max_rgp = data.get('max_rgp_mist')
    if min_rgp is not None:
        min_rgp = _require_int(min_rgp, 'bounds.min_rgp_mist')
    if max_rgp is not None:
        max_rgp = _require_int(max_rgp, 'bounds.max_rgp_mist')
    if min_rgp is not None and max_rgp is not None and min_rgp > max_rgp:
        raise ValueError("'bounds.min_rgp_mist' must not exceed 'bounds.max_rgp_mist'")
    return min_rgp, max_rgp


def _require_number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"'{path}' must be a finite number")
    return value


def _require_int(value: Any, path: str) -> int:
    number = _require_number(value, path)
    if not float(number).is_integer():
        raise ValueError(f"'{path}' must be a whole number of MIST")
    return int(number)


def _require_pair(value: Any, path: str) -> Tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"'{path}' must be a list of two numbers")
    return _require_number(value[0], path), _require_number(value[1], path)


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse yes/no style words; anything unrecognised yields ``default``."""
    word = (value or "").strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return default


def parse_number(value: Optional[str], default: Optional[float] = None) -> Optional[float]:
    """Parse a finite number; missing or malformed values yield ``default``."""
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def parse_int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    """Parse a whole number; fractional, missing or malformed values yield ``default``."""
    number = parse_number(value)
    if not isinstance(number, int):
        return default
    return number


def parse_pair(
    value: Optional[str],
    default: Tuple[float, float],
) -> Tuple[float, float]:
    """Parse a JSON ``[a, b]`` pair of finite numbers, else ``default``."""
    if not value:
        return default
    try:
        data = json.loads(value)
    except ValueError:
        return default
    if not isinstance(data, list) or len(data) != 2:
        return default
    low = parse_number(str(data[0]))
    high = parse_number(str(data[1]))
    if low is None or high is None:
        return default
    return low, high


def load_policy_from_env(environ: Optional[Mapping[str, str]] = None) -> RgpPolicy:
    """Build the RGP policy from environment variables.

    Only ``TARGET_AVG_TX_USD`` is required. Optional variables that are
    malformed fall back to their defaults:

    - ``RGP_GUARD_RAILS_ENABLED`` (default true)
    - ``RGP_GUARD_RAILS`` JSON pair of percentages (default [-40, 40])
    - ``RGP_ROUND_STEP`` whole number (default 1)
    - ``RGP_MIN_MIST`` / ``RGP_MAX_MIST`` whole numbers (default unset)
    - ``RGP_JITTER_RANGE`` JSON pair of magnitudes (default [10, 10])

    Raises:
        ValueError: If ``TARGET_AVG_TX_USD`` is missing or not a positive number
    """
    env: Mapping[str, str] = os.environ if environ is None else environ

    raw_target = env.get("TARGET_AVG_TX_USD")
    if raw_target is None or not raw_target.strip():
        raise ValueError("Missing required env: TARGET_AVG_TX_USD")
    target = parse_number(raw_target)
    if target is None or target <= 0:
        raise ValueError("Invalid TARGET_AVG_TX_USD (must be a positive number)")

    jitter_low, jitter_high = parse_pair(env.get("RGP_JITTER_RANGE"), ENV_JITTER_RANGE)

    return RgpPolicy(
        target_avg_tx_usd=float(target),
        options=CalculatorOptions(
            guard_rails_enabled=parse_bool(env.get("RGP_GUARD_RAILS_ENABLED"), True),
            guard_rails_pct=parse_pair(env.get("RGP_GUARD_RAILS"), ENV_GUARD_RAILS_PCT),
            round_step=parse_int(env.get("RGP_ROUND_STEP"), ENV_ROUND_STEP),
            min_rgp_mist=parse_int(env.get("RGP_MIN_MIST")),
            max_rgp_mist=parse_int(env.get("RGP_MAX_MIST")),
            jitter_range=(jitter_low, jitter_high),
        ),
    )


def describe_policy(policy: RgpPolicy) -> Dict[str, Any]:
    """Flatten a policy into display-friendly key/value pairs."""
    options = policy.options
    return {
        "targetAvgTxUsd": policy.target_avg_tx_usd,
        "guardRailsEnabled": options.guard_rails_enabled,
        "guardRailsPct": json.dumps(list(options.guard_rails_pct)),
        "roundStep": options.round_step,
        "minRgpMist": options.min_rgp_mist,
        "maxRgpMist": options.max_rgp_mist,
        "jitterRange": json.dumps(list(options.jitter_range)),
    }
