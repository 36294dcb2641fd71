"""
Per-epoch gas cost extraction.

Turns raw epoch records into exact per-transaction cost metrics. All
fee-unit (MIST) arithmetic stays in Python integers; floats only appear
once a value is converted to SUI or USD for display.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

MIST_PER_SUI = 1_000_000_000

# Percentages are truncated to this many decimals
PERCENT_DECIMALS = 2

_DIGITS = re.compile(r"[0-9]+")
_FRACTION = re.compile(r"\.([0-9]+)")


@dataclass(frozen=True)
class EpochMetric:
    """Exact gas cost statistics for a single epoch."""
    epoch_id: Optional[int]
    start_date: Optional[date]
    end_date: Optional[date]
    tx_count: int
    computation_cost: int  # MIST
    storage_cost: int  # MIST
    storage_rebate: int  # MIST
    total_gas_fee: int  # MIST
    avg_total_per_tx: int  # MIST, floor division
    avg_comp_per_tx: int  # MIST, floor division
    comp_share_pct: Optional[Decimal]
    stake_rewards: Optional[int] = None
    gas_over_rewards_pct: Optional[Decimal] = None
    price_usd: Optional[float] = None
    avg_total_per_tx_usd: Optional[float] = None
    avg_comp_per_tx_usd: Optional[float] = None

    def __post_init__(self):
        """Validate fee-unit invariants."""
        if self.tx_count <= 0:
            raise ValueError("tx_count must be > 0")
        if self.total_gas_fee < 0:
            raise ValueError("total_gas_fee cannot be negative")
        if self.avg_total_per_tx < 0 or self.avg_comp_per_tx < 0:
            raise ValueError("per-transaction costs cannot be negative")

    @property
    def has_price(self) -> bool:
        return self.price_usd is not None


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of validating one raw epoch record."""
    epoch_id: Any
    metric: Optional[EpochMetric] = None
    reason: Optional[str] = None

    @classmethod
    def valid(cls, metric: EpochMetric) -> "ExtractionResult":
        return cls(epoch_id=metric.epoch_id, metric=metric)

    @classmethod
    def invalid(cls, epoch_id: Any, reason: str) -> "ExtractionResult":
        return cls(epoch_id=epoch_id, reason=reason)

    @property
    def ok(self) -> bool:
        return self.metric is not None


def div_to_decimal_string(numer: int, denom: int, decimals: int = 9) -> str:
    """Divide two integers and render the quotient with fixed decimals.

    The numerator is scaled by 10**decimals before an integer division,
    so the digits are exact (truncated, never rounded through a float).

    Args:
        numer: Integer numerator
        denom: Integer denominator
        decimals: Number of fractional digits to render

    Returns:
        Decimal string such as "0.000750000", or "NaN" for a zero denominator
    """
    if denom == 0:
        return "NaN"
    negative = (numer < 0) != (denom < 0)
    numer, denom = abs(numer), abs(denom)

    scale = 10 ** decimals
    quotient = (numer * scale) // denom
    int_part, frac_part = divmod(quotient, scale)
    sign = "-" if negative else ""
    if decimals == 0:
        return f"{sign}{int_part}"
    return f"{sign}{int_part}.{str(frac_part).zfill(decimals)}"


def mist_to_sui_string(mist: int, decimals: int = 6) -> str:
    return div_to_decimal_string(mist, MIST_PER_SUI, decimals)


def mist_to_sui_number(mist: int) -> float:
    """Convert MIST to a float SUI amount (the single float conversion step)."""
    return float(div_to_decimal_string(mist, MIST_PER_SUI, 9))


def percent_from_ints(
    numer: Optional[int],
    denom: Optional[int],
    decimals: int = PERCENT_DECIMALS,
) -> Optional[Decimal]:
    """Exact percentage numer/denom * 100, truncated to ``decimals``."""
    if numer is None or denom is None or denom == 0:
        return None
    return Decimal(div_to_decimal_string(numer * 100, denom, decimals))


def format_percent(value: Optional[Decimal]) -> str:
    return "N/A" if value is None else f"{value}%"


def iso_date_only(value: Any) -> Optional[date]:
    """Reduce a timestamp to its UTC calendar date.

    Accepts ISO-8601 strings (with "Z" or an explicit offset; naive values
    are taken as UTC) and integer milliseconds since the epoch.

    Returns:
        The UTC date, or None when the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _date_from_millis(value)

    text = str(value).strip()
    if not text:
        return None
    if _DIGITS.fullmatch(text):
        return _date_from_millis(int(text))

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat only takes 3 or 6 fractional digits on older interpreters
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).date()


def _date_from_millis(millis: float) -> Optional[date]:
    if not math.isfinite(millis):
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def parse_mist_amount(value: Any) -> Optional[int]:
    """Parse a non-negative integer MIST amount from an int or digit string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value >= 0:
            return int(value)
        return None
    text = str(value).strip()
    if not _DIGITS.fullmatch(text):
        return None
    return int(text)


def _parse_tx_count(value: Any) -> Optional[int]:
    """Parse a positive, finite, integral transaction count."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and _DIGITS.fullmatch(value.strip()):
        count = int(value.strip())
        return count if count > 0 else None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0 or not number.is_integer():
        return None
    return int(number)


def parse_epoch_id(value: Any) -> Optional[int]:
    """Parse an integral epoch id; fractional or non-numeric ids yield None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    text = str(value).strip()
    if not _DIGITS.fullmatch(text):
        return None
    return int(text)


def _child(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


def extract_epoch(node: Optional[Mapping[str, Any]]) -> ExtractionResult:
    """Validate one raw epoch record and derive its exact metrics.

    The record follows the GraphQL epoch node shape: ``epochId``,
    ``startTimestamp``, ``endTimestamp``, ``totalTransactions``,
    ``totalStakeRewards`` and ``checkpoints.nodes[0].rollingGasSummary``
    with ``computationCost``, ``storageCost`` and ``storageRebate``.

    Records with missing or malformed cost data are reported as invalid
    rather than raising, so a single bad epoch never aborts a run.

    Args:
        node: Raw epoch record

    Returns:
        ExtractionResult holding either the metric or the skip reason
    """
    if not isinstance(node, Mapping):
        node = {}
    raw_id = node.get("epochId")
    epoch_id = parse_epoch_id(raw_id)
    label = raw_id if raw_id is not None else "?"
    if raw_id is not None and epoch_id is None:
        return ExtractionResult.invalid(label, f"invalid epochId ({raw_id!r})")

    checkpoints = _child(node, "checkpoints", "nodes")
    if not isinstance(checkpoints, (list, tuple)) or not checkpoints:
        return ExtractionResult.invalid(label, "checkpoints.nodes missing/empty")

    summary = _child(checkpoints[0], "rollingGasSummary")
    if not isinstance(summary, Mapping) or not summary:
        return ExtractionResult.invalid(label, "rollingGasSummary missing")

    comp = parse_mist_amount(summary.get("computationCost"))
    stor = parse_mist_amount(summary.get("storageCost"))
    rebate = parse_mist_amount(summary.get("storageRebate"))
    tx_count = _parse_tx_count(node.get("totalTransactions"))

    if comp is None or stor is None or rebate is None or tx_count is None:
        return ExtractionResult.invalid(
            label,
            f"invalid fields (comp={comp}, stor={stor}, rebate={rebate}, "
            f"tx={node.get('totalTransactions')})"
        )

    total_gas_fee = comp + stor - rebate
    if total_gas_fee < 0:
        return ExtractionResult.invalid(
            label, f"negative total gas fee ({total_gas_fee} MIST)"
        )

    stake_rewards = parse_mist_amount(node.get("totalStakeRewards"))
    gas_over_rewards = (
        percent_from_ints(total_gas_fee, stake_rewards)
        if stake_rewards else None
    )

    metric = EpochMetric(
        epoch_id=epoch_id,
        start_date=iso_date_only(node.get("startTimestamp")),
        end_date=iso_date_only(node.get("endTimestamp")),
        tx_count=tx_count,
        computation_cost=comp,
        storage_cost=stor,
        storage_rebate=rebate,
        total_gas_fee=total_gas_fee,
        avg_total_per_tx=total_gas_fee // tx_count,
        avg_comp_per_tx=comp // tx_count,
        comp_share_pct=percent_from_ints(comp, total_gas_fee) if total_gas_fee > 0 else None,
        stake_rewards=stake_rewards,
        gas_over_rewards_pct=gas_over_rewards,
    )
    return ExtractionResult.valid(metric)


def extract_epochs(nodes: Iterable[Optional[Mapping[str, Any]]]) -> List[EpochMetric]:
    """Extract every valid epoch, logging and dropping the rest."""
    metrics = []
    for node in nodes:
        result = extract_epoch(node)
        if result.ok:
            metrics.append(result.metric)
        else:
            logger.warning("[skip] epoch %s: %s", result.epoch_id, result.reason)
    return metrics
