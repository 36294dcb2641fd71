"""
Reference gas price calculation.

Computes a proposed RGP (in MIST) from observed cost statistics:

    R_raw = R_now * ((s * T_target) / C_cur)

then applies, in this order:
1. Guard-rail clamp relative to the current RGP
2. Boundary-aware jitter
3. Rounding to the configured step
4. Absolute min/max bounds
5. Floor of 1 MIST

Jitter is added before rounding so the output always lands on a step, and
the absolute bounds come after rounding so a rounding overshoot can never
break them.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .errors import InvalidInputError
from .jitter import RandomSource, SystemRandomSource, choose_jitter

logger = logging.getLogger(__name__)

Number = Union[int, float]

DEFAULT_GUARD_RAILS_PCT: Tuple[float, float] = (-20.0, 40.0)
DEFAULT_ROUND_STEP = 10
DEFAULT_JITTER_RANGE: Tuple[int, int] = (5, 5)


@dataclass(frozen=True)
class CalculatorOptions:
    """Policy knobs for the calculation, normalized once at construction."""
    guard_rails_enabled: bool = True
    guard_rails_pct: Optional[Tuple[float, float]] = None
    round_step: Optional[Number] = None
    min_rgp_mist: Optional[Number] = None
    max_rgp_mist: Optional[Number] = None
    jitter_range: Optional[Tuple[int, int]] = None

    def __post_init__(self):
        """Apply defaults and coerce values into their normalized form."""
        object.__setattr__(self, "guard_rails_enabled", bool(self.guard_rails_enabled))

        if self.guard_rails_pct is None:
            object.__setattr__(self, "guard_rails_pct", DEFAULT_GUARD_RAILS_PCT)
        else:
            low, high = self.guard_rails_pct
            low, high = float(low), float(high)
            if not math.isfinite(low) or not math.isfinite(high):
                raise ValueError("guard_rails_pct values must be finite")
            object.__setattr__(self, "guard_rails_pct", (low, high))

        # Step and absolute bounds are whole MIST; anything else is dropped
        if not _is_whole_number(self.round_step) or self.round_step <= 0:
            object.__setattr__(self, "round_step", DEFAULT_ROUND_STEP)
        else:
            object.__setattr__(self, "round_step", int(self.round_step))

        for name in ("min_rgp_mist", "max_rgp_mist"):
            value = getattr(self, name)
            object.__setattr__(self, name, int(value) if _is_whole_number(value) else None)

        if self.jitter_range is None:
            object.__setattr__(self, "jitter_range", DEFAULT_JITTER_RANGE)
        else:
            base_low, base_high = self.jitter_range
            object.__setattr__(self, "jitter_range", (
                max(0, math.floor(base_low)),
                max(0, math.floor(base_high)),
            ))


@dataclass(frozen=True)
class NormalizedInputs:
    """Echo of every input the calculation actually used."""
    target_avg_tx_usd: float
    comp_share: float
    comp_cost_usd: float
    current_rgp: Number
    guard_rails_enabled: bool
    guard_rails_pct: Tuple[float, float]
    round_step: Number
    min_rgp_mist: Optional[Number]
    max_rgp_mist: Optional[Number]
    jitter_range: Tuple[int, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetAvgTxUsd": self.target_avg_tx_usd,
            "compShare": self.comp_share,
            "compCostUsd": self.comp_cost_usd,
            "currentRgp": self.current_rgp,
            "guardRailsEnabled": self.guard_rails_enabled,
            "guardRailsPct": list(self.guard_rails_pct),
            "roundStep": self.round_step,
            "minRgpMist": self.min_rgp_mist,
            "maxRgpMist": self.max_rgp_mist,
            "jitterRange": list(self.jitter_range),
        }


@dataclass(frozen=True)
class CalculationTrace:
    """Intermediate values, enough to reconstruct and audit a proposal."""
    c_target: float
    k: float
    r_raw: float
    clamp_min: Optional[float]
    clamp_max: Optional[float]
    r_clamped: float
    jitter: int
    r_final: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "C_target": self.c_target,
            "k": self.k,
            "R_raw": self.r_raw,
            "clampMin": self.clamp_min,
            "clampMax": self.clamp_max,
            "R_clamped": self.r_clamped,
            "jitter": self.jitter,
            "R_final": self.r_final,
        }


@dataclass(frozen=True)
class RgpCalculationResult:
    """Final proposal with its inputs and calculation trace."""
    proposed_rgp_mist: int
    inputs: NormalizedInputs
    calc: CalculationTrace

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposedRgpMist": self.proposed_rgp_mist,
            "inputs": self.inputs.to_dict(),
            "calc": self.calc.to_dict(),
        }


def round_to_step(x: Number, step: Number = DEFAULT_ROUND_STEP) -> Number:
    """Round to the nearest multiple of ``step``, ties away from zero.

    Values already on a step are returned unchanged. A non-finite value or
    a non-positive step leaves ``x`` untouched.
    """
    if not _is_finite_number(x) or not _is_finite_number(step) or step <= 0:
        return x
    step_dec = Decimal(step)
    steps = (Decimal(x) / step_dec).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    rounded = steps * step_dec
    if rounded == rounded.to_integral_value():
        return int(rounded)
    return float(rounded)


def clamp(x: Number, lo: Optional[Number], hi: Optional[Number]) -> Number:
    """Clamp ``x`` into [lo, hi]; a None bound is ignored. ``lo`` wins if they cross."""
    if lo is not None and x < lo:
        return lo
    if hi is not None and x > hi:
        return hi
    return x


def compute_new_rgp(
    target_avg_tx_usd: Number,
    comp_share: Number,
    comp_cost_usd: Number,
    current_rgp: Number,
    options: Optional[CalculatorOptions] = None,
    rng: Optional[RandomSource] = None,
) -> RgpCalculationResult:
    """Compute a proposed RGP from cost statistics and policy options.

    Args:
        target_avg_tx_usd: Target average total cost per transaction (USD, > 0)
        comp_share: Observed computation share of the total fee (0 < s <= 1)
        comp_cost_usd: Observed computation cost per transaction (USD, > 0)
        current_rgp: Current reference gas price (MIST, > 0)
        options: Guard rail, rounding, bound and jitter settings
        rng: Random source for the jitter draw

    Returns:
        RgpCalculationResult with the proposal, inputs echo and trace

    Raises:
        InvalidInputError: If any of the four numeric inputs is out of domain
    """
    _require(target_avg_tx_usd, "target_avg_tx_usd", lambda v: v > 0,
             "Invalid target_avg_tx_usd (must be a positive number)")
    _require(comp_share, "comp_share", lambda v: 0 < v <= 1,
             "Invalid comp_share (must be in (0,1])")
    _require(comp_cost_usd, "comp_cost_usd", lambda v: v > 0,
             "Invalid comp_cost_usd (must be > 0)")
    _require(current_rgp, "current_rgp", lambda v: v > 0,
             "Invalid current RGP (must be > 0)")

    options = options or CalculatorOptions()
    rng = rng or SystemRandomSource()

    c_target = comp_share * target_avg_tx_usd  # desired computation USD
    k = c_target / comp_cost_usd
    r_raw = current_rgp * k
    if not math.isfinite(r_raw):
        raise InvalidInputError("Invalid raw RGP (scale factor overflowed)", "comp_cost_usd")

    clamp_min = clamp_max = None
    if options.guard_rails_enabled:
        low_pct, high_pct = options.guard_rails_pct
        clamp_min = current_rgp * (1 + low_pct / 100)
        clamp_max = current_rgp * (1 + high_pct / 100)

    r_clamped = clamp(r_raw, clamp_min, clamp_max)

    base_low, base_high = options.jitter_range
    drawn = choose_jitter(r_clamped, clamp_min, clamp_max, base_low, base_high, rng)

    r_final = round_to_step(r_clamped + drawn, options.round_step)
    if options.min_rgp_mist is not None:
        r_final = max(r_final, options.min_rgp_mist)
    if options.max_rgp_mist is not None:
        r_final = min(r_final, options.max_rgp_mist)
    r_final = max(1, _round_half_up(r_final))

    logger.info(
        "RGP proposal: current=%s raw=%.4f clamped=%.4f jitter=%d final=%d",
        current_rgp, r_raw, r_clamped, drawn, r_final
    )

    inputs = NormalizedInputs(
        target_avg_tx_usd=target_avg_tx_usd,
        comp_share=comp_share,
        comp_cost_usd=comp_cost_usd,
        current_rgp=current_rgp,
        guard_rails_enabled=options.guard_rails_enabled,
        guard_rails_pct=options.guard_rails_pct,
        round_step=options.round_step,
        min_rgp_mist=options.min_rgp_mist,
        max_rgp_mist=options.max_rgp_mist,
        jitter_range=options.jitter_range,
    )
    calc = CalculationTrace(
        c_target=c_target,
        k=k,
        r_raw=r_raw,
        clamp_min=clamp_min,
        clamp_max=clamp_max,
        r_clamped=r_clamped,
        jitter=drawn,
        r_final=r_final,
    )
    return RgpCalculationResult(proposed_rgp_mist=r_final, inputs=inputs, calc=calc)


def _is_finite_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def _is_whole_number(value: Any) -> bool:
    return _is_finite_number(value) and float(value).is_integer()


def _require(value: Any, field: str, valid: Callable[[Number], bool], message: str) -> None:
    if not _is_finite_number(value) or not valid(value):
        raise InvalidInputError(message, field)


def _round_half_up(x: Number) -> int:
    return int(Decimal(x).quantize(Decimal(1), rounding=ROUND_HALF_UP))
