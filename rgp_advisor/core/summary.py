"""
Epoch summary aggregation.

Attaches USD prices to per-epoch metrics and reduces them to the overall
statistics the RGP calculation consumes.

Means are simple, unweighted averages of per-epoch values (an epoch with
ten transactions counts as much as one with ten million). Fee-unit means
are summed and divided as integers; only the final value is converted to
SUI or USD.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .epoch_metrics import (
    EpochMetric,
    extract_epochs,
    format_percent,
    mist_to_sui_number,
    mist_to_sui_string,
    parse_epoch_id,
    parse_mist_amount,
)
from .errors import NoUsableEpochsError

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class NumericSummary:
    """Numeric copies of the overall averages; NaN marks unavailable values."""
    avg_price_usd: float
    avg_total_cost_per_tx_sui: float
    avg_computation_cost_per_tx_sui: float
    avg_total_cost_per_tx_usd: float
    avg_computation_cost_per_tx_usd: float
    avg_comp_share: float  # decimal form, 0-1
    avg_total_gas_over_rewards: float  # decimal form


@dataclass(frozen=True)
class OverallSummary:
    """All-epoch simple averages, formatted for display plus numeric copies."""
    epochs_included: int
    avg_total_transactions: int
    avg_price_usd: str
    avg_total_gas_per_epoch_sui: str
    avg_computation_per_epoch_sui: str
    avg_total_cost_per_tx_sui: str
    avg_computation_cost_per_tx_sui: str
    avg_total_cost_per_tx_usd: str
    avg_computation_cost_per_tx_usd: str
    avg_comp_share_pct: str
    avg_total_gas_over_rewards_pct: str
    numeric: NumericSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epochsIncluded": self.epochs_included,
            "avgTotalTransactions": self.avg_total_transactions,
            "avgPriceUSD": self.avg_price_usd,
            "avgTotalGasPerEpoch_SUI": self.avg_total_gas_per_epoch_sui,
            "avgComputationPerEpoch_SUI": self.avg_computation_per_epoch_sui,
            "avgTotalCostPerTx_SUI": self.avg_total_cost_per_tx_sui,
            "avgComputationCostPerTx_SUI": self.avg_computation_cost_per_tx_sui,
            "avgTotalCostPerTx_USD": self.avg_total_cost_per_tx_usd,
            "avgComputationCostPerTx_USD": self.avg_computation_cost_per_tx_usd,
            "avgCompSharePct": self.avg_comp_share_pct,
            "avgTotalGasOverRewardsPct": self.avg_total_gas_over_rewards_pct,
            "_num": {
                "avgPriceUSD": _json_number(self.numeric.avg_price_usd),
                "avgTotalCostPerTx_SUI": _json_number(self.numeric.avg_total_cost_per_tx_sui),
                "avgComputationCostPerTx_SUI": _json_number(
                    self.numeric.avg_computation_cost_per_tx_sui
                ),
                "avgTotalCostPerTx_USD": _json_number(self.numeric.avg_total_cost_per_tx_usd),
                "avgComputationCostPerTx_USD": _json_number(
                    self.numeric.avg_computation_cost_per_tx_usd
                ),
                "avgCompShare": _json_number(self.numeric.avg_comp_share),
                "avgTotalGasOverRewards": _json_number(self.numeric.avg_total_gas_over_rewards),
            },
        }


@dataclass(frozen=True)
class LatestEpoch:
    """Most recent epoch that reported a reference gas price."""
    epoch_id: Optional[int]
    reference_gas_price: Optional[int]  # MIST


@dataclass(frozen=True)
class RgpInputsSnapshot:
    """The narrow set of statistics the RGP calculation reads."""
    avg_total_cost_per_tx_usd: float
    avg_computation_cost_per_tx_usd: float
    avg_comp_share: float
    last_epoch_reference_gas_price: Optional[int]


@dataclass(frozen=True)
class MetricsReport:
    """Everything derived from one batch of epoch records."""
    generated_at: datetime
    per_epoch: List[EpochMetric]
    overall: OverallSummary
    latest_epoch: LatestEpoch
    for_rgp: RgpInputsSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "latestEpoch": {
                "epochId": self.latest_epoch.epoch_id,
                "referenceGasPrice": self.latest_epoch.reference_gas_price,
            },
            "perEpoch": [epoch_row(m) for m in self.per_epoch],
            "overall": self.overall.to_dict(),
            "overallForRgp": {
                "avgTotalCostPerTx_USD": _json_number(self.for_rgp.avg_total_cost_per_tx_usd),
                "avgComputationCostPerTx_USD": _json_number(
                    self.for_rgp.avg_computation_cost_per_tx_usd
                ),
                "avgCompShare": _json_number(self.for_rgp.avg_comp_share),
                "lastEpochReferenceGasPrice": self.for_rgp.last_epoch_reference_gas_price,
            },
        }


def attach_price(
    metrics: Iterable[EpochMetric],
    price_map: Mapping[str, Any],
) -> List[EpochMetric]:
    """Attach the USD price for each epoch's end date (falling back to start).

    Args:
        metrics: Per-epoch metrics
        price_map: Daily prices keyed by ISO date ("YYYY-MM-DD")

    Returns:
        New metrics with price and USD per-tx costs set; epochs with no
        price on either date keep those fields as None
    """
    priced = []
    for metric in metrics:
        price = None
        if metric.end_date is not None:
            price = _as_price(price_map.get(metric.end_date.isoformat()))
        if price is None and metric.start_date is not None:
            price = _as_price(price_map.get(metric.start_date.isoformat()))

        if price is None:
            priced.append(replace(
                metric, price_usd=None, avg_total_per_tx_usd=None, avg_comp_per_tx_usd=None
            ))
            continue

        priced.append(replace(
            metric,
            price_usd=price,
            avg_total_per_tx_usd=mist_to_sui_number(metric.avg_total_per_tx) * price,
            avg_comp_per_tx_usd=mist_to_sui_number(metric.avg_comp_per_tx) * price,
        ))
    return priced


def summarize(metrics: Sequence[EpochMetric]) -> Optional[OverallSummary]:
    """Reduce per-epoch metrics to all-epoch simple averages.

    Args:
        metrics: Per-epoch metrics, usually already priced

    Returns:
        OverallSummary, or None when there are no metrics to summarize
    """
    if not metrics:
        return None

    count = len(metrics)
    avg_tx = int(
        (Decimal(sum(m.tx_count for m in metrics)) / Decimal(count))
        .quantize(Decimal(1), rounding=ROUND_HALF_UP)
    )

    # Exact integer means in MIST
    avg_total_gas_per_epoch = sum(m.total_gas_fee for m in metrics) // count
    avg_comp_per_epoch = sum(m.computation_cost for m in metrics) // count
    avg_total_per_tx = sum(m.avg_total_per_tx for m in metrics) // count
    avg_comp_per_tx = sum(m.avg_comp_per_tx for m in metrics) // count

    avg_comp_share_pct = _mean(m.comp_share_pct for m in metrics)
    avg_gas_over_rewards_pct = _mean(m.gas_over_rewards_pct for m in metrics)
    avg_price = _mean(m.price_usd for m in metrics)
    avg_total_per_tx_usd = _mean(m.avg_total_per_tx_usd for m in metrics)
    avg_comp_per_tx_usd = _mean(m.avg_comp_per_tx_usd for m in metrics)

    numeric = NumericSummary(
        avg_price_usd=avg_price,
        avg_total_cost_per_tx_sui=mist_to_sui_number(avg_total_per_tx),
        avg_computation_cost_per_tx_sui=mist_to_sui_number(avg_comp_per_tx),
        avg_total_cost_per_tx_usd=avg_total_per_tx_usd,
        avg_computation_cost_per_tx_usd=avg_comp_per_tx_usd,
        avg_comp_share=avg_comp_share_pct / 100,
        avg_total_gas_over_rewards=avg_gas_over_rewards_pct / 100,
    )

    return OverallSummary(
        epochs_included=count,
        avg_total_transactions=avg_tx,
        avg_price_usd=_fixed(avg_price, 4),
        avg_total_gas_per_epoch_sui=mist_to_sui_string(avg_total_gas_per_epoch, 6),
        avg_computation_per_epoch_sui=mist_to_sui_string(avg_comp_per_epoch, 6),
        avg_total_cost_per_tx_sui=mist_to_sui_string(avg_total_per_tx, 9),
        avg_computation_cost_per_tx_sui=mist_to_sui_string(avg_comp_per_tx, 9),
        avg_total_cost_per_tx_usd=_fixed(avg_total_per_tx_usd, 6),
        avg_computation_cost_per_tx_usd=_fixed(avg_comp_per_tx_usd, 6),
        avg_comp_share_pct=_fixed_pct(avg_comp_share_pct),
        avg_total_gas_over_rewards_pct=_fixed_pct(avg_gas_over_rewards_pct),
        numeric=numeric,
    )


def latest_epoch_rgp(nodes: Iterable[Any]) -> LatestEpoch:
    """Find the reference gas price of the highest epoch that reports one."""
    latest_id = None
    latest_rgp = None
    for node in nodes:
        if not isinstance(node, Mapping):
            continue
        if node.get("epochId") is None or node.get("referenceGasPrice") is None:
            continue
        epoch_id = parse_epoch_id(node.get("epochId"))
        if epoch_id is None:
            continue
        if latest_id is None or epoch_id > latest_id:
            latest_id = epoch_id
            latest_rgp = parse_mist_amount(node.get("referenceGasPrice"))
    return LatestEpoch(epoch_id=latest_id, reference_gas_price=latest_rgp)


def collect_metrics(
    nodes: Sequence[Any],
    price_map: Mapping[str, Any],
) -> MetricsReport:
    """Build the full metrics report for a batch of raw epoch records.

    Args:
        nodes: Raw epoch records as returned by the epoch data provider
        price_map: Daily USD prices keyed by ISO date

    Returns:
        MetricsReport with priced per-epoch metrics and overall averages

    Raises:
        NoUsableEpochsError: If no epoch record passes validation
    """
    logger.info("loaded %d daily prices", len(price_map))
    logger.info("received %d epoch node(s)", len(nodes))

    extracted = extract_epochs(nodes)
    logger.info("usable epochs with rollingGasSummary & txCount: %d", len(extracted))
    if not extracted:
        raise NoUsableEpochsError("no usable epochs, nothing to compute")

    priced = attach_price(extracted, price_map)
    overall = summarize(priced)
    latest = latest_epoch_rgp(nodes)

    return MetricsReport(
        generated_at=datetime.now(timezone.utc),
        per_epoch=priced,
        overall=overall,
        latest_epoch=latest,
        for_rgp=RgpInputsSnapshot(
            avg_total_cost_per_tx_usd=overall.numeric.avg_total_cost_per_tx_usd,
            avg_computation_cost_per_tx_usd=overall.numeric.avg_computation_cost_per_tx_usd,
            avg_comp_share=overall.numeric.avg_comp_share,
            last_epoch_reference_gas_price=latest.reference_gas_price,
        ),
    )


def epoch_row(metric: EpochMetric) -> Dict[str, Any]:
    """Render one metric as a display row (SUI, USD, %, + price)."""
    return {
        "epoch": metric.epoch_id,
        "start": metric.start_date.isoformat() if metric.start_date else None,
        "end": metric.end_date.isoformat() if metric.end_date else None,
        "price_usd": metric.price_usd if metric.has_price else NOT_AVAILABLE,
        "txCount": metric.tx_count,
        "totalGas_SUI": mist_to_sui_string(metric.total_gas_fee, 6),
        "computation_SUI": mist_to_sui_string(metric.computation_cost, 6),
        "avgTotalPerTx_SUI": mist_to_sui_string(metric.avg_total_per_tx, 9),
        "avgCompPerTx_SUI": mist_to_sui_string(metric.avg_comp_per_tx, 9),
        "avgTotalPerTx_USD": _fixed(metric.avg_total_per_tx_usd, 6),
        "avgCompPerTx_USD": _fixed(metric.avg_comp_per_tx_usd, 6),
        "%comp_of_total": format_percent(metric.comp_share_pct),
        "%(totalGas / stakeRewards)": format_percent(metric.gas_over_rewards_pct),
    }


def _as_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


def _mean(values: Iterable[Any]) -> float:
    """Mean of the available values; NaN when none are available."""
    xs = [float(v) for v in values if v is not None]
    xs = [x for x in xs if math.isfinite(x)]
    if not xs:
        return math.nan
    return sum(xs) / len(xs)


def _fixed(value: Optional[float], decimals: int) -> str:
    if value is None or not math.isfinite(value):
        return NOT_AVAILABLE
    return f"{value:.{decimals}f}"


def _fixed_pct(value: float) -> str:
    if not math.isfinite(value):
        return NOT_AVAILABLE
    return f"{value:.2f}%"


def _json_number(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value
