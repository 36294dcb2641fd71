"""
End-to-end RGP proposal from already-fetched data.

Wires extraction, aggregation and calculation together:
epoch records + price map -> metrics report -> calculator -> proposal.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, TYPE_CHECKING

from .calculator import RgpCalculationResult, compute_new_rgp
from .jitter import RandomSource
from .summary import MetricsReport, collect_metrics

if TYPE_CHECKING:
    from rgp_advisor.config.loader import RgpPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proposal:
    """A computed proposal together with the metrics it was derived from."""
    epoch: Optional[int]
    report: MetricsReport
    result: RgpCalculationResult

    @property
    def proposed_rgp_mist(self) -> int:
        return self.result.proposed_rgp_mist


def propose_rgp(
    nodes: Sequence[Any],
    price_map: Mapping[str, Any],
    policy: "RgpPolicy",
    current_rgp: Optional[int] = None,
    rng: Optional[RandomSource] = None,
) -> Proposal:
    """Compute a proposed RGP from raw epoch records and daily prices.

    Args:
        nodes: Raw epoch records
        price_map: Daily USD prices keyed by ISO date
        policy: Cost target and calculator options
        current_rgp: Current RGP override; defaults to the latest epoch's RGP
        rng: Random source for the jitter draw

    Returns:
        Proposal with the metrics report and calculation result

    Raises:
        NoUsableEpochsError: If no epoch record passes validation
        InvalidInputError: If a derived statistic or the current RGP is
            unusable (for example, no epoch could be priced)
    """
    report = collect_metrics(nodes, price_map)
    stats = report.for_rgp
    if current_rgp is None:
        current_rgp = stats.last_epoch_reference_gas_price

    logger.info(
        "calculating RGP for epoch %s: target=%s share=%s comp_cost_usd=%s current=%s",
        report.latest_epoch.epoch_id, policy.target_avg_tx_usd,
        stats.avg_comp_share, stats.avg_computation_cost_per_tx_usd, current_rgp
    )

    result = compute_new_rgp(
        policy.target_avg_tx_usd,
        stats.avg_comp_share,
        stats.avg_computation_cost_per_tx_usd,
        current_rgp,
        options=policy.options,
        rng=rng,
    )
    return Proposal(epoch=report.latest_epoch.epoch_id, report=report, result=result)
