"""
Tests for the end-to-end proposal pipeline.
"""
import pytest

from rgp_advisor.config.loader import RgpPolicy
from rgp_advisor.core.calculator import CalculatorOptions
from rgp_advisor.core.errors import InvalidInputError, NoUsableEpochsError
from rgp_advisor.core.proposal import propose_rgp

# With the first two sample epochs: share 0.75 and 0.00105 USD computation per tx,
# so k = 0.75 * 0.00168 / 0.00105 = 1.2
TARGET_FOR_K_1_2 = 0.00168


@pytest.fixture
def policy():
    return RgpPolicy(
        target_avg_tx_usd=TARGET_FOR_K_1_2,
        options=CalculatorOptions(guard_rails_pct=(-40, 40), jitter_range=(0, 0)),
    )


class TestProposeRgp:
    """Test wiring of metrics into the calculator."""

    def test_uses_latest_epoch_rgp(self, sample_nodes, price_map, policy):
        proposal = propose_rgp(sample_nodes[:2], price_map, policy)

        assert proposal.epoch == 101
        assert proposal.result.inputs.current_rgp == 500
        assert proposal.result.calc.k == pytest.approx(1.2)
        assert proposal.proposed_rgp_mist == 600

    def test_current_rgp_override(self, sample_nodes, price_map, policy):
        proposal = propose_rgp(sample_nodes[:2], price_map, policy, current_rgp=1000)

        assert proposal.result.inputs.current_rgp == 1000
        assert proposal.proposed_rgp_mist == 1200

    def test_injected_random_source(self, sample_nodes, price_map, scripted_rng):
        rng = scripted_rng([-4])
        policy = RgpPolicy(
            target_avg_tx_usd=TARGET_FOR_K_1_2,
            options=CalculatorOptions(guard_rails_pct=(-40, 40), jitter_range=(5, 5)),
        )
        proposal = propose_rgp(sample_nodes[:2], price_map, policy, rng=rng)

        assert rng.calls == [(-5, 5)]
        assert proposal.result.calc.jitter == -4
        assert proposal.proposed_rgp_mist == 600

    def test_report_is_attached(self, sample_nodes, price_map, policy):
        proposal = propose_rgp(sample_nodes[:2], price_map, policy)
        assert proposal.report.overall.epochs_included == 2

    def test_no_usable_epochs(self, make_node, price_map, policy):
        with pytest.raises(NoUsableEpochsError):
            propose_rgp([make_node(tx=0)], price_map, policy)

    def test_no_priced_epochs_fails_loudly(self, sample_nodes, policy):
        """Verify a missing USD statistic is never replaced by a default."""
        with pytest.raises(InvalidInputError, match="comp_cost_usd"):
            propose_rgp(sample_nodes, {}, policy)

    def test_missing_current_rgp(self, make_node, price_map, policy):
        with pytest.raises(InvalidInputError, match="current RGP"):
            propose_rgp([make_node(rgp=None)], price_map, policy)
