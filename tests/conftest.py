"""
Shared fixtures for the RGP Advisor test suite.
"""
from typing import List, Optional, Tuple

import pytest


class ScriptedRandomSource:
    """Deterministic random source that records every requested range.

    Returns scripted values in order; once exhausted (or if none were
    given) it returns the lower end of the requested range.
    """

    def __init__(self, values: Optional[List[int]] = None):
        self.values = list(values or [])
        self.calls: List[Tuple[int, int]] = []

    def next_int(self, lo: int, hi: int) -> int:
        self.calls.append((lo, hi))
        if self.values:
            value = self.values.pop(0)
            assert lo <= value <= hi, f"scripted value {value} outside [{lo}, {hi}]"
            return value
        return lo


@pytest.fixture
def scripted_rng():
    """Factory for ScriptedRandomSource instances."""
    return ScriptedRandomSource


@pytest.fixture
def make_node():
    """Factory for raw epoch records in the GraphQL node shape."""
    def _make_node(
        epoch_id=100,
        comp="600000000",
        stor="500000000",
        rebate="100000000",
        tx=1000,
        start="2025-01-01T00:00:00Z",
        end="2025-01-02T00:00:00Z",
        stake_rewards="4000000000",
        rgp="500",
    ):
        return {
            "epochId": epoch_id,
            "startTimestamp": start,
            "endTimestamp": end,
            "totalTransactions": tx,
            "totalStakeRewards": stake_rewards,
            "referenceGasPrice": rgp,
            "checkpoints": {
                "nodes": [{
                    "rollingGasSummary": {
                        "computationCost": comp,
                        "storageCost": stor,
                        "storageRebate": rebate,
                        "nonRefundableStorageFee": "0",
                    }
                }]
            },
        }
    return _make_node


@pytest.fixture
def sample_nodes(make_node):
    """Two priced epochs (the second via its start date) and one unpriced epoch.

    Epoch 100: total 1 SUI over 1000 tx, 60.00% computation
    Epoch 101: total 1 SUI over 2000 tx, 90.00% computation
    Epoch 102: 100 MIST over 1 tx, no price on either date
    """
    return [
        make_node(epoch_id=100),
        make_node(
            epoch_id=101,
            comp="900000000",
            stor="300000000",
            rebate="200000000",
            tx=2000,
            start="2025-01-02T00:00:00Z",
            end="2025-01-03T00:00:00Z",
        ),
        make_node(
            epoch_id=102,
            comp="100",
            stor="0",
            rebate="0",
            tx=1,
            start="2025-01-05T00:00:00Z",
            end="2025-01-06T00:00:00Z",
            rgp="520",
        ),
    ]


@pytest.fixture
def price_map():
    """Daily SUI prices keyed by ISO date."""
    return {"2025-01-02": 2.0, "2025-01-04": 4.0}
