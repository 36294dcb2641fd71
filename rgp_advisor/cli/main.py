"""
CLI interface for RGP Advisor.

Reads already-fetched epoch and price payloads from disk and prints the
metrics and the RGP calculation.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from rgp_advisor.config.loader import (
    RgpPolicy,
    describe_policy,
    load_policy_config,
    load_policy_from_env,
)
from rgp_advisor.core.jitter import SystemRandomSource
from rgp_advisor.core.prices import load_price_map
from rgp_advisor.core.proposal import Proposal, propose_rgp
from rgp_advisor.core.summary import MetricsReport, collect_metrics, epoch_row

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info-level logs"),
):
    """RGP Advisor CLI."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print("RGP Advisor - Use --help to see available commands")


@app.command()
def metrics(
    epochs: Path = typer.Option(..., "--epochs", "-e", help="JSON file with epoch records"),
    prices: Path = typer.Option(..., "--prices", "-p", help="JSON file with daily USD prices"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the metrics payload as JSON"),
):
    """Show per-epoch gas cost metrics and all-epoch averages."""
    try:
        report = collect_metrics(_load_epoch_nodes(epochs), _load_prices(prices))
        _display_metrics(report)
        if out is not None:
            out.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
            console.print(f"Wrote {out}")
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def propose(
    epochs: Path = typer.Option(..., "--epochs", "-e", help="JSON file with epoch records"),
    prices: Path = typer.Option(..., "--prices", "-p", help="JSON file with daily USD prices"),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML policy file (defaults to TARGET_AVG_TX_USD and RGP_* env vars)"
    ),
    current_rgp: Optional[int] = typer.Option(
        None,
        "--current-rgp",
        help="Override the current RGP (MIST) instead of the latest epoch's"
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the jitter draw"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """
    Compute a proposed reference gas price.

    This is a read-only operation: it never pushes metrics and never
    submits an on-chain transaction.
    """
    try:
        policy = load_policy_config(str(config)) if config else load_policy_from_env()
        proposal = propose_rgp(
            _load_epoch_nodes(epochs),
            _load_prices(prices),
            policy,
            current_rgp=current_rgp,
            rng=SystemRandomSource(seed),
        )
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        payload = {"epoch": proposal.epoch, **proposal.result.to_dict()}
        console.print_json(json.dumps(payload))
    else:
        _display_proposal(proposal, policy)
    sys.exit(EXIT_CODE_PASS)


def _load_json(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def _load_epoch_nodes(path: Path) -> List[Any]:
    """Accept a bare node list or a (data.)epochs.nodes GraphQL payload."""
    data = _load_json(path)
    if isinstance(data, dict) and "data" in data:
        data = data["data"]
    if isinstance(data, dict):
        data = (data.get("epochs") or {}).get("nodes")
    if not isinstance(data, list):
        raise ValueError("response missing epochs.nodes array")
    return data


def _load_prices(path: Path) -> Dict[str, float]:
    return load_price_map(_load_json(path))


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def _single_row_table(title: str, row: Dict[str, Any]) -> Table:
    table = Table(title=title)
    table.add_column("Field")
    table.add_column("Value", justify="right")
    for key, value in row.items():
        table.add_row(key, _format_value(value))
    return table


def _display_metrics(report: MetricsReport):
    """Display per-epoch metrics, overall averages and RGP inputs."""
    table = Table(title="Per-epoch metrics (SUI, USD, %, + price)")
    columns = [
        ("epoch", "epoch"),
        ("end", "end"),
        ("price_usd", "price"),
        ("txCount", "tx"),
        ("avgTotalPerTx_SUI", "total/tx SUI"),
        ("avgCompPerTx_SUI", "comp/tx SUI"),
        ("avgCompPerTx_USD", "comp/tx USD"),
        ("%comp_of_total", "%comp"),
    ]
    for _, header in columns:
        table.add_column(header, justify="right")
    for metric in report.per_epoch:
        row = epoch_row(metric)
        table.add_row(*(_format_value(row[key]) for key, _ in columns))
    console.print(table)

    overall = report.overall.to_dict()
    overall.pop("_num")
    console.print(_single_row_table("All-epoch simple averages (excluding N/A)", overall))
    console.print(_single_row_table("Latest epoch RGP", {
        "epochId": report.latest_epoch.epoch_id,
        "referenceGasPrice": report.latest_epoch.reference_gas_price,
    }))
    console.print(_single_row_table("Overall variables for RGP calculation", {
        "avgTotalCostPerTx_USD": report.for_rgp.avg_total_cost_per_tx_usd,
        "avgComputationCostPerTx_USD": report.for_rgp.avg_computation_cost_per_tx_usd,
        "avgCompShare": report.for_rgp.avg_comp_share,
        "lastEpochReferenceGasPrice": report.for_rgp.last_epoch_reference_gas_price,
    }))


def _display_proposal(proposal: Proposal, policy: RgpPolicy):
    """Display calculation inputs, details and summary lines."""
    result = proposal.result
    inputs = {
        "epoch": proposal.epoch if proposal.epoch is not None else "unknown",
        "compShare": result.inputs.comp_share,
        "compCostUsd": result.inputs.comp_cost_usd,
        "currentRgp": result.inputs.current_rgp,
        **describe_policy(policy),
    }
    console.print(_single_row_table("RGP Calculation Inputs", inputs))

    calc = result.calc.to_dict()
    console.print(_single_row_table("RGP Calculation Details", {
        key: calc[key]
        for key in ("R_raw", "clampMin", "clampMax", "R_clamped", "jitter", "R_final")
    }))

    console.print(f"\nProposed RGP (MIST): {result.proposed_rgp_mist}")
    console.print(f"Current RGP (MIST): {result.inputs.current_rgp}")
    console.print(f"Scale factor k: {result.calc.k:.6f}")
    if result.calc.clamp_min is not None or result.calc.clamp_max is not None:
        band = f"{result.calc.clamp_min:g} to {result.calc.clamp_max:g}"
    else:
        band = "none"
    console.print(f"Guard rails enabled: {result.inputs.guard_rails_enabled}, range: {band}")


if __name__ == "__main__":
    app()
