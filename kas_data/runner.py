"""Run every table fetch in sequence and report failures at the end.

Each table runs in isolation: a failure is logged and remembered, and the
remaining tables still run.  Once everything has been attempted a single
:class:`~kas_data.errors.PxError` names the tables that failed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from .config import FUEL_SPECS, OUTPUT_DIR
from .errors import PxError
from .fetchers import (
    fetch_air_transport_monthly,
    fetch_construction_cost_index,
    fetch_cpi_average_prices_yearly,
    fetch_cpi_monthly,
    fetch_energy_monthly,
    fetch_fuel_table,
    fetch_gdp_by_activity_quarterly,
    fetch_government_expenditure,
    fetch_government_revenue,
    fetch_imports_by_partner,
    fetch_labour_employment_activity_gender,
    fetch_motor_vehicles_by_type,
    fetch_tourism_country,
    fetch_tourism_region,
    fetch_trade_chapters_monthly,
    fetch_trade_partners,
    fetch_wage_levels,
    write_fuel_combined_dataset,
)
from .pipeline import utc_timestamp
from .transport import PxClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskRunner:
    """Run named tasks, logging and collecting the ones that raise."""

    def __init__(self) -> None:
        self.failed: List[str] = []

    def run(self, name: str, task: Callable[[], T]) -> Optional[T]:
        try:
            return task()
        except Exception as exc:
            logger.warning("%s download failed: %s", name, exc)
            logger.debug("%s traceback", name, exc_info=True)
            self.failed.append(name)
            return None

    def raise_for_failures(self) -> None:
        if not self.failed:
            return
        label = "dataset" if len(self.failed) == 1 else "datasets"
        raise PxError(f"Failed to fetch {label}: {', '.join(self.failed)}")


def _record_count(dataset: Any) -> int:
    if isinstance(dataset, dict):
        return len(dataset.get("records") or [])
    return 0


def run_all(
    out_dir: str,
    partners: Optional[Sequence[str]],
    *,
    client: Optional[PxClient] = None,
    generated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Fetch every table into ``out_dir``; ``partners=None`` skips the partner tables."""
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    started = generated_at or utc_timestamp()
    client = client or PxClient()
    runner = TaskRunner()
    results: Dict[str, Any] = {}

    results["energy"] = runner.run(
        "Energy Monthly", lambda: fetch_energy_monthly(out_dir, started, client=client)
    )

    fuel_datasets: Dict[str, Any] = {}
    for fuel_name, spec in FUEL_SPECS.items():
        dataset = runner.run(
            f"Fuel: {fuel_name}",
            lambda: fetch_fuel_table(out_dir, fuel_name, spec, started, client=client),
        )
        if isinstance(dataset, dict):
            fuel_datasets[fuel_name] = dataset
    results["fuels"] = runner.run(
        "Fuel: dataset", lambda: write_fuel_combined_dataset(out_dir, started, fuel_datasets)
    )

    results["tourism_region"] = runner.run(
        "Tourism Region", lambda: fetch_tourism_region(out_dir, started, client=client)
    )
    results["tourism_country"] = runner.run(
        "Tourism Country", lambda: fetch_tourism_country(out_dir, started, client=client)
    )
    results["cpi"] = runner.run(
        "CPI Monthly", lambda: fetch_cpi_monthly(out_dir, started, client=client)
    )

    # Fetchers taking only (out_dir, generated_at, client).
    tables = [
        ("trade_chapters", "Trade Chapters", fetch_trade_chapters_monthly),
        ("air_transport", "Air Transport", fetch_air_transport_monthly),
        ("motor_vehicles", "Motor Vehicles", fetch_motor_vehicles_by_type),
        ("labour_employment", "Labour Employment", fetch_labour_employment_activity_gender),
        ("labour_wages", "Labour Wages", fetch_wage_levels),
        ("cpi_average_prices", "CPI Average Prices", fetch_cpi_average_prices_yearly),
        ("construction_cost_index", "Construction Cost Index", fetch_construction_cost_index),
        ("gdp", "GDP by Activity", fetch_gdp_by_activity_quarterly),
        ("government_expenditure", "Government Expenditure", fetch_government_expenditure),
        ("government_revenue", "Government Revenue", fetch_government_revenue),
    ]
    for key, name, fetch in tables:
        results[key] = runner.run(name, lambda: fetch(out_dir, started, client=client))

    if partners:
        results["imports_by_partner"] = runner.run(
            "Imports by Partner",
            lambda: fetch_imports_by_partner(out_dir, partners, started, client=client),
        )
        results["trade_partners"] = runner.run(
            "Trade Partners",
            lambda: fetch_trade_partners(out_dir, partners, started, client=client),
        )

    runner.raise_for_failures()
    logger.info(
        "energy (%s rows) | fuels (%s rows)",
        _record_count(results["energy"]),
        _record_count(results["fuels"]),
    )
    return results


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="fetch_kas",
        description="Fetch Kosovo ASKdata PxWeb tables and save JSON datasets.",
    )
    ap.add_argument("--out", default=OUTPUT_DIR, help="Output directory (default: %(default)s).")
    ap.add_argument(
        "--partners",
        default=None,
        help="Comma-separated partner codes for the imports table, or ALL (default).",
    )
    ap.add_argument("--no-partners", action="store_true", help="Skip the imports by partner table.")
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return ap.parse_args(argv)


def resolve_partners(args: argparse.Namespace) -> Optional[List[str]]:
    if args.no_partners:
        return None
    tokens = [p.strip() for p in (args.partners or "").split(",") if p.strip()]
    return tokens or ["ALL"]


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    out_dir = str(Path(args.out).resolve())
    partners = resolve_partners(args)
    logger.info("ASKdata PxWeb consolidator")
    logger.info("   out     : %s", out_dir)
    logger.info("   partners: %s", ",".join(partners) if partners else "(none)")

    try:
        run_all(out_dir, partners)
    except PxError as exc:
        logger.error("FAILED: %s", exc)
        return 2
    except Exception as exc:
        logger.error("FAILED: %s", exc)
        return 1
    logger.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
