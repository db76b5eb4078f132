"""Electricity balance and fuel balance tables.

The electricity table has a fixed list of indicators; the four fuel tables
(gasoline, diesel, LNG, jet fuel) share a layout and are merged into a
single ``kas_energy_fuels_monthly.json`` once all of them have been
fetched.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..config import FUEL_METRICS, FUEL_SPECS, PATHS
from ..dimensions import AxisSpec, MetricSpec, ResolverContext, ValueContext
from ..errors import PxError, Skipped
from ..io import frame_records, write_json
from ..labels import normalize_fuel_field, normalize_ym
from ..meta import create_meta, describe_px_sources, latest_timestamp
from ..metadata import find_time_dimension
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext

logger = logging.getLogger(__name__)

ENERGY_INDICATORS: List[Dict[str, str]] = [
    {"code": "0", "key": "production_thermal_gwh", "label": "Prodhimi Bruto nga Termocentralet", "unit": "GWh"},
    {"code": "1", "key": "production_hydro_gwh", "label": "Prodhimi Bruto nga Hidrocentralet", "unit": "GWh"},
    {"code": "2", "key": "production_wind_solar_gwh", "label": "Prodhimi Bruto nga Era dhe ajo Solare", "unit": "GWh"},
    {"code": "3", "key": "import_gwh", "label": "Importi", "unit": "GWh"},
    {"code": "4", "key": "export_gwh", "label": "Eksporti", "unit": "GWh"},
    {"code": "5", "key": "gross_available_gwh", "label": "Energjia Elektrike bruto në Dispozicion", "unit": "GWh"},
    {"code": "6", "key": "household_consumption_gwh", "label": "Amvisnia", "unit": "GWh"},
    {"code": "7", "key": "commercial_consumption_gwh", "label": "Komercial", "unit": "GWh"},
    {"code": "8", "key": "industry_consumption_gwh", "label": "Industri", "unit": "GWh"},
    {"code": "9", "key": "public_lighting_consumption_gwh", "label": "Ndriqimi publik & tjerat", "unit": "GWh"},
    {"code": "10", "key": "high_voltage_consumption_gwh", "label": "Konsumatorët  220-110kv", "unit": "GWh"},
    {"code": "11", "key": "mining_consumption_gwh", "label": "Mihjet", "unit": "GWh"},
    {"code": "12", "key": "consumption_total_gwh", "label": "Konsumi i energjisë Elektrike", "unit": "GWh"},
]

ENERGY_PRODUCTION_KEYS = (
    "production_thermal_gwh",
    "production_hydro_gwh",
    "production_wind_solar_gwh",
)

FUELS_DATASET_ID = "kas_energy_fuels_monthly"


def _energy_record(ctx: RecordContext) -> Dict[str, Any]:
    record: Dict[str, Any] = {"period": ctx.period, "production_gwh": None}
    for indicator in ENERGY_INDICATORS:
        record[indicator["key"]] = ctx.get_value(indicator["key"])
    parts = [record[key] for key in ENERGY_PRODUCTION_KEYS if record[key] is not None]
    record["production_gwh"] = sum(parts) if parts else None
    return record


def fetch_energy_monthly(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_energy_electricity_monthly",
            filename="kas_energy_electricity_monthly.json",
            parts=PATHS["energy_monthly"],
            out_dir=out_dir,
            generated_at=generated_at,
            unit="GWh",
            time_dimension=AxisSpec(
                code="Viti/muaji",
                text="Viti/muaji",
                to_label=lambda v: normalize_ym(v.code),
                granularity="monthly",
            ),
            metric_dimensions=[
                MetricSpec(code="MWH", text="MWH", values=[dict(i) for i in ENERGY_INDICATORS]),
            ],
            extra_fields=[
                {"key": "production_gwh", "label": "Gross Production (total)", "unit": "GWh"},
            ],
            create_record=_energy_record,
        ),
        client=client,
    )


def fetch_fuel_table(
    out_dir: str,
    name: str,
    spec: Mapping[str, str],
    generated_at: str,
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    """Fetch one fuel balance table.  Not written on its own."""
    dataset_id = f"kas_energy_{name}_monthly"
    label = spec.get("label") or name

    def measure_code(ctx: ResolverContext) -> str:
        for variable in ctx.variables:
            if variable.code and variable.code != ctx.time_code:
                return variable.code
        raise PxError(f"{dataset_id}: missing measure dimension")

    def fuel_values(ctx: ValueContext):
        return [
            {
                "code": value.code,
                "label": value.meta_label,
                "key": normalize_fuel_field(value.meta_label),
                "unit": "tonnes",
            }
            for value in ctx.base_values
        ]

    def fuel_meta(ctx: MetaContext) -> Dict[str, Any]:
        periods = [v.label for v in ctx.axes[0].values]
        return create_meta(
            ctx.dataset_id,
            ctx.generated_at,
            updated_at=ctx.cube_summary.updated_at,
            time={
                "key": "period",
                "granularity": ctx.granularity,
                "first": periods[0],
                "last": periods[-1],
                "count": ctx.periods,
            },
            fields=ctx.fields,
            unit="tonnes",
            source=ctx.source,
            source_urls=ctx.source_urls,
            title=ctx.cube_summary.title,
            label=label,
        )

    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=dataset_id,
            filename=f"{dataset_id}.json",
            parts=PATHS[spec["path_key"]],
            out_dir=out_dir,
            generated_at=generated_at,
            unit="tonnes",
            time_dimension=AxisSpec(
                code=lambda ctx: find_time_dimension(ctx.meta),
                to_label=lambda v: normalize_ym(v.code),
                granularity="monthly",
            ),
            metric_dimensions=[MetricSpec(code=measure_code, resolve_values=fuel_values)],
            create_record=lambda ctx: {"period": ctx.period, **ctx.values},
            build_meta=fuel_meta,
            write_file=False,
        ),
        client=client,
    )


def combine_fuel_records(datasets: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """Stack the per-fuel records into one frame with a ``fuel`` column."""
    frames = []
    for fuel, dataset in datasets.items():
        frame = pd.DataFrame.from_records(dataset.get("records", []))
        if frame.empty:
            continue
        frame.insert(1, "fuel", fuel)
        frames.append(frame)
    if not frames:
        return pd.DataFrame(columns=["period", "fuel", *FUEL_METRICS])
    combined = pd.concat(frames, ignore_index=True)
    for metric in FUEL_METRICS:
        if metric not in combined.columns:
            combined[metric] = None
    combined = combined[["period", "fuel", *FUEL_METRICS]]
    fuel_order = {fuel: i for i, fuel in enumerate(FUEL_SPECS)}
    combined["fuel_order"] = combined["fuel"].map(fuel_order)
    return (
        combined.sort_values(["period", "fuel_order"])
        .drop(columns=["fuel_order"])
        .reset_index(drop=True)
    )


def write_fuel_combined_dataset(
    out_dir: str,
    generated_at: str,
    datasets: Mapping[str, Optional[Mapping[str, Any]]],
) -> Dict[str, Any]:
    """Merge the four fuel datasets; every fuel must have been fetched."""
    missing = [
        fuel for fuel in FUEL_SPECS
        if not isinstance(datasets.get(fuel), Mapping)
    ]
    if missing:
        raise PxError(f"{FUELS_DATASET_ID}: missing fuel datasets: {', '.join(missing)}")

    combined = combine_fuel_records({fuel: datasets[fuel] for fuel in FUEL_SPECS})
    if combined.empty:
        raise PxError(f"{FUELS_DATASET_ID}: no fuel records to combine")
    periods = sorted(combined["period"].unique())
    source, source_urls = describe_px_sources([PATHS[spec["path_key"]] for spec in FUEL_SPECS.values()])

    metas = [datasets[fuel]["meta"] for fuel in FUEL_SPECS]
    labels = {field["key"]: field["label"] for meta in metas for field in meta["fields"]}
    fields = [
        {"key": metric, "label": labels.get(metric, metric), "unit": "tonnes"}
        for metric in FUEL_METRICS
    ]
    meta = create_meta(
        FUELS_DATASET_ID,
        generated_at,
        updated_at=latest_timestamp(m.get("updated_at") for m in metas),
        time={
            "key": "period",
            "granularity": "monthly",
            "first": periods[0],
            "last": periods[-1],
            "count": len(periods),
        },
        fields=fields,
        dimensions={
            "fuel": [
                {"key": fuel, "label": spec["label"]} for fuel, spec in FUEL_SPECS.items()
            ]
        },
        unit="tonnes",
        source=source,
        source_urls=source_urls,
    )
    dataset = {"meta": meta, "records": frame_records(combined)}
    write_json(out_dir, f"{FUELS_DATASET_ID}.json", dataset)
    logger.info("Combined %s fuel records from %s tables", len(combined), len(metas))
    return dataset
