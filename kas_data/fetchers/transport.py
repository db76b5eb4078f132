"""Transport: monthly air traffic and yearly vehicle registrations by type."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import PxError, Skipped
from ..io import frame_records, write_json
from ..labels import normalize_whitespace, normalize_ym, slugify_label
from ..meta import create_meta, describe_px_sources, latest_timestamp, merge_notes, recompute_time_bounds
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import chosen_labels, relabel_dimension, sort_records, year_sort_key

logger = logging.getLogger(__name__)

AIR_DATASET_ID = "kas_transport_air_traffic_monthly"
VEHICLES_DATASET_ID = "kas_transport_vehicle_types_yearly"

AIR_COMPONENTS: List[Dict[str, str]] = [
    {
        "suffix": "inbound",
        "path_key": "transport_air_passengers_inbound",
        "key": "passengers_inbound",
        "label": "Inbound passengers",
        "unit": "people",
    },
    {
        "suffix": "outbound",
        "path_key": "transport_air_passengers_outbound",
        "key": "passengers_outbound",
        "label": "Outbound passengers",
        "unit": "people",
    },
    {
        "suffix": "flights",
        "path_key": "transport_air_flights",
        "key": "flights",
        "label": "Flights",
        "unit": "flights",
    },
]

TOTAL_VEHICLE_TYPE_KEY = "gjithsejt"
VEHICLE_TYPE_LABEL_OVERRIDES: Dict[str, str] = {
    "automjet_trans_3_5_dhe_mbi_3_5t": "Automjete transporti (≥3.5t)",
    "automjet_trans_n_n_3_5t": "Automjete transporti (<3.5t)",
    "kombibuset": "Kombibusë",
    "autobuset": "Autobusë",
    "moto_ikleta": "Motoçikleta",
    "traktor": "Traktorë",
    "rimorkio_n_n3_5t": "Rimorkio (<3.5t)",
    "rimorkio_3_5_dhe_mbi_3_5t": "Rimorkio (≥3.5t)",
}


# ---------------------------------------------------------------------------
# Air traffic
# ---------------------------------------------------------------------------


def fetch_air_component(
    out_dir: str,
    generated_at: str,
    component: Mapping[str, str],
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    dataset_id = f"{AIR_DATASET_ID}_{component['suffix']}"
    key = component["key"]
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=dataset_id,
            filename=f"{dataset_id}.json",
            parts=PATHS[component["path_key"]],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(
                code="Viti/muaji",
                text="Viti/muaji",
                to_label=lambda v: normalize_ym(v.code),
                granularity="monthly",
            ),
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": key, "label": component["label"], "unit": component["unit"]}],
                ),
            ],
            create_record=lambda ctx: {"period": ctx.period, "value": ctx.get_value(key)},
            write_file=False,
        ),
        client=client,
    )


def merge_air_components(components: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """One row per period, one column per component metric."""
    merged: Optional[pd.DataFrame] = None
    for key, dataset in components.items():
        frame = pd.DataFrame.from_records(dataset["records"], columns=["period", "value"])
        frame = frame.rename(columns={"value": key})
        merged = frame if merged is None else merged.merge(frame, on="period", how="outer")
    if merged is None:
        return pd.DataFrame(columns=["period"])
    return merged.sort_values("period").reset_index(drop=True)


def fetch_air_transport_monthly(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Dict[str, Any]:
    components: Dict[str, Dict[str, Any]] = {}
    for component in AIR_COMPONENTS:
        result = fetch_air_component(out_dir, generated_at, component, client=client)
        if isinstance(result, Skipped):
            raise PxError(f"transport: {component['suffix']} component skipped: {result.reason}")
        components[component["key"]] = result

    merged = merge_air_components(components)
    if merged.empty:
        raise PxError("transport: no records generated")
    periods = sorted(merged["period"].unique())

    source, source_urls = describe_px_sources([PATHS[c["path_key"]] for c in AIR_COMPONENTS])
    metas = [dataset["meta"] for dataset in components.values()]
    meta = create_meta(
        AIR_DATASET_ID,
        generated_at,
        updated_at=latest_timestamp(m.get("updated_at") for m in metas),
        time={
            "key": "period",
            "granularity": "monthly",
            "first": periods[0],
            "last": periods[-1],
            "count": len(periods),
        },
        fields=[{"key": c["key"], "label": c["label"], "unit": c["unit"]} for c in AIR_COMPONENTS],
        dimensions={},
        source=source,
        source_urls=source_urls,
        notes=merge_notes(m.get("notes") for m in metas),
    )
    dataset = {"meta": meta, "records": frame_records(merged)}
    write_json(out_dir, f"{AIR_DATASET_ID}.json", dataset)
    return dataset


# ---------------------------------------------------------------------------
# Vehicle types
# ---------------------------------------------------------------------------


def _vehicle_types(ctx: ValueContext) -> List[Dict[str, str]]:
    values = []
    for value in ctx.base_values:
        label = normalize_whitespace(value.meta_label or value.label or value.code)
        key = slugify_label(label)
        if key == TOTAL_VEHICLE_TYPE_KEY:
            continue
        values.append({"code": value.code, "key": key, "label": VEHICLE_TYPE_LABEL_OVERRIDES.get(key, label)})
    return values


def _vehicle_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    vehicle_type = ctx.axes.get("vehicle_type")
    if vehicle_type is None:
        return None
    return {"period": ctx.period, "vehicle_type": vehicle_type.value.key, "vehicles": ctx.get_value("vehicles")}


def _finalize_vehicles(ctx: MetaContext) -> Dict[str, Any]:
    records = sort_records(ctx.records, ["period"])
    meta = relabel_dimension(ctx.meta, "vehicle_type", chosen_labels(ctx, "vehicle_type"))
    meta = recompute_time_bounds(meta, (r["period"] for r in records))
    return {"meta": meta, "records": records}


def fetch_motor_vehicles_by_type(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    """Registered motor and non-motor vehicles per type, by year; the total row is dropped."""
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=VEHICLES_DATASET_ID,
            filename=f"{VEHICLES_DATASET_ID}.json",
            parts=PATHS["transport_vehicle_types_yearly"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(
                code="year",
                text="viti",
                to_label=lambda v: normalize_whitespace(v.meta_label or v.label or v.code),
                sort_key=year_sort_key,
                granularity="yearly",
            ),
            axes=[
                AxisSpec(
                    code="type of motor",
                    text="lloji i mjetit motorik",
                    alias="vehicle_type",
                    resolve_values=_vehicle_types,
                ),
            ],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[
                        {
                            "code": "__value__",
                            "key": "vehicles",
                            "label": "Mjetet motorike dhe jo motorike",
                            "unit": "vehicles",
                        }
                    ],
                ),
            ],
            create_record=_vehicle_record,
            finalize_dataset=_finalize_vehicles,
        ),
        client=client,
    )
