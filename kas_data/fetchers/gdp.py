"""Quarterly GDP by economic activity, nominal and at previous-year prices."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import PxError, Skipped
from ..io import frame_records, write_json
from ..labels import normalize_quarter_period, normalize_whitespace, slugify_label
from ..meta import create_meta, describe_px_sources, latest_timestamp
from ..pipeline import PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import scale

logger = logging.getLogger(__name__)

DATASET_ID = "kas_gdp_by_activity_quarterly"
ACTIVITY_CODE = "Përshkrimi i aktiviteteve NACE"

GDP_TABLES: List[Dict[str, str]] = [
    {"suffix": "nominal", "path_key": "gdp_quarterly_nominal", "key": "nominal_eur", "label": "BPV në çmime aktuale"},
    {
        "suffix": "real",
        "path_key": "gdp_quarterly_constant",
        "key": "real_eur",
        "label": "BPV në çmime të vitit paraprak",
    },
]

AGGREGATE_OVERRIDES: Dict[str, Dict[str, str]] = {
    "21": {"key": "gva_total", "label": "Bruto vlera e shtuar, gjithsej"},
    "22": {"key": "net_taxes_on_products", "label": "Taksa neto në produkte"},
    "23": {"key": "gdp_total", "label": "BPV gjithsej"},
}

NOTES = [
    "Vlerat burimore paraqiten në mijë EUR; këtu janë shkallëzuar në EUR.",
    "Seria kombinon BPV sipas aktiviteteve ekonomike në çmime aktuale (nominale) "
    "dhe në çmime të vitit paraprak (reale).",
    "Rreshtat agregat (Bruto vlera e shtuar, taksat neto në produkte dhe BPV gjithsej) "
    "përfshihen për referencë; mos i grumbullo përmes kategorive kur krahaso degët.",
]


def _activities(ctx: ValueContext) -> List[Dict[str, str]]:
    values = []
    for value in ctx.base_values:
        override = AGGREGATE_OVERRIDES.get(value.code)
        if override:
            values.append({"code": value.code, **override, "category": "aggregate"})
            continue
        label = normalize_whitespace(value.meta_label or value.label or value.code)
        values.append(
            {"code": value.code, "key": slugify_label(label), "label": label, "category": "activity"}
        )
    return values


def fetch_gdp_table(
    out_dir: str,
    generated_at: str,
    table: Mapping[str, str],
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    key = table["key"]

    def record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
        activity = ctx.axes.get("activity")
        if activity is None:
            return None
        return {
            "period": ctx.period,
            "activity": activity.value.key,
            "category": activity.value.get("category", "activity"),
            key: scale(ctx.get_value(key), 1000),
        }

    dataset_id = f"{DATASET_ID}_{table['suffix']}"
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=dataset_id,
            filename=f"{dataset_id}.json",
            parts=PATHS[table["path_key"]],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(
                code="Viti/tremujori",
                text="Viti/tremujori",
                to_label=lambda v: normalize_quarter_period(v.meta_label or v.label or v.code),
                sort_key=lambda v: v.label,
                granularity="quarterly",
            ),
            axes=[AxisSpec(code=ACTIVITY_CODE, text=ACTIVITY_CODE, alias="activity", resolve_values=_activities)],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": key, "label": table["label"], "unit": "EUR"}],
                ),
            ],
            create_record=record,
            write_file=False,
        ),
        client=client,
    )


def merge_gdp_tables(tables: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """Outer-join on (period, activity) and drop rows with no value in any table."""
    on = ["period", "activity", "category"]
    merged: Optional[pd.DataFrame] = None
    for key, dataset in tables.items():
        frame = pd.DataFrame.from_records(dataset["records"], columns=[*on, key])
        merged = frame if merged is None else merged.merge(frame, on=on, how="outer")
    if merged is None:
        return pd.DataFrame(columns=on)
    merged = merged.dropna(subset=list(tables), how="all")
    return merged.sort_values(["period", "activity"]).reset_index(drop=True)


def fetch_gdp_by_activity_quarterly(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Dict[str, Any]:
    tables: Dict[str, Dict[str, Any]] = {}
    for table in GDP_TABLES:
        result = fetch_gdp_table(out_dir, generated_at, table, client=client)
        if isinstance(result, Skipped):
            raise PxError(f"gdp: {table['suffix']} table skipped: {result.reason}")
        tables[table["key"]] = result

    merged = merge_gdp_tables(tables)
    if merged.empty:
        raise PxError(f"{DATASET_ID}: no GDP records resolved")
    periods = sorted(merged["period"].unique())

    nominal_meta = tables["nominal_eur"]["meta"]
    aggregate_labels = {o["key"]: o["label"] for o in AGGREGATE_OVERRIDES.values()}
    activity_options = [
        {**option, "label": aggregate_labels.get(option["key"], option["label"])}
        for option in nominal_meta["dimensions"].get("activity", [])
    ]
    source, source_urls = describe_px_sources([PATHS[t["path_key"]] for t in GDP_TABLES])
    meta = create_meta(
        DATASET_ID,
        generated_at,
        updated_at=latest_timestamp(d["meta"].get("updated_at") for d in tables.values()),
        time={
            "key": "period",
            "granularity": "quarterly",
            "first": periods[0],
            "last": periods[-1],
            "count": len(periods),
        },
        fields=[{"key": t["key"], "label": t["label"], "unit": "EUR"} for t in GDP_TABLES],
        dimensions={"activity": activity_options},
        source=source,
        source_urls=source_urls,
        notes=list(NOTES),
        aggregates=[o["key"] for o in AGGREGATE_OVERRIDES.values()],
    )
    dataset = {"meta": meta, "records": frame_records(merged)}
    write_json(out_dir, f"{DATASET_ID}.json", dataset)
    logger.info("Merged nominal and real GDP into %s records", len(dataset["records"]))
    return dataset
