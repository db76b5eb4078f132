"""Consumer prices: monthly CPI index and change merged per group, yearly average prices."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec
from ..errors import PxError, Skipped
from ..hierarchy import build_numbered_hierarchy
from ..io import frame_records, write_json
from ..labels import normalize_ym
from ..meta import create_meta, describe_px_sources, latest_timestamp, merge_notes
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import sort_records

logger = logging.getLogger(__name__)

CPI_DATASET_ID = "kas_cpi_monthly"
CPI_FILENAME = "kas_cpi_monthly.json"

CPI_METRIC_FIELDS: List[Dict[str, str]] = [
    {"key": "index", "label": "CPI Indeksi", "unit": "index"},
    {"key": "change", "label": "CPI Ndryshimi (m/m)", "unit": "%"},
]

COMPONENT_SPECS: Dict[str, Dict[str, str]] = {
    "index": {"dataset_id": "kas_cpi_index_monthly", "path_key": "cpi_index", "unit": "index"},
    "change": {"dataset_id": "kas_cpi_change_monthly", "path_key": "cpi_change", "unit": "%"},
}


def _group_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    group = ctx.axes.get("group")
    if group is None:
        return None
    return {"period": ctx.period, "group": group.code, "value": ctx.get_value("value")}


def fetch_cpi_component(
    out_dir: str,
    generated_at: str,
    component: Mapping[str, str],
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    dataset_id = component["dataset_id"]
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
            axes=[
                AxisSpec(code="Grupet dhe nëngrupet", text="Grupet dhe nëngrupet", alias="group"),
            ],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": "value", "label": "Value", "unit": component["unit"]}],
                ),
            ],
            create_record=_group_record,
            write_file=False,
        ),
        client=client,
    )


def merge_cpi_records(index_dataset: Mapping[str, Any], change_dataset: Mapping[str, Any]) -> pd.DataFrame:
    """Outer-join the two components on (period, group).

    The change table publishes percentages; ``change`` is stored as a ratio.
    """
    columns = ["period", "group", "value"]
    index = pd.DataFrame.from_records(index_dataset["records"], columns=columns)
    change = pd.DataFrame.from_records(change_dataset["records"], columns=columns)
    index = index.rename(columns={"value": "index"})
    change = change.rename(columns={"value": "change"})
    change["change"] = pd.to_numeric(change["change"]) / 100
    merged = index.merge(change, on=["period", "group"], how="outer")
    return merged.sort_values(["period", "group"]).reset_index(drop=True)


def _group_options(
    index_dataset: Mapping[str, Any], change_dataset: Mapping[str, Any]
) -> List[Dict[str, str]]:
    options = (
        index_dataset["meta"]["dimensions"].get("group")
        or change_dataset["meta"]["dimensions"].get("group")
    )
    if not options:
        raise PxError("cpi: group dimension options missing")
    return options


def build_cpi_dataset(
    index_dataset: Mapping[str, Any],
    change_dataset: Mapping[str, Any],
    generated_at: str,
) -> Dict[str, Any]:
    merged = merge_cpi_records(index_dataset, change_dataset)
    if merged.empty:
        raise PxError("cpi: no CPI records generated")
    periods = sorted(merged["period"].unique())

    options = _group_options(index_dataset, change_dataset)
    hierarchy = build_numbered_hierarchy(options)
    labels = {node["key"]: node["label"] for node in hierarchy}
    group_options = [
        {**option, "label": labels.get(option["key"], option["label"])} for option in options
    ]

    source, source_urls = describe_px_sources([PATHS["cpi_index"], PATHS["cpi_change"]])
    index_meta, change_meta = index_dataset["meta"], change_dataset["meta"]
    meta = create_meta(
        CPI_DATASET_ID,
        generated_at,
        updated_at=latest_timestamp([index_meta.get("updated_at"), change_meta.get("updated_at")]),
        time={
            "key": "period",
            "granularity": "monthly",
            "first": periods[0],
            "last": periods[-1],
            "count": len(periods),
        },
        fields=[dict(f) for f in CPI_METRIC_FIELDS],
        dimensions={"group": group_options},
        source=source,
        source_urls=source_urls,
        title=index_meta.get("title") or change_meta.get("title"),
        notes=merge_notes([index_meta.get("notes"), change_meta.get("notes")]),
        dimension_hierarchies={"group": hierarchy},
    )
    return {"meta": meta, "records": frame_records(merged)}


def fetch_cpi_monthly(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Dict[str, Any]:
    components = {
        name: fetch_cpi_component(out_dir, generated_at, spec, client=client)
        for name, spec in COMPONENT_SPECS.items()
    }
    for name, result in components.items():
        if isinstance(result, Skipped):
            raise PxError(f"cpi: {name} component skipped: {result.reason}")

    dataset = build_cpi_dataset(components["index"], components["change"], generated_at)
    write_json(out_dir, CPI_FILENAME, dataset)
    logger.info("Merged CPI index and change into %s records", len(dataset["records"]))
    return dataset


# ---------------------------------------------------------------------------
# Yearly average prices
# ---------------------------------------------------------------------------

AVERAGE_PRICES_DATASET_ID = "kas_cpi_average_prices_yearly"


def _average_price_record(ctx: RecordContext) -> Dict[str, Any]:
    article = ctx.axes.get("article")
    if article is None:
        raise PxError(f"{ctx.dataset_id}: missing article axis")
    return {"period": ctx.period, "article": article.code, "price": ctx.get_value("price")}


def _finalize_average_prices(ctx: MetaContext) -> Dict[str, Any]:
    records = sort_records(ctx.records, ["period", "article"])
    return {"meta": ctx.meta, "records": records}


def fetch_cpi_average_prices_yearly(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    """Yearly average retail price per article, in euro."""
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=AVERAGE_PRICES_DATASET_ID,
            filename=f"{AVERAGE_PRICES_DATASET_ID}.json",
            parts=PATHS["cpi_average_prices"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(code="viti", text="viti", granularity="yearly"),
            axes=[AxisSpec(code="artikujt", text="artikujt", alias="article")],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": "price", "label": "Çmimet mesatare", "unit": "€"}],
                ),
            ],
            create_record=_average_price_record,
            finalize_dataset=_finalize_average_prices,
        ),
        client=client,
    )
