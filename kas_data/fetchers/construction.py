"""Quarterly construction cost index by cost category."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Union

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec
from ..errors import PxError, Skipped
from ..hierarchy import build_numbered_hierarchy
from ..labels import normalize_quarter_code, strip_code_prefix
from ..meta import recompute_time_bounds
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import sort_records

DATASET_ID = "kas_construction_cost_index_quarterly"

# The table also carries the category weights ("Peshat"); only quarters are selected.
QUARTER_VALUES: List[Dict[str, str]] = [
    {"code": "4", "label": "TM1"},
    {"code": "3", "label": "TM2"},
    {"code": "2", "label": "TM3"},
    {"code": "1", "label": "TM4"},
]

# Table code -> position in the published cost breakdown.
COST_CATEGORY_NUMBERING: Dict[str, str] = {
    "9": "0",
    "0": "1",
    "1": "1.1",
    "2": "1.2",
    "3": "1.3",
    "4": "2",
    "5": "3",
    "6": "4",
    "7": "5",
    "8": "6",
}

NOTE = (
    "Seria përfshin vetëm vlerat tremujore TM1–TM4; peshat 'Peshat' përjashtohen "
    "sepse përfaqësojnë përqindjen e kostove në total."
)


def sanitize_cost_category_label(label: str) -> str:
    text = label.strip()
    text = re.sub(r"\s*\((?:a\s*\+\s*b\s*\+\s*c|1\+2\+3\+4\+5\+6)\)\s*$", "", text, flags=re.IGNORECASE)
    text = re.sub(r"^[0-9]+\s*[.-]?\s*", "", text)
    text = re.sub(r"^[a-z]\.\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s+", " ", text).strip()
    return text or label


def format_cost_category_label(code: str, label: str) -> str:
    numbering = COST_CATEGORY_NUMBERING.get(code)
    if not numbering:
        return label
    return f"{numbering} {label}".strip()


def _cost_record(ctx: RecordContext) -> Dict[str, Any]:
    quarter = ctx.axis_by_code.get("Period")
    category = ctx.axis_by_code.get("Cost category")
    if quarter is None or category is None:
        raise PxError(f"{ctx.dataset_id}: missing period or cost axes")
    return {
        "period": f"{ctx.period}-{normalize_quarter_code(quarter.meta_label or quarter.label)}",
        "cost_category": category.code,
        "index": ctx.get_value("index"),
    }


def _finalize(ctx: MetaContext) -> Dict[str, Any]:
    if not ctx.records:
        return {"meta": ctx.meta, "records": ctx.records}

    records = sort_records(ctx.records, ["period", "cost_category"])
    # Drop periods with no index value in any category.
    active = {r["period"] for r in records if r["index"] is not None}
    if active:
        records = [r for r in records if r["period"] in active]
    meta = recompute_time_bounds(ctx.meta, (r["period"] for r in records))

    options = [
        {
            **option,
            "label": format_cost_category_label(option["key"], sanitize_cost_category_label(option["label"])),
        }
        for option in meta["dimensions"].get("cost_category", [])
    ]
    hierarchy = [
        {**node, "label": strip_code_prefix(node["label"])} for node in build_numbered_hierarchy(options)
    ]
    labels = {node["key"]: node["label"] for node in hierarchy}
    dimensions = {
        **meta["dimensions"],
        "cost_category": [{**o, "label": labels.get(o["key"], o["label"])} for o in options],
    }
    meta = {**meta, "dimensions": dimensions, "dimension_hierarchies": {"cost_category": hierarchy}}
    return {"meta": meta, "records": records}


def fetch_construction_cost_index(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=DATASET_ID,
            filename=f"{DATASET_ID}.json",
            parts=PATHS["construction_cost_index"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(code="Year", text="Viti", granularity="quarterly"),
            axes=[
                # Folded into the period, so no dimension of its own.
                AxisSpec(code="Period", text="Periudha", alias="", values=QUARTER_VALUES),
                AxisSpec(code="Cost category", text="Kategoritë të kostove dhe kodi", alias="cost_category"),
            ],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[
                        {
                            "code": "__value__",
                            "key": "index",
                            "label": "Indeksi i kostos së ndërtimit (2015 = 100)",
                            "unit": "indeks (2015=100)",
                        }
                    ],
                ),
            ],
            create_record=_cost_record,
            build_notes=lambda summary: [NOTE],
            finalize_dataset=_finalize,
        ),
        client=client,
    )
