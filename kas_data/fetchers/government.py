"""Quarterly government finance statistics (ESA 2010): expenditure and revenue."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Union

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import Skipped
from ..hierarchy import build_code_prefix_hierarchy
from ..labels import (
    normalize_quarter_code,
    normalize_quarter_period,
    normalize_whitespace,
    slugify_label,
    strip_code_prefix,
)
from ..meta import recompute_time_bounds
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import scale, sort_records, year_sort_key

AMOUNT_METRIC = MetricSpec(
    code=lambda ctx: None,
    values=[{"code": "__value__", "key": "amount_eur", "label": "Shuma", "unit": "EUR"}],
)

NOTES = ["Vlerat burimore duken të raportuara në milion EUR; këtu janë shkallëzuar në EUR."]


def _categories(ctx: ValueContext) -> List[Dict[str, str]]:
    """ESA categories without the grand total; keys keep the ESA code."""
    values = []
    for value in ctx.base_values:
        raw = normalize_whitespace(value.meta_label or value.label or value.code)
        if re.match(r"^gjithsej", raw, flags=re.IGNORECASE):
            continue
        values.append({"code": value.code, "key": slugify_label(raw), "label": strip_code_prefix(raw)})
    return values


def _category_key(ctx: RecordContext) -> Optional[str]:
    category = ctx.axes.get("category")
    if category is None:
        return None
    return category.value.key or category.code


def _sorted_dataset(ctx: MetaContext) -> Dict[str, Any]:
    records = sort_records(ctx.records, ["period", "category"])
    meta = recompute_time_bounds(ctx.meta, (r["period"] for r in records))
    return {"meta": meta, "records": records}


# ---------------------------------------------------------------------------
# Expenditure
# ---------------------------------------------------------------------------


def _expenditure_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    category = _category_key(ctx)
    if category is None:
        return None
    return {"period": ctx.period, "category": category, "amount_eur": scale(ctx.get_value("amount_eur"), 1_000_000)}


def fetch_government_expenditure(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_government_expenditure_quarterly",
            filename="kas_government_expenditure_quarterly.json",
            parts=PATHS["government_expenditure_quarterly"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(
                code="tremujoret",
                text="tremujoret",
                to_label=lambda v: normalize_quarter_period(v.meta_label or v.label or v.code),
                sort_key=lambda v: v.label,
                granularity="quarterly",
            ),
            axes=[
                AxisSpec(
                    code="ESA2010 përshkrimi",
                    text="ESA2010 përshkrimi",
                    alias="category",
                    resolve_values=_categories,
                ),
            ],
            metric_dimensions=[AMOUNT_METRIC],
            create_record=_expenditure_record,
            build_notes=lambda summary: list(NOTES),
            finalize_dataset=_sorted_dataset,
        ),
        client=client,
    )


# ---------------------------------------------------------------------------
# Revenue
# ---------------------------------------------------------------------------


def _revenue_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    category = _category_key(ctx)
    quarter = ctx.axes.get("quarter")
    if category is None or quarter is None:
        return None
    return {
        "period": f"{ctx.period}-{quarter.label or quarter.meta_label or 'Q1'}",
        "category": category,
        "amount_eur": scale(ctx.get_value("amount_eur"), 1_000_000),
    }


def _finalize_revenue(ctx: MetaContext) -> Dict[str, Any]:
    dataset = _sorted_dataset(ctx)
    meta = dataset["meta"]
    hierarchy = build_code_prefix_hierarchy(meta["dimensions"].get("category", []))
    return {"meta": {**meta, "dimension_hierarchies": {"category": hierarchy}}, "records": dataset["records"]}


def fetch_government_revenue(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    """Revenue per ESA category; the hierarchy follows code prefixes (``D2`` > ``D21``)."""
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_government_revenue_quarterly",
            filename="kas_government_revenue_quarterly.json",
            parts=PATHS["government_revenue_quarterly"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=AxisSpec(
                code="Year",
                text="Viti",
                to_label=lambda v: v.meta_label or v.label or v.code,
                sort_key=year_sort_key,
                granularity="quarterly",
            ),
            axes=[
                AxisSpec(
                    code="Period",
                    text="Tremujori",
                    alias="quarter",
                    to_label=lambda v: normalize_quarter_code(v.meta_label or v.label or v.code),
                ),
                AxisSpec(code="Variables", text="Variabla", alias="category", resolve_values=_categories),
            ],
            metric_dimensions=[AMOUNT_METRIC],
            create_record=_revenue_record,
            build_notes=lambda summary: list(NOTES),
            finalize_dataset=_finalize_revenue,
        ),
        client=client,
    )
