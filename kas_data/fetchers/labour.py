"""Labour market: yearly wage levels and quarterly employment by activity and gender."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import Skipped
from ..labels import normalize_quarter_code, normalize_whitespace, slugify_label
from ..meta import merge_notes, recompute_time_bounds
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import scale, sort_records, year_sort_key

WAGE_GROUPS: Dict[str, Dict[str, str]] = {
    "0": {"key": "average", "label": "Pagë mesatare"},
    "1": {"key": "public_sector", "label": "Sektori publik"},
    "2": {"key": "public_enterprises", "label": "Ndërmarrjet publike"},
    "3": {"key": "private_sector", "label": "Sektori privat"},
}

WAGE_METRICS: List[Dict[str, str]] = [
    {"code": "0", "key": "gross_eur", "label": "Pagë bruto", "unit": "EUR"},
    {"code": "1", "key": "net_eur", "label": "Pagë neto", "unit": "EUR"},
]

GENDERS: Dict[str, Dict[str, str]] = {
    "0": {"key": "male", "label": "Meshkuj"},
    "1": {"key": "female", "label": "Femra"},
    "2": {"key": "total", "label": "Gjithsej"},
}

EMPLOYMENT_ACTIVITY_CODE = "Punësimi sipas aktiviteteve (NË MIJËRA)"
EMPLOYMENT_NOTE = (
    "Vlerat origjinale janë në mijë persona; të konvertuara këtu në numër personash (x1000)."
)


def _mapped_values(mapping: Dict[str, Dict[str, str]]):
    """Resolver applying a code -> key/label mapping; unknown codes get a slug key."""

    def resolve(ctx: ValueContext) -> List[Dict[str, str]]:
        values = []
        for value in ctx.base_values:
            known = mapping.get(value.code)
            label = known["label"] if known else normalize_whitespace(value.meta_label or value.label or value.code)
            key = known["key"] if known else slugify_label(label)
            values.append({"code": value.code, "key": key, "label": label})
        return values

    return resolve


def _yearly_axis(granularity: str) -> AxisSpec:
    return AxisSpec(code="Viti", text="Viti", granularity=granularity, sort_key=year_sort_key)


# ---------------------------------------------------------------------------
# Wages
# ---------------------------------------------------------------------------


def _wage_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    group = ctx.axes.get("group")
    if group is None:
        return None
    return {
        "period": ctx.period,
        "group": group.value.key or slugify_label(normalize_whitespace(group.meta_label or group.code)),
        "gross_eur": ctx.get_value("gross_eur"),
        "net_eur": ctx.get_value("net_eur"),
    }


def _finalize_wages(ctx: MetaContext) -> Dict[str, Any]:
    records = sort_records(ctx.records, ["period", "group"])
    meta = recompute_time_bounds(ctx.meta, (r["period"] for r in records))
    return {"meta": meta, "records": records}


def fetch_wage_levels(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    """Average gross and net monthly wage per sector, by year."""
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_labour_wages_yearly",
            filename="kas_labour_wages_yearly.json",
            parts=PATHS["labour_wages"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=_yearly_axis("yearly"),
            axes=[
                AxisSpec(
                    code="Variabla",
                    text="Variabla",
                    alias="group",
                    resolve_values=_mapped_values(WAGE_GROUPS),
                ),
            ],
            metric_dimensions=[MetricSpec(code="Bruto/neto", text="Bruto/neto", values=WAGE_METRICS)],
            create_record=_wage_record,
            finalize_dataset=_finalize_wages,
        ),
        client=client,
    )


# ---------------------------------------------------------------------------
# Employment by activity and gender
# ---------------------------------------------------------------------------


def clean_activity_label(label: str) -> str:
    """``"A - Bujqësia"`` -> ``"Bujqësia"``."""
    trimmed = label.strip()
    stripped = trimmed.split("-", 1)[-1].strip()
    return stripped or trimmed


def _activities(ctx: ValueContext) -> List[Dict[str, str]]:
    values = []
    for value in ctx.base_values:
        label = clean_activity_label(normalize_whitespace(value.meta_label or value.label or value.code))
        key = slugify_label(label)
        if label.lower().startswith("gjithsej") or key == "total":
            continue
        values.append({"code": value.code, "key": key, "label": label})
    return values


def _employment_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    quarter = ctx.axes.get("quarter")
    activity = ctx.axes.get("activity")
    gender = ctx.axes.get("gender")
    if quarter is None or activity is None or gender is None:
        return None
    return {
        "period": f"{ctx.period}-{normalize_quarter_code(quarter.meta_label or quarter.label)}",
        "activity": activity.value.key,
        "gender": gender.value.key,
        "employment": scale(ctx.get_value("employment"), 1000),
    }


def _finalize_employment(ctx: MetaContext) -> Dict[str, Any]:
    records = sort_records(ctx.records, ["period", "activity", "gender"])
    meta = recompute_time_bounds(ctx.meta, (r["period"] for r in records))
    meta["notes"] = merge_notes([meta.get("notes"), [EMPLOYMENT_NOTE]])
    return {"meta": meta, "records": records}


def fetch_labour_employment_activity_gender(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    """Labour Force Survey employment per activity and gender, per quarter.

    The table publishes thousands of persons; records carry persons.
    """
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_labour_employment_activity_gender_quarterly",
            filename="kas_labour_employment_activity_gender_quarterly.json",
            parts=PATHS["labour_employment_activity_gender"],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=_yearly_axis("quarterly"),
            axes=[
                AxisSpec(
                    code="Tremujoret",
                    text="Tremujoret",
                    alias="quarter",
                    to_label=lambda v: normalize_quarter_code(v.meta_label or v.label or v.code),
                ),
                AxisSpec(
                    code=EMPLOYMENT_ACTIVITY_CODE,
                    text=EMPLOYMENT_ACTIVITY_CODE,
                    alias="activity",
                    resolve_values=_activities,
                ),
                AxisSpec(code="Gjinia", text="Gjinia", alias="gender", resolve_values=_mapped_values(GENDERS)),
            ],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": "employment", "label": "Punësimi", "unit": "persona"}],
                ),
            ],
            create_record=_employment_record,
            finalize_dataset=_finalize_employment,
        ),
        client=client,
    )
