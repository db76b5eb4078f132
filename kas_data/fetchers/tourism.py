"""Monthly tourism tables: visitors and overnight stays by region and by country."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import PxError, Skipped
from ..labels import normalize_group_label, normalize_ym
from ..metadata import Variable, build_value_pairs
from ..pipeline import PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext

logger = logging.getLogger(__name__)

TOURISM_METRICS: List[Dict[str, str]] = [
    {"code": "0", "key": "visitors", "expected_label": "Vizitorët", "unit": "people", "label": "Visitors"},
    {"code": "1", "key": "nights", "expected_label": "Netqëndrimet", "unit": "overnights", "label": "Nights"},
]


def ensure_tourism_metrics(variable: Optional[Variable], dataset_id: str) -> List[Dict[str, str]]:
    """Check the ``Variabla`` codes are still there.

    A renamed label only warns; a missing code is fatal.
    """
    if variable is None:
        raise PxError(f"{dataset_id}: metric dimension missing")
    lookup = dict(build_value_pairs(variable))
    metrics = []
    for metric in TOURISM_METRICS:
        label = lookup.get(metric["code"])
        if not label:
            raise PxError(f'{dataset_id}: missing expected metric code "{metric["code"]}"')
        if label != metric["expected_label"]:
            logger.warning(
                '%s: metric %s label changed: "%s" (expected "%s")',
                dataset_id, metric["code"], label, metric["expected_label"],
            )
        metrics.append(metric)
    return metrics


def _tourism_metric_values(ctx: ValueContext) -> List[Dict[str, str]]:
    return [
        {"code": m["code"], "key": m["key"], "label": m["label"], "unit": m["unit"]}
        for m in ensure_tourism_metrics(ctx.variable, ctx.dataset_id)
    ]


def _time_axis() -> AxisSpec:
    return AxisSpec(
        code="Viti/muaji",
        text="Viti/muaji",
        to_label=lambda v: normalize_ym(v.code),
        granularity="monthly",
    )


def _visitor_groups(ctx: ValueContext) -> List[Dict[str, Any]]:
    return [
        {
            "code": value.code,
            "label": value.label,
            "key": normalize_group_label(value.meta_label or value.label or value.code),
        }
        for value in ctx.base_values
    ]


def _region_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    region = ctx.axes.get("region")
    group = ctx.axes.get("visitor_group")
    if region is None or group is None:
        return None
    return {
        "period": ctx.period,
        "region": region.code,
        "visitor_group": normalize_group_label(group.meta_label or group.label or group.code),
        "visitors": ctx.get_value("visitors"),
        "nights": ctx.get_value("nights"),
    }


def fetch_tourism_region(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_tourism_region_monthly",
            filename="kas_tourism_region_monthly.json",
            parts=PATHS["tourism_region"],
            out_dir=out_dir,
            generated_at=generated_at,
            unit="people",
            time_dimension=_time_axis(),
            axes=[
                AxisSpec(code="Rajonet", text="Rajonet", alias="region"),
                AxisSpec(
                    code="Vendor/jashtem",
                    text="Vendor/jashtem",
                    alias="visitor_group",
                    resolve_values=_visitor_groups,
                ),
            ],
            metric_dimensions=[MetricSpec(code="Variabla", resolve_values=_tourism_metric_values)],
            create_record=_region_record,
        ),
        client=client,
    )


def _countries(ctx: ValueContext) -> List[Dict[str, str]]:
    return [
        {"code": v.code, "label": v.meta_label or v.label or v.code}
        for v in ctx.base_values
        if v.meta_label.lower() != "external"
    ]


def _country_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    country = ctx.axes.get("country")
    if country is None:
        return None
    return {
        "period": ctx.period,
        "country": country.code,
        "visitors": ctx.get_value("visitors"),
        "nights": ctx.get_value("nights"),
    }


def fetch_tourism_country(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id="kas_tourism_country_monthly",
            filename="kas_tourism_country_monthly.json",
            parts=PATHS["tourism_country"],
            out_dir=out_dir,
            generated_at=generated_at,
            unit="people",
            time_dimension=_time_axis(),
            axes=[
                AxisSpec(code="Shtetet", text="Shtetet", alias="country", resolve_values=_countries),
            ],
            metric_dimensions=[MetricSpec(code="Variabla", resolve_values=_tourism_metric_values)],
            create_record=_country_record,
        ),
        client=client,
    )
