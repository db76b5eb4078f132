"""External trade: monthly flows by customs chapter and by partner country."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import PxError, Skipped
from ..io import frame_records, write_json
from ..labels import normalize_ym, parse_trade_chapter_label
from ..meta import create_meta, describe_px_sources, latest_timestamp, recompute_time_bounds
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import chosen_labels, relabel_dimension, scale, sort_records
from .imports import partner_labels, partner_selector

logger = logging.getLogger(__name__)

CHAPTERS_DATASET_ID = "kas_trade_chapters_monthly"
PARTNERS_DATASET_ID = "kas_trade_partners"

TRADE_FIELDS: List[Dict[str, str]] = [
    {"key": "imports", "label": "Importe", "unit": "EUR"},
    {"key": "exports", "label": "Eksporte", "unit": "EUR"},
]

# Flow codes of the ``Export/Import`` dimension.
FLOW_VALUES: List[Dict[str, str]] = [
    {"code": "0", **TRADE_FIELDS[0]},
    {"code": "1", **TRADE_FIELDS[1]},
]

PARTNER_FLOWS: List[Dict[str, str]] = [
    {"key": "imports", "label": "Importe", "path_key": "imports_by_partner"},
    {"key": "exports", "label": "Eksporte", "path_key": "exports_by_partner"},
]

THOUSANDS_NOTE = "Source values are thousand EUR; scaled to EUR."


def _monthly_axis() -> AxisSpec:
    return AxisSpec(
        code="Viti/muaji",
        text="Viti/muaji",
        to_label=lambda v: normalize_ym(v.code),
        granularity="monthly",
    )


# ---------------------------------------------------------------------------
# Chapters
# ---------------------------------------------------------------------------


def _chapters(ctx: ValueContext) -> List[Dict[str, str]]:
    values = []
    for value in ctx.base_values:
        parsed = parse_trade_chapter_label(value.meta_label or value.label)
        values.append({"code": value.code, "key": parsed.code or value.code, "label": parsed.label})
    return values


def _chapter_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    chapter = ctx.axes.get("chapter")
    if chapter is None:
        return None
    imports = scale(ctx.get_value("imports"), 1000)
    exports = scale(ctx.get_value("exports"), 1000)
    if imports is None and exports is None:
        return None
    return {
        "period": ctx.period,
        "chapter": chapter.value.key or chapter.code,
        "imports": imports,
        "exports": exports,
    }


def _finalize_chapters(ctx: MetaContext) -> Dict[str, Any]:
    records = sort_records(ctx.records, ["period", "chapter"])
    meta = relabel_dimension(ctx.meta, "chapter", chosen_labels(ctx, "chapter"))
    meta = recompute_time_bounds(meta, (r["period"] for r in records))
    return {"meta": meta, "records": records}


def fetch_trade_chapters_monthly(
    out_dir: str, generated_at: str, *, client: Optional[PxClient] = None
) -> Union[Dict[str, Any], Skipped]:
    """Monthly imports and exports per customs chapter, in EUR."""
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=CHAPTERS_DATASET_ID,
            filename=f"{CHAPTERS_DATASET_ID}.json",
            parts=PATHS["trade_chapters_monthly"],
            out_dir=out_dir,
            generated_at=generated_at,
            unit="EUR",
            time_dimension=_monthly_axis(),
            axes=[
                AxisSpec(code="Variablat", text="Variablat", alias="chapter", resolve_values=_chapters),
            ],
            metric_dimensions=[
                MetricSpec(code="Export/Import", text="Export/Import", values=FLOW_VALUES),
            ],
            create_record=_chapter_record,
            build_notes=lambda summary: [THOUSANDS_NOTE],
            finalize_dataset=_finalize_chapters,
        ),
        client=client,
    )


# ---------------------------------------------------------------------------
# Partners
# ---------------------------------------------------------------------------


def _partner_flow_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
    partner = ctx.axes.get("partner")
    if partner is None:
        return None
    return {"period": ctx.period, "partner": partner.code, "value": scale(ctx.get_value("value"), 1000)}


def fetch_partner_flow(
    out_dir: str,
    generated_at: str,
    flow: Mapping[str, str],
    partners: Iterable[str],
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    dataset_id = f"{PARTNERS_DATASET_ID}_{flow['key']}"
    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=dataset_id,
            filename=f"{dataset_id}.json",
            parts=PATHS[flow["path_key"]],
            out_dir=out_dir,
            generated_at=generated_at,
            time_dimension=_monthly_axis(),
            axes=[
                AxisSpec(
                    code="Shteti",
                    text="Shteti",
                    alias="partner",
                    resolve_values=partner_selector(partners, dataset_id),
                ),
            ],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": "value", "label": flow["label"], "unit": "EUR"}],
                ),
            ],
            create_record=_partner_flow_record,
            write_file=False,
        ),
        client=client,
    )


def merge_partner_flows(flows: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """Outer-join the flow datasets on (period, partner), one column per flow."""
    merged: Optional[pd.DataFrame] = None
    for key, dataset in flows.items():
        frame = pd.DataFrame.from_records(dataset["records"], columns=["period", "partner", "value"])
        frame = frame.rename(columns={"value": key})
        merged = frame if merged is None else merged.merge(frame, on=["period", "partner"], how="outer")
    if merged is None:
        return pd.DataFrame(columns=["period", "partner"])
    return merged.sort_values(["period", "partner"]).reset_index(drop=True)


def fetch_trade_partners(
    out_dir: str,
    partners: Iterable[str],
    generated_at: str,
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    """Imports and exports per partner, merged into one dataset.

    A partner filter that matches nothing skips the whole dataset.
    """
    partners = list(partners)
    flows: Dict[str, Dict[str, Any]] = {}
    for flow in PARTNER_FLOWS:
        result = fetch_partner_flow(out_dir, generated_at, flow, partners, client=client)
        if isinstance(result, Skipped):
            logger.warning("No partner codes matched; skipping partner download")
            return Skipped(dataset_id=PARTNERS_DATASET_ID, reason=result.reason)
        flows[flow["key"]] = result

    merged = merge_partner_flows(flows)
    if merged.empty:
        return Skipped(dataset_id=PARTNERS_DATASET_ID, reason="trade partners: no records available")
    periods = sorted(merged["period"].unique())

    options = next(
        (d["meta"]["dimensions"]["partner"] for d in flows.values() if d["meta"]["dimensions"].get("partner")),
        None,
    )
    if not options:
        raise PxError("trade partners: partner dimension options missing")
    labels = partner_labels(options)

    source, source_urls = describe_px_sources([PATHS[flow["path_key"]] for flow in PARTNER_FLOWS])
    meta = create_meta(
        PARTNERS_DATASET_ID,
        generated_at,
        updated_at=latest_timestamp(d["meta"].get("updated_at") for d in flows.values()),
        time={
            "key": "period",
            "granularity": "monthly",
            "first": periods[0],
            "last": periods[-1],
            "count": len(periods),
        },
        fields=[dict(f) for f in TRADE_FIELDS],
        dimensions={"partner": [{"key": o["key"], "label": labels[o["key"]]} for o in options]},
        source=source,
        source_urls=source_urls,
    )
    dataset = {"meta": meta, "records": frame_records(merged)}
    write_json(out_dir, f"{PARTNERS_DATASET_ID}.json", dataset)
    logger.info("Merged partner imports and exports into %s records", len(dataset["records"]))
    return dataset
