"""Monthly imports by trading partner."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..config import PATHS
from ..dimensions import AxisSpec, MetricSpec, ValueContext
from ..errors import PxSkip, Skipped
from ..labels import format_partner_name, normalize_ym
from ..meta import recompute_time_bounds
from ..pipeline import MetaContext, PipelineSpec, run_px_dataset_pipeline
from ..transport import PxClient
from ..walker import RecordContext
from .common import relabel_dimension, scale, sort_records

logger = logging.getLogger(__name__)

DATASET_ID = "kas_imports_by_partner"


def partner_tokens(partners: Iterable[str]) -> List[str]:
    return [p.strip().upper() for p in partners if p and p.strip()]


def partner_selector(
    partners: Iterable[str], dataset_id: str
) -> Callable[[ValueContext], List[Dict[str, str]]]:
    """Value resolver for a partner axis.

    ``["ALL"]`` keeps every partner; other tokens match the code or the
    metadata label, case-insensitively.  No match skips the table.
    """
    tokens = partner_tokens(partners)
    include_all = tokens == ["ALL"]
    wanted = set(tokens)

    def select_partners(ctx: ValueContext) -> List[Dict[str, str]]:
        if include_all:
            selected = ctx.base_values
        else:
            selected = [
                v for v in ctx.base_values
                if v.code.upper() in wanted or v.meta_label.upper() in wanted
            ]
        if not selected:
            raise PxSkip("no partner codes matched requested filter")
        logger.info("%s: %s partners selected", dataset_id, len(selected))
        return [{"code": v.code, "label": v.label} for v in selected]

    return select_partners


def partner_labels(options: Iterable[Dict[str, str]]) -> Dict[str, str]:
    return {opt["key"]: format_partner_name(opt["label"] or opt["key"]) for opt in options}


def fetch_imports_by_partner(
    out_dir: str,
    partners: Iterable[str],
    generated_at: str,
    *,
    client: Optional[PxClient] = None,
) -> Union[Dict[str, Any], Skipped]:
    """Imports in EUR per partner.

    ``partners`` is a list of partner codes or labels, or ``["ALL"]``.  The
    table publishes thousands of euro; records carry euro.
    """

    def partner_record(ctx: RecordContext) -> Optional[Dict[str, Any]]:
        partner = ctx.axes.get("partner")
        if partner is None:
            return None
        return {
            "period": ctx.period,
            "partner": partner.code,
            "imports": scale(ctx.get_value("imports"), 1000),
        }

    def finalize(ctx: MetaContext) -> Dict[str, Any]:
        labels = partner_labels(ctx.meta["dimensions"].get("partner", []))
        records = sort_records(ctx.records, ["period"])
        meta = recompute_time_bounds(
            relabel_dimension(ctx.meta, "partner", labels), (r["period"] for r in records)
        )
        return {"meta": meta, "records": records}

    return run_px_dataset_pipeline(
        PipelineSpec(
            dataset_id=DATASET_ID,
            filename=f"{DATASET_ID}.json",
            parts=PATHS["imports_by_partner"],
            out_dir=out_dir,
            generated_at=generated_at,
            unit="EUR",
            time_dimension=AxisSpec(
                code="Viti/muaji",
                text="Viti/muaji",
                to_label=lambda v: normalize_ym(v.code),
                granularity="monthly",
            ),
            axes=[
                AxisSpec(
                    code="Shteti",
                    text="Shteti",
                    alias="partner",
                    resolve_values=partner_selector(partners, DATASET_ID),
                ),
            ],
            metric_dimensions=[
                MetricSpec(
                    code=lambda ctx: None,
                    values=[{"code": "__value__", "key": "imports", "label": "Imports", "unit": "EUR"}],
                ),
            ],
            create_record=partner_record,
            finalize_dataset=finalize,
        ),
        client=client,
    )
