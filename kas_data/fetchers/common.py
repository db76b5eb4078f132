"""Small helpers shared by the table fetchers."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from ..dimensions import DimensionValue
from ..numbers import Number, coerce_number
from ..pipeline import MetaContext


def sort_records(records: List[Dict[str, Any]], keys: Sequence[str]) -> List[Dict[str, Any]]:
    """Stable sort of record dicts by ``keys``; the dicts themselves are kept."""
    if not records:
        return []
    frame = pd.DataFrame.from_records(records, columns=list(keys))
    ordered = frame.sort_values(list(keys), kind="stable")
    return [records[i] for i in ordered.index]


def scale(value: Optional[Number], factor: Number) -> Optional[Number]:
    if value is None:
        return None
    return value * factor


def year_sort_key(value: DimensionValue) -> float:
    """Numeric order for year axes; unparseable years sort last."""
    for text in (value.label, value.meta_label, value.code):
        num = coerce_number(text)
        if num is not None:
            return float(num)
    return math.inf


def chosen_labels(ctx: MetaContext, alias: str) -> Dict[str, str]:
    """Labels the fetcher chose for an axis, keyed like its dimension options."""
    return {
        value.key or value.code: value.label
        for axis in ctx.axes
        if axis.alias == alias
        for value in axis.values
    }


def relabel_dimension(
    meta: Mapping[str, Any], alias: str, labels: Mapping[str, str]
) -> Dict[str, Any]:
    """Copy of ``meta`` with the options of one dimension relabelled."""
    dimensions = dict(meta.get("dimensions") or {})
    dimensions[alias] = [
        {**option, "label": labels.get(option["key"], option["label"])}
        for option in dimensions.get(alias, [])
    ]
    return {**meta, "dimensions": dimensions}
