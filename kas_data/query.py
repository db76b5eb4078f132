"""Build the PxWeb selection query.

The order of the query entries (time axis, declared axes, metric
dimensions with a backing variable, static filters) is also the
dimension order a sparse response is decoded with, so it must not be
rearranged between building and decoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .dimensions import ResolvedAxis, ResolvedMetric


@dataclass
class QueryFilter:
    """A query-only selection that is not iterated or reported."""

    code: str
    values: List[str]


def selection(code: str, values: Sequence[Any]) -> Dict[str, Any]:
    return {
        "code": code,
        "selection": {"filter": "item", "values": [str(v) for v in values]},
    }


def build_query(
    time_axis: ResolvedAxis,
    axes: Sequence[ResolvedAxis],
    metrics: Sequence[ResolvedMetric],
    filters: Sequence[QueryFilter] = (),
) -> List[Dict[str, Any]]:
    """Assemble the ``query`` list of a PxWeb POST body.

    Parameters
    ----------
    time_axis : ResolvedAxis
        Always the first entry.
    axes : Sequence[ResolvedAxis]
        Declared axes, in declaration order.
    metrics : Sequence[ResolvedMetric]
        Only metrics backed by a table variable add an entry; implicit
        metrics have nothing to select.
    filters : Sequence[QueryFilter]
        Static selections appended last.

    Returns
    -------
    list of dict
        ``{"code", "selection": {"filter": "item", "values"}}`` entries in
        the order a sparse response will be decoded with.
    """
    query = [selection(time_axis.code, [v.code for v in time_axis.values])]
    query.extend(selection(axis.code, [v.code for v in axis.values]) for axis in axes)
    query.extend(
        selection(metric.code, [v.code for v in metric.values])
        for metric in metrics
        if metric.has_dimension
    )
    query.extend(selection(f.code, f.values) for f in filters)
    return query


def dimension_order(query: Sequence[Dict[str, Any]]) -> List[str]:
    return [entry["code"] for entry in query]
