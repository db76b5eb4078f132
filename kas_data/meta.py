"""Dataset meta envelope: derivation and validation.

Every dataset written by the pipeline is ``{"meta": ..., "records": [...]}``.
The meta envelope describes the time axis, the metric fields (each with a
unit), the non-time dimensions and where the data came from.
:func:`validate_meta` is run on the final envelope; a dataset that fails it
is never written.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .dimensions import DimensionValue, ResolvedAxis, ResolvedMetric
from .errors import MetaValidationError, PxError

Field = Dict[str, str]
DimensionOption = Dict[str, str]

GRANULARITIES = ("yearly", "quarterly", "monthly", "weekly", "daily")


def validate_meta(meta: Dict[str, Any]) -> Dict[str, Any]:
    """Raise :class:`MetaValidationError` unless ``meta`` is a valid envelope."""
    time = meta.get("time")
    if not isinstance(time, dict) or time.get("key") != "period":
        raise MetaValidationError("meta.time.key must be 'period'")
    if not time.get("first") or not time.get("last"):
        raise MetaValidationError("meta.time.first/last required")
    if not time.get("granularity"):
        raise MetaValidationError("meta.time.granularity required")
    if time["granularity"] not in GRANULARITIES:
        raise MetaValidationError(f"meta.time.granularity unknown: {time['granularity']}")
    fields = meta.get("fields")
    if not isinstance(fields, list) or not fields:
        raise MetaValidationError("meta.fields required")
    for f in fields:
        if not isinstance(f, dict) or f.get("unit") is None:
            raise MetaValidationError("field.unit must be provided")
    metrics = meta.get("metrics")
    if not isinstance(metrics, list) or len(metrics) != len(fields):
        raise MetaValidationError("meta.metrics must mirror fields")
    return meta


def create_meta(
    dataset_id: str,
    generated_at: str,
    *,
    time: Dict[str, Any],
    fields: List[Field],
    metrics: Optional[List[str]] = None,
    dimensions: Optional[Dict[str, List[DimensionOption]]] = None,
    updated_at: Optional[str] = None,
    unit: Optional[str] = None,
    source: str = "",
    source_urls: Optional[List[str]] = None,
    title: Optional[str] = None,
    notes: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Assemble and validate a meta envelope.

    ``metrics`` defaults to the field keys.  Extra keyword arguments are
    carried through (e.g. ``dimension_hierarchies``).
    """
    meta: Dict[str, Any] = {
        "id": dataset_id,
        "generated_at": generated_at,
        "updated_at": updated_at,
        "time": time,
        "fields": fields,
        "metrics": metrics if metrics is not None else [f.get("key") for f in fields],
        "dimensions": dimensions or {},
        "unit": unit,
        "source": source,
        "source_urls": source_urls or [],
        "title": title,
        "notes": notes or [],
    }
    meta.update(extra)
    return validate_meta(meta)


def build_fields(
    dataset_id: str,
    metrics: Sequence[ResolvedMetric],
    dataset_unit: Optional[str],
    extra_fields: Iterable[Field] = (),
) -> List[Field]:
    """One field per metric value key; the first occurrence of a key wins."""
    fields: List[Field] = []
    seen = set()
    for metric in metrics:
        for value in metric.values:
            key = value.key or value.code
            label = value.label or key
            unit = value.unit or dataset_unit or ""
            if not unit:
                raise PxError(f"{dataset_id}: unit is required for metric {key}")
            if key in seen:
                continue
            seen.add(key)
            fields.append({"key": key, "label": label, "unit": unit})
    fields.extend(dict(f) for f in extra_fields)
    return fields


def dimension_options(values: Sequence[DimensionValue]) -> List[DimensionOption]:
    return [
        {"key": v.key or v.code, "label": v.meta_label or v.label or v.code}
        for v in values
    ]


def build_dimensions(axes: Sequence[ResolvedAxis], time_alias: str) -> Dict[str, List[DimensionOption]]:
    """Options per axis alias; the period axis is never a dimension."""
    dimensions: Dict[str, List[DimensionOption]] = {}
    for axis in axes:
        if not axis.alias or not axis.values or axis.alias == time_alias:
            continue
        dimensions[axis.alias] = dimension_options(axis.values)
    return dimensions


def recompute_time_bounds(meta: Dict[str, Any], periods: Iterable[str]) -> Dict[str, Any]:
    """Copy of ``meta`` with first/last/count taken from the records' periods."""
    unique = sorted(set(periods))
    time = dict(meta["time"])
    if unique:
        time.update(first=unique[0], last=unique[-1], count=len(unique))
    return {**meta, "time": time}


def latest_timestamp(values: Iterable[Optional[str]]) -> Optional[str]:
    filtered = sorted(v for v in values if isinstance(v, str) and v)
    return filtered[-1] if filtered else None


def merge_notes(values: Iterable[Optional[Sequence[str]]]) -> List[str]:
    merged: List[str] = []
    for notes in values:
        for note in notes or ():
            if note not in merged:
                merged.append(note)
    return merged


# ---------------------------------------------------------------------------
# Source description
# ---------------------------------------------------------------------------


def _table_label(filename: str) -> str:
    base = re.sub(r"\.px$", "", filename, flags=re.IGNORECASE)
    tab = re.match(r"^tab\s*(\d+)", base, flags=re.IGNORECASE)
    if tab:
        return f"Table {tab.group(1).zfill(2)}"
    numeric = re.match(r"^(\d{1,3})[_-]?", base)
    if numeric:
        return f"Table {numeric.group(1).zfill(2)}"
    return f"Table {base}"


def describe_px_sources(source_paths: Sequence[Sequence[str]]) -> Tuple[str, List[str]]:
    """Human-readable source line and table URLs for one or more PX paths."""
    labels: List[str] = []
    categories: List[str] = []
    urls: List[str] = []
    for parts in source_paths:
        if not parts or not parts[-1]:
            continue
        labels.append(_table_label(parts[-1]))
        categories.append(parts[1] if len(parts) > 1 else parts[0])
        urls.append("/".join(parts))
    if not labels:
        return "Unknown source", []
    if len(labels) == 1:
        return f"{labels[0]} in {categories[0]}", urls
    unique = list(dict.fromkeys(categories))
    if len(unique) == 1:
        return f"Data derived from {', '.join(labels)} in {unique[0]}", urls
    return f"Data derived from {', '.join(labels)} across {', '.join(unique)}", urls
