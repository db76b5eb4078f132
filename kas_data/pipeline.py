"""Core pipeline logic for one PxWeb table.

:func:`run_px_dataset_pipeline` runs a table through every stage:
metadata fetch, dimension resolution, query construction, cube fetch and
decode, the Cartesian record walk, meta envelope construction and the
final write.  Fetchers only supply a :class:`PipelineSpec`; they never loop
over cube cells themselves.

A :class:`~kas_data.errors.PxSkip` raised anywhere during resolution ends
the run with a :class:`~kas_data.errors.Skipped` result.  Structural
problems raise :class:`~kas_data.errors.PxError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .cube import LookupTable, table_lookup
from .dimensions import (
    AxisSpec,
    MetricSpec,
    ResolvedAxis,
    ResolvedMetric,
    ResolverContext,
    resolve_axis,
    resolve_metric,
)
from .errors import PxError, PxSkip, Skipped
from .io import write_json
from .meta import (
    Field,
    build_dimensions,
    build_fields,
    create_meta,
    describe_px_sources,
    validate_meta,
)
from .metadata import CubeSummary, TableMeta, read_cube_metadata
from .query import QueryFilter, build_query, dimension_order
from .transport import PxClient
from .walker import CreateRecord, Record, walk_records

logger = logging.getLogger(__name__)

Dataset = Dict[str, Any]


@dataclass
class MetaContext:
    """Everything ``build_meta`` / ``finalize_dataset`` may need."""

    dataset_id: str
    generated_at: str
    source_meta: TableMeta
    cube: Dict[str, Any]
    cube_summary: CubeSummary
    axes: List[ResolvedAxis]
    metrics: List[ResolvedMetric]
    records: List[Record]
    fields: List[Field]
    dimensions: Dict[str, List[Dict[str, str]]]
    granularity: str
    periods: int
    source: str
    source_urls: List[str]
    meta: Optional[Dict[str, Any]] = None


@dataclass
class PipelineSpec:
    """Declarative description of one table fetch."""

    dataset_id: str
    filename: str
    parts: Sequence[str]
    time_dimension: AxisSpec
    metric_dimensions: List[MetricSpec]
    create_record: CreateRecord
    out_dir: str = "data"
    generated_at: Optional[str] = None
    axes: List[AxisSpec] = field(default_factory=list)
    query_filters: List[QueryFilter] = field(default_factory=list)
    unit: Optional[str] = None
    extra_fields: List[Field] = field(default_factory=list)
    build_notes: Optional[Callable[[CubeSummary], Optional[List[str]]]] = None
    build_meta: Optional[Callable[[MetaContext], Dict[str, Any]]] = None
    finalize_dataset: Optional[Callable[[MetaContext], Dataset]] = None
    write_file: bool = True
    meta: Optional[Any] = None


def utc_timestamp() -> str:
    """Current UTC time as an ISO 8601 string.

    Returns
    -------
    str
        Second precision with a ``Z`` suffix, e.g. ``2024-05-01T12:00:00Z``.
    """
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _check_spec(spec: PipelineSpec) -> None:
    if not spec.dataset_id:
        raise PxError("run_px_dataset_pipeline: missing dataset_id")
    if not spec.filename:
        raise PxError(f"{spec.dataset_id}: expected output filename")
    if not spec.parts:
        raise PxError(f"{spec.dataset_id}: expected PX path parts for dataset")
    if not spec.metric_dimensions:
        raise PxError(f"{spec.dataset_id}: expected at least one metric dimension")
    if not spec.time_dimension.granularity:
        raise PxError(f"{spec.dataset_id}: time granularity is required")


def _check_metric_keys(dataset_id: str, metrics: Sequence[ResolvedMetric]) -> None:
    seen = set()
    for metric in metrics:
        for value in metric.values:
            if value.key in seen:
                raise PxError(f'{dataset_id}: duplicate metric key "{value.key}"')
            seen.add(value.key)


def resolve_dimensions(
    spec: PipelineSpec, meta: TableMeta
) -> Tuple[ResolvedAxis, List[ResolvedAxis], List[ResolvedMetric]]:
    """Resolve the time axis, declared axes and metric dimensions in order."""
    context = ResolverContext(dataset_id=spec.dataset_id, meta=meta)
    time_axis = resolve_axis(spec.time_dimension, context, is_time=True, axis_index=0)
    context.time_code = time_axis.code
    axes = [
        resolve_axis(axis_spec, context, is_time=False, axis_index=i + 1)
        for i, axis_spec in enumerate(spec.axes)
    ]
    metrics = [
        resolve_metric(metric_spec, context, i)
        for i, metric_spec in enumerate(spec.metric_dimensions)
    ]
    _check_metric_keys(spec.dataset_id, metrics)
    return time_axis, axes, metrics


def run_px_dataset_pipeline(
    spec: PipelineSpec, *, client: Optional[PxClient] = None
) -> Union[Dataset, Skipped]:
    """Fetch, decode and assemble one table; write it unless ``write_file`` is off.

    Returns the dataset (``{"meta": ..., "records": [...]}`` unless a
    ``finalize_dataset`` hook reshapes it), or :class:`Skipped`.
    """
    _check_spec(spec)
    dataset_id = spec.dataset_id
    client = client or PxClient()
    generated_at = spec.generated_at or utc_timestamp()
    logger.info("Starting PxWeb pipeline for %s", dataset_id)

    try:
        meta = TableMeta.from_dict(spec.meta if spec.meta is not None else client.get_meta(spec.parts))
        time_axis, axes, metrics = resolve_dimensions(spec, meta)

        query = build_query(time_axis, axes, metrics, spec.query_filters)
        cube = client.post_data(spec.parts, {"query": query})
        table: Optional[LookupTable] = table_lookup(cube, dimension_order(query))
        if table is None:
            raise PxError(f"{dataset_id}: unexpected PX response format")
        logger.debug("%s: decoded %s cube cells", dataset_id, len(table))

        records = walk_records(
            dataset_id,
            time_axis,
            axes,
            metrics,
            table,
            spec.create_record,
            spec.query_filters,
        )
    except PxSkip as skip:
        logger.warning("Skipping %s: %s", dataset_id, skip)
        return Skipped(dataset_id=dataset_id, reason=str(skip))

    cube_summary = read_cube_metadata(cube)
    dataset_unit = spec.unit or cube_summary.unit
    source, source_urls = describe_px_sources([tuple(spec.parts)])

    period_labels = [v.label for v in time_axis.values]
    first = period_labels[0] if period_labels else ""
    last = period_labels[-1] if period_labels else ""
    if not first or not last:
        raise PxError(f"{dataset_id}: unable to resolve first/last period")

    fields = build_fields(dataset_id, metrics, dataset_unit, spec.extra_fields)
    dimensions = build_dimensions(axes, time_axis.alias)
    context = MetaContext(
        dataset_id=dataset_id,
        generated_at=generated_at,
        source_meta=meta,
        cube=cube,
        cube_summary=cube_summary,
        axes=[time_axis, *axes],
        metrics=metrics,
        records=records,
        fields=fields,
        dimensions=dimensions,
        granularity=spec.time_dimension.granularity,
        periods=len(time_axis.values),
        source=source,
        source_urls=source_urls,
    )

    if spec.build_meta is not None:
        meta_obj = validate_meta(spec.build_meta(context))
    else:
        meta_obj = create_meta(
            dataset_id,
            generated_at,
            updated_at=cube_summary.updated_at,
            time={
                "key": "period",
                "granularity": spec.time_dimension.granularity,
                "first": first,
                "last": last,
                "count": len(time_axis.values),
            },
            fields=fields,
            dimensions=dimensions,
            unit=dataset_unit,
            source=source,
            source_urls=source_urls,
            title=cube_summary.title,
            notes=(spec.build_notes(cube_summary) or []) if spec.build_notes else [],
        )
    context.meta = meta_obj

    if spec.finalize_dataset is not None:
        dataset = spec.finalize_dataset(context)
        if isinstance(dataset, dict) and isinstance(dataset.get("meta"), dict):
            validate_meta(dataset["meta"])
    else:
        dataset = {"meta": meta_obj, "records": records}

    if spec.write_file:
        write_json(spec.out_dir, spec.filename, dataset)
    logger.info("Finished %s with %s records", dataset_id, len(records))
    return dataset
