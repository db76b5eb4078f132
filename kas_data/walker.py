"""Cartesian walk over resolved axes and record assembly.

Pinned axes (``iterate=False``) and static query filters contribute one
fixed assignment everywhere.  The remaining axes are enumerated
recursively; at every combination the metric values are looked up in the
decoded cube and handed to the fetcher's ``create_record`` callback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .cube import LookupTable
from .dimensions import DimensionValue, ResolvedAxis, ResolvedMetric
from .errors import PxError, PxSkip
from .numbers import Number, tidy_number
from .query import QueryFilter

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass
class AxisContextEntry:
    code: str
    label: str
    meta_label: str
    value: DimensionValue
    dimension: ResolvedAxis

    @classmethod
    def create(cls, axis: ResolvedAxis, value: DimensionValue) -> "AxisContextEntry":
        return cls(
            code=value.code,
            label=value.label,
            meta_label=value.meta_label,
            value=value,
            dimension=axis,
        )


@dataclass
class RecordContext:
    dataset_id: str
    period_code: str
    period: str
    axes: Dict[str, AxisContextEntry]
    axis_by_code: Dict[str, AxisContextEntry]
    values: Dict[str, Optional[Number]]
    assignments: Dict[str, str]

    def get_value(self, key: str) -> Optional[Number]:
        return self.values.get(key)


# ---------------------------------------------------------------------------
# Record outcome: what a create_record callback produced
# ---------------------------------------------------------------------------


class NoRecord:
    """The combination produced nothing."""

    def records(self) -> List[Record]:
        return []


@dataclass
class OneRecord:
    record: Record

    def records(self) -> List[Record]:
        return [self.record]


@dataclass
class ManyRecords:
    items: List[Record] = field(default_factory=list)

    def records(self) -> List[Record]:
        return list(self.items)


RecordOutcome = Union[NoRecord, OneRecord, ManyRecords]
CreateRecord = Callable[[RecordContext], Any]

NO_RECORD = NoRecord()


def to_outcome(result: Any, dataset_id: str) -> RecordOutcome:
    """Normalize a ``create_record`` return value.

    ``None`` skips the combination, a mapping is one record and a list
    fans out into several.  Anything else is a fetcher bug.
    """
    if isinstance(result, (NoRecord, OneRecord, ManyRecords)):
        return result
    if result is None:
        return NO_RECORD
    if isinstance(result, Mapping):
        return OneRecord(dict(result))
    if isinstance(result, (list, tuple)):
        items: List[Record] = []
        for entry in result:
            if entry is None:
                continue
            if not isinstance(entry, Mapping):
                raise PxError(f"{dataset_id}: create_record returned invalid array entry")
            items.append(dict(entry))
        return ManyRecords(items)
    raise PxError(f"{dataset_id}: create_record returned invalid value")


def metric_values(
    metrics: Sequence[ResolvedMetric],
    table: LookupTable,
    assignments: Mapping[str, str],
    dataset_id: str,
) -> Dict[str, Optional[Number]]:
    values: Dict[str, Optional[Number]] = {}
    for metric in metrics:
        if not metric.has_dimension:
            if len(metric.values) != 1:
                raise PxError(f"{dataset_id}: implicit metric dimension requires a single value")
            entry = metric.values[0]
            values[entry.key or entry.code] = tidy_number(table.value(assignments))
            continue
        for entry in metric.values:
            raw = table.value({**assignments, metric.code: entry.code})
            values[entry.key or entry.code] = tidy_number(raw)
    return values


def walk_records(
    dataset_id: str,
    time_axis: ResolvedAxis,
    axes: Sequence[ResolvedAxis],
    metrics: Sequence[ResolvedMetric],
    table: LookupTable,
    create_record: CreateRecord,
    filters: Sequence[QueryFilter] = (),
) -> List[Record]:
    """Enumerate every combination of the iterable axes and collect records."""
    all_axes = [time_axis, *axes]

    base_assignments: Dict[str, str] = {}
    base_alias: Dict[str, AxisContextEntry] = {}
    base_code: Dict[str, AxisContextEntry] = {}
    for axis in all_axes:
        if axis.iterate:
            continue
        if not axis.values:
            raise PxSkip(f'{dataset_id}: axis "{axis.code}" resolved no values')
        entry = AxisContextEntry.create(axis, axis.values[0])
        base_assignments[axis.code] = entry.code
        base_alias[axis.alias] = entry
        base_code[axis.code] = entry

    for query_filter in filters:
        if not query_filter.values:
            raise PxError(f'{dataset_id}: query dimension "{query_filter.code}" missing values')
        base_assignments[query_filter.code] = str(query_filter.values[0])

    iterable = [axis for axis in all_axes if axis.iterate]
    if not iterable:
        raise PxError(f"{dataset_id}: no iterable axes configured")

    records: List[Record] = []

    def walk(
        index: int,
        assignments: Dict[str, str],
        alias_ctx: Dict[str, AxisContextEntry],
        code_ctx: Dict[str, AxisContextEntry],
    ) -> None:
        if index == len(iterable):
            period_entry = alias_ctx.get(time_axis.alias)
            if period_entry is None:
                raise PxError(f"{dataset_id}: time dimension missing in record context")
            ctx = RecordContext(
                dataset_id=dataset_id,
                period_code=period_entry.code,
                period=period_entry.label,
                axes=alias_ctx,
                axis_by_code=code_ctx,
                values=metric_values(metrics, table, assignments, dataset_id),
                assignments=assignments,
            )
            records.extend(to_outcome(create_record(ctx), dataset_id).records())
            return
        axis = iterable[index]
        for value in axis.values:
            entry = AxisContextEntry.create(axis, value)
            walk(
                index + 1,
                {**assignments, axis.code: value.code},
                {**alias_ctx, axis.alias: entry},
                {**code_ctx, axis.code: entry},
            )

    walk(0, base_assignments, base_alias, base_code)
    logger.debug("%s: assembled %s records", dataset_id, len(records))
    return records
