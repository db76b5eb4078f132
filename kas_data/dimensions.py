"""Resolve declarative axis and metric specs against live table metadata.

Fetchers describe each dimension with an :class:`AxisSpec` or
:class:`MetricSpec`.  Resolution turns that declaration into concrete
:class:`DimensionValue` lists:

1. resolve the dimension code and check it exists (and, optionally, that its
   text still matches);
2. derive base values from the metadata (time axes reversed to ascending);
3. apply the caller's ``values`` / ``resolve_values`` override;
4. merge each value with its metadata entry and compute its label;
5. apply ``sort_key``;
6. an axis left without values raises :class:`PxSkip`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
)

from .errors import PxError, PxSkip
from .metadata import TableMeta, Variable, build_value_pairs

logger = logging.getLogger(__name__)


@dataclass
class DimensionValue:
    """One resolved value of a dimension.

    ``meta_label`` is always the label published in the table metadata;
    ``label`` is what the fetcher chose to show.  Caller fields other than
    ``key`` and ``unit`` land in ``extra``.
    """

    code: str
    label: str
    meta_label: str
    key: Optional[str] = None
    unit: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        if name in ("code", "label", "meta_label", "key", "unit"):
            value = getattr(self, name)
            return default if value is None else value
        return self.extra.get(name, default)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update(code=self.code, label=self.label, meta_label=self.meta_label)
        if self.key is not None:
            data["key"] = self.key
        if self.unit is not None:
            data["unit"] = self.unit
        return data


ValueSpec = Union[DimensionValue, Mapping[str, Any]]


@dataclass
class ResolverContext:
    """What code resolvers see: metadata plus codes resolved so far."""

    dataset_id: str
    meta: TableMeta
    time_code: Optional[str] = None
    axis_codes: List[str] = field(default_factory=list)
    metric_codes: List[str] = field(default_factory=list)

    @property
    def variables(self) -> List[Variable]:
        return self.meta.variables


@dataclass
class ValueContext:
    """What ``resolve_values`` sees for one dimension."""

    dataset_id: str
    meta: TableMeta
    resolver: ResolverContext
    variable: Optional[Variable]
    base_values: List[DimensionValue]


class DimensionValueResolver(Protocol):
    def __call__(self, ctx: ValueContext) -> Iterable[Optional[ValueSpec]]:
        ...


CodeResolver = Union[str, Callable[[ResolverContext], Optional[str]], None]


@dataclass
class AxisSpec:
    code: CodeResolver
    text: Optional[str] = None
    alias: Optional[str] = None
    values: Optional[List[ValueSpec]] = None
    resolve_values: Optional[DimensionValueResolver] = None
    to_label: Optional[Callable[[DimensionValue], str]] = None
    sort_key: Optional[Callable[[DimensionValue], Any]] = None
    iterate: bool = True
    granularity: Optional[str] = None


@dataclass
class MetricSpec:
    """A metric dimension.  A code resolving to ``None`` makes it implicit."""

    code: CodeResolver
    text: Optional[str] = None
    alias: Optional[str] = None
    values: Optional[List[ValueSpec]] = None
    resolve_values: Optional[DimensionValueResolver] = None
    to_label: Optional[Callable[[DimensionValue], str]] = None
    sort_key: Optional[Callable[[DimensionValue], Any]] = None


@dataclass
class ResolvedAxis:
    code: str
    alias: str
    variable: Optional[Variable]
    values: List[DimensionValue]
    iterate: bool
    is_time: bool
    spec: AxisSpec


@dataclass
class ResolvedMetric:
    code: str
    variable: Optional[Variable]
    values: List[DimensionValue]
    has_dimension: bool
    spec: MetricSpec
    # Informational; metrics never become meta dimensions.
    alias: str = ""


def resolve_dimension_code(code: CodeResolver, context: ResolverContext) -> Optional[str]:
    if callable(code):
        code = code(context)
    if code is None:
        return None
    code = str(code)
    return code or None


def expect_variable(
    meta: TableMeta, dataset_id: str, code: str, expected_text: Optional[str] = None
) -> Variable:
    """Return the variable ``code``, checking its text when one is expected.

    Parameters
    ----------
    meta : TableMeta
    dataset_id : str
        Prefix for error messages.
    code : str
    expected_text : str, optional
        Compared after stripping surrounding whitespace.

    Raises
    ------
    PxError
        The variable is absent or its text differs.
    """
    variable = meta.get(code)
    if variable is None:
        raise PxError(f'{dataset_id}: expected dimension "{code}" not found in PxWeb metadata')
    if expected_text and variable.text.strip() != str(expected_text).strip():
        raise PxError(
            f'{dataset_id}: dimension "{code}" text mismatch '
            f'(expected "{expected_text}" got "{variable.text}")'
        )
    return variable


def prepare_base_values(variable: Optional[Variable], is_time: bool) -> List[DimensionValue]:
    if variable is None:
        return []
    base = [
        DimensionValue(code=code, label=label, meta_label=label)
        for code, label in build_value_pairs(variable)
    ]
    if is_time and variable.is_time:
        base.reverse()
    return base


def _spec_fields(value: ValueSpec) -> Dict[str, Any]:
    if isinstance(value, DimensionValue):
        return value.as_dict()
    if isinstance(value, Mapping):
        return dict(value)
    raise PxError(f"dimension value spec must be a mapping, got {type(value).__name__}")


def normalize_dimension_values(
    dataset_id: str,
    dimension_code: str,
    value_specs: Iterable[Optional[ValueSpec]],
    base_values: List[DimensionValue],
    spec: Union[AxisSpec, MetricSpec],
    variable: Optional[Variable],
) -> List[DimensionValue]:
    """Merge caller value specs with metadata values and compute labels."""
    base_lookup = {entry.code: entry for entry in base_values}
    resolved: List[DimensionValue] = []
    for value in value_specs:
        if value is None:
            continue
        fields = _spec_fields(value)
        code = str(fields.pop("code", "") or "")
        if not code:
            raise PxError(f'{dataset_id}: dimension "{dimension_code}" has value without code')
        base = base_lookup.get(code)
        if base is None and variable is not None:
            raise PxError(f'{dataset_id}: dimension "{dimension_code}" missing expected code "{code}"')

        caller_label = fields.pop("label", None)
        fields.pop("meta_label", None)
        if base is not None:
            meta_label = base.meta_label
        else:
            meta_label = str(caller_label) if caller_label else code
        interim_label = str(caller_label) if caller_label is not None else (
            base.label if base is not None else meta_label
        )

        merged = base.as_dict() if base is not None else {}
        merged.update(fields)
        key = merged.pop("key", None)
        unit = merged.pop("unit", None)
        for name in ("code", "label", "meta_label"):
            merged.pop(name, None)
        entry = DimensionValue(
            code=code,
            label=interim_label,
            meta_label=meta_label,
            key=str(key) if key is not None else None,
            unit=str(unit) if unit is not None else None,
            extra=merged,
        )
        if spec.to_label is not None:
            entry.label = str(spec.to_label(entry))
        resolved.append(entry)

    if spec.sort_key is not None:
        resolved.sort(key=spec.sort_key)
    return resolved


def _value_specs(
    spec: Union[AxisSpec, MetricSpec],
    context: ResolverContext,
    variable: Optional[Variable],
    base_values: List[DimensionValue],
) -> Optional[List[Optional[ValueSpec]]]:
    if spec.resolve_values is not None:
        ctx = ValueContext(
            dataset_id=context.dataset_id,
            meta=context.meta,
            resolver=context,
            variable=variable,
            base_values=[replace(v, extra=dict(v.extra)) for v in base_values],
        )
        return list(spec.resolve_values(ctx))
    if spec.values:
        return list(spec.values)
    return None


def resolve_axis(
    spec: AxisSpec, context: ResolverContext, *, is_time: bool, axis_index: int
) -> ResolvedAxis:
    """Resolve an axis declaration against the table metadata.

    Parameters
    ----------
    spec : AxisSpec
        Declared code (or resolver), expected text, alias and value rules.
    context : ResolverContext
        Shared resolution state; the resolved code is appended to
        ``context.axis_codes``.
    is_time : bool
        Marks the time axis, which defaults to the ``period`` alias.
    axis_index : int
        Position used for the fallback alias ``axis_<n>``.

    Returns
    -------
    ResolvedAxis

    Raises
    ------
    PxError
        The code is missing, unknown, or its text does not match.
    PxSkip
        No values are left after filtering.
    """
    dataset_id = context.dataset_id
    code = resolve_dimension_code(spec.code, context)
    if not code:
        raise PxError(f"{dataset_id}: axis dimension missing code resolver")
    variable = expect_variable(context.meta, dataset_id, code, spec.text)
    base_values = prepare_base_values(variable, is_time)

    value_specs = _value_specs(spec, context, variable, base_values)
    if value_specs is None:
        value_specs = [{"code": v.code, "label": v.label} for v in base_values]

    values = normalize_dimension_values(dataset_id, code, value_specs, base_values, spec, variable)
    if not values:
        raise PxSkip(f'{dataset_id}: axis "{code}" resolved zero values')

    if spec.alias is not None:
        alias = spec.alias
    else:
        alias = "period" if is_time else code or f"axis_{axis_index}"
    context.axis_codes.append(code)
    logger.debug("%s: axis %s resolved %s values", dataset_id, code, len(values))
    return ResolvedAxis(
        code=code,
        alias=alias,
        variable=variable,
        values=values,
        iterate=spec.iterate,
        is_time=is_time,
        spec=spec,
    )


def resolve_metric(spec: MetricSpec, context: ResolverContext, metric_index: int) -> ResolvedMetric:
    """Resolve a metric dimension, explicit or implicit.

    A code resolver that yields ``None`` makes the metric implicit: it has no
    table variable, is left out of the query, and its values must be given
    statically.

    Parameters
    ----------
    spec : MetricSpec
    context : ResolverContext
    metric_index : int
        Position used for placeholder codes and the fallback alias.

    Returns
    -------
    ResolvedMetric

    Raises
    ------
    PxError
        No values resolve, or a value has no key.
    """
    dataset_id = context.dataset_id
    code = resolve_dimension_code(spec.code, context)
    has_dimension = code is not None
    variable = expect_variable(context.meta, dataset_id, code, spec.text) if has_dimension else None
    base_values = prepare_base_values(variable, False)

    value_specs = _value_specs(spec, context, variable, base_values)
    if value_specs is None:
        value_specs = (
            [{"code": v.code, "label": v.label, "key": v.code} for v in base_values]
            if has_dimension
            else []
        )
    label = f'"{code}"' if has_dimension else "(implicit)"
    if not value_specs:
        raise PxError(f"{dataset_id}: metric dimension {label} resolved zero values")

    values = normalize_dimension_values(
        dataset_id,
        code if has_dimension else f"__metric_{metric_index}",
        value_specs,
        base_values,
        spec,
        variable,
    )
    if not values:
        raise PxError(f"{dataset_id}: metric dimension {label} resolved zero values")
    for value in values:
        if not value.key:
            raise PxError(f'{dataset_id}: metric value "{value.code}" missing key')

    if has_dimension:
        context.metric_codes.append(code)
    return ResolvedMetric(
        code=code or "",
        alias=spec.alias or code or f"metric_{metric_index}",
        variable=variable,
        values=values,
        has_dimension=has_dimension,
        spec=spec,
    )
